"""Special Price Rules - per-area overrides of the base nightly price"""
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, StrictBool, StrictInt, ValidationInfo, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from domain.enums import SpecialPriceType
from domain.exceptions import ValidationError, describe_validation_error

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
HOLIDAY_PATTERN = re.compile(r"^(\d{2})-(\d{2})$")

DATE_FIELDS = ("start_date", "end_date")


class SpecialPriceRule(BaseModel):
    """Child Entity of Area overriding the base price on matching days.

    Only the fields relevant to ``type`` are meaningful; the others are
    ignored when resolving prices.
    """

    rule_id: UUID = Field(default_factory=uuid4)
    type: SpecialPriceType
    name: str
    price: Decimal = Field(gt=0)

    # date_range
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_package: Optional[StrictBool] = False

    # day_of_week, 0=Sunday
    days_of_week: Optional[List[StrictInt]] = None

    # holiday, MM-DD recurring every year
    holiday_date: Optional[str] = None

    active: Optional[StrictBool] = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('name is required')
        return v

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def iso_date_format(cls, v, info: ValidationInfo):
        if v is None or isinstance(v, date):
            return v
        if not isinstance(v, str) or not DATE_PATTERN.match(v):
            raise ValueError(f'{info.field_name} must be in YYYY-MM-DD format')
        return v

    @field_validator('holiday_date', mode='before')
    @classmethod
    def month_day_format(cls, v):
        if v is None:
            return v
        match = HOLIDAY_PATTERN.match(v) if isinstance(v, str) else None
        if not match:
            raise ValueError('holiday_date must be in MM-DD format')
        month, day = int(match.group(1)), int(match.group(2))
        # No cross-check against month length: 02-31 is accepted
        if not 1 <= month <= 12:
            raise ValueError('holiday_date month must be between 01 and 12')
        if not 1 <= day <= 31:
            raise ValueError('holiday_date day must be between 01 and 31')
        return v

    @model_validator(mode='after')
    def type_specific_fields(self, info: ValidationInfo) -> "SpecialPriceRule":
        if self.type == SpecialPriceType.DATE_RANGE:
            if self.start_date is None or self.end_date is None:
                raise ValueError('start_date and end_date are required for date_range')
            if self.start_date >= self.end_date:
                raise ValueError('start_date must be before end_date')
            today = (info.context or {}).get('today')
            if today is not None and self.end_date < today:
                raise ValueError('end_date cannot be in the past')
        elif self.type == SpecialPriceType.DAY_OF_WEEK:
            if not self.days_of_week:
                raise ValueError('days_of_week must be a non-empty list for day_of_week')
            if any(d < 0 or d > 6 for d in self.days_of_week):
                raise ValueError('days_of_week values must be between 0 (Sunday) and 6 (Saturday)')
        elif self.type == SpecialPriceType.HOLIDAY:
            if not self.holiday_date:
                raise ValueError('holiday_date is required for holiday')
        return self

    # ==================== QUERY METHODS ====================
    def is_active(self) -> bool:
        return self.active is not False

    def covers(self, day: date) -> bool:
        """Inclusive containment for date_range rules"""
        if self.start_date is None or self.end_date is None:
            return False
        return self.start_date <= day <= self.end_date

    def package_days(self) -> int:
        """Inclusive length of the rule's own range"""
        return (self.end_date - self.start_date).days + 1

    def has_elapsed(self, today: date) -> bool:
        return (
            self.type == SpecialPriceType.DATE_RANGE
            and self.end_date is not None
            and self.end_date < today
        )


def validate_special_price(data: Any, today: Optional[date] = None) -> Optional[str]:
    """Return the first violation in ``data`` or None when it is a valid rule.

    ``today`` enables the creation-time check that a date range has not
    already ended.
    """
    try:
        SpecialPriceRule.model_validate(data, context={'today': today})
    except PydanticValidationError as exc:
        return describe_validation_error(exc)
    return None


def build_special_price(data: Dict[str, Any], today: Optional[date] = None) -> SpecialPriceRule:
    try:
        return SpecialPriceRule.model_validate(data, context={'today': today})
    except PydanticValidationError as exc:
        raise ValidationError(describe_validation_error(exc))
