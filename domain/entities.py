"""Domain Entities - Aggregates"""
import re
from pydantic import BaseModel, Field, PrivateAttr, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError
from uuid import UUID, uuid4
from datetime import datetime, date
from typing import Any, Dict, Iterable, List, Optional, Set
from decimal import Decimal

from domain.enums import BookingStatus, ACTIVE_BOOKING_STATUSES
from domain.exceptions import (
    AuthorizationError, NotFoundError, StateImmutabilityError, ValidationError,
    describe_validation_error,
)
from domain.lifecycle import apply_transition
from domain.special_prices import DATE_FIELDS, SpecialPriceRule, build_special_price
from domain.value_objects import DateRange, Faq, GuestInfo, GuestRef, normalize_cpf, normalize_date

PHONE_PATTERN = re.compile(r"^[\d\s()\-+]+$")


class TrackedEntity(BaseModel):
    """Entity that records which of its fields changed since it was loaded.

    Repositories persist only the dirty fields on update.
    """

    _dirty: Set[str] = PrivateAttr(default_factory=set)

    def mark_dirty(self, *fields: str) -> None:
        self._dirty.update(fields)

    def dirty_fields(self) -> Set[str]:
        return set(self._dirty)

    def clear_dirty(self) -> None:
        self._dirty.clear()

    def _apply_changes(self, changes: Dict[str, Any], context: Optional[Dict[str, Any]] = None) -> Set[str]:
        """Revalidate the entity with ``changes`` merged in, then assign them"""
        merged = {**self.model_dump(), **changes}
        try:
            validated = type(self).model_validate(merged, context=context)
        except PydanticValidationError as exc:
            raise ValidationError(describe_validation_error(exc))
        changed = set()
        for field in changes:
            new_value = getattr(validated, field)
            if getattr(self, field) != new_value:
                setattr(self, field, new_value)
                changed.add(field)
        if changed:
            self._touch(*changed)
        return changed

    def _touch(self, *fields: str) -> None:
        self.updated_at = datetime.utcnow()
        self.version += 1
        self.mark_dirty(*fields, "updated_at", "version")


def _validated(model_cls, context: Optional[Dict[str, Any]] = None, **data):
    try:
        return model_cls.model_validate(data, context=context)
    except PydanticValidationError as exc:
        raise ValidationError(describe_validation_error(exc))


class Area(TrackedEntity):
    """Area Aggregate Root Entity - a rentable space with its pricing rules"""

    # Identity
    area_id: UUID = Field(default_factory=uuid4)
    owner_id: UUID

    # Listing
    name: str = Field(min_length=2, max_length=100)
    description: str = Field(max_length=1000)
    address: str = Field(max_length=200)
    neighborhood: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    amenities: List[str] = []
    images: List[str] = []

    # Pricing & capacity
    price_per_day: Decimal = Field(ge=0)
    max_guests: int = Field(ge=1)

    active: bool = True

    # Collections (child entities)
    special_prices: List[SpecialPriceRule] = []
    faqs: List[Faq] = []

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    @field_validator('name', 'description', 'address')
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        owner_id: UUID,
        name: str,
        description: str,
        address: str,
        price_per_day: Decimal,
        max_guests: int = 1,
        neighborhood: Optional[str] = None,
        city: Optional[str] = None,
        amenities: Optional[List[str]] = None,
        images: Optional[List[str]] = None,
        special_prices: Optional[List[Dict[str, Any]]] = None,
        faqs: Optional[List[Dict[str, Any]]] = None,
        today: Optional[date] = None
    ) -> "Area":
        """Create new area, validating every embedded rule and FAQ"""
        rules = [build_special_price(data, today) for data in special_prices or []]
        faq_items = [_validated(Faq, **data) for data in faqs or []]
        return _validated(
            Area,
            owner_id=owner_id,
            name=name,
            description=description,
            address=address,
            neighborhood=neighborhood or None,
            city=city or None,
            price_per_day=price_per_day,
            max_guests=max_guests,
            amenities=amenities or [],
            images=images or [],
            special_prices=rules,
            faqs=faq_items
        )

    # ==================== MODIFICATION METHODS ====================
    def update_details(self, changes: Dict[str, Any]) -> Set[str]:
        """Apply a partial update of the listing fields"""
        allowed = {
            "name", "description", "address", "neighborhood", "city", "amenities",
            "images", "price_per_day", "max_guests", "active",
        }
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Unknown area fields: {', '.join(sorted(unknown))}")
        changes = dict(changes)
        # Empty strings clear the optional location fields
        for field in ("neighborhood", "city"):
            if changes.get(field) == "":
                changes[field] = None
        return self._apply_changes(changes)

    def replace_special_prices(self, rules: Iterable[Dict[str, Any]], today: Optional[date] = None) -> None:
        self.special_prices = [build_special_price(data, today) for data in rules]
        self._touch("special_prices")

    def replace_faqs(self, faqs: Iterable[Dict[str, Any]]) -> None:
        self.faqs = [_validated(Faq, **data) for data in faqs]
        self._touch("faqs")

    def add_special_price(self, data: Dict[str, Any], today: date) -> SpecialPriceRule:
        rule = build_special_price(data, today)
        self.special_prices.append(rule)
        self._touch("special_prices")
        return rule

    def update_special_price(self, rule_id: UUID, changes: Dict[str, Any], today: date) -> SpecialPriceRule:
        """Merge ``changes`` into a rule; dates of an elapsed range are frozen"""
        index, existing = self._find_special_price(rule_id)
        changes = {k: v for k, v in changes.items() if k not in ("rule_id", "created_at")}
        touches_dates = any(field in changes for field in DATE_FIELDS)

        if touches_dates and existing.has_elapsed(today):
            raise StateImmutabilityError("Cannot change the dates of a period that has already ended")

        merged = {**existing.model_dump(), **changes}
        updated = build_special_price(merged, today if touches_dates else None)
        self.special_prices[index] = updated
        self._touch("special_prices")
        return updated

    def remove_special_price(self, rule_id: UUID) -> SpecialPriceRule:
        index, rule = self._find_special_price(rule_id)
        del self.special_prices[index]
        self._touch("special_prices")
        return rule

    def get_special_price(self, rule_id: UUID) -> SpecialPriceRule:
        return self._find_special_price(rule_id)[1]

    # ==================== QUERY METHODS ====================
    def is_owned_by(self, user_id: UUID) -> bool:
        return self.owner_id == user_id

    def active_special_prices(self) -> List[SpecialPriceRule]:
        return [rule for rule in self.special_prices if rule.is_active()]

    def _find_special_price(self, rule_id: UUID):
        for index, rule in enumerate(self.special_prices):
            if rule.rule_id == rule_id:
                return index, rule
        raise NotFoundError("Special price not found")


class Booking(TrackedEntity):
    """Booking Aggregate Root Entity"""

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)

    # References to other aggregates
    area_id: UUID
    guest: GuestRef

    # Stay
    check_in: date
    check_out: date
    guests: int = Field(ge=1)
    total_price: Decimal = Field(ge=0)

    status: BookingStatus = BookingStatus.PENDING

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    @field_validator('check_in', 'check_out', mode='before')
    @classmethod
    def strip_time(cls, v):
        return normalize_date(v)

    @field_validator('check_out')
    @classmethod
    def check_out_after_check_in(cls, v, info):
        check_in = info.data.get('check_in')
        if check_in is not None and v <= check_in:
            raise ValueError('Check-out must be after check-in')
        return v

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        area_id: UUID,
        guest: GuestRef,
        date_range: DateRange,
        guests: int,
        total_price: Decimal,
        status: BookingStatus = BookingStatus.PENDING
    ) -> "Booking":
        return _validated(
            Booking,
            area_id=area_id,
            guest=guest,
            check_in=date_range.check_in,
            check_out=date_range.check_out,
            guests=guests,
            total_price=total_price,
            status=status
        )

    # ==================== STATE TRANSITION METHODS ====================
    def transition_to(self, target: BookingStatus) -> BookingStatus:
        """Move to ``target`` if the transition table allows it; returns the previous status"""
        previous = self.status
        self.status = apply_transition(self.status, target)
        self._touch("status")
        return previous

    def cancel_by_guest(self, user_id: UUID) -> BookingStatus:
        """Cancellation requested by the registered user the booking belongs to"""
        if not self.guest.is_user(user_id):
            raise AuthorizationError("You are not allowed to cancel this booking")
        return self.transition_to(BookingStatus.CANCELLED)

    # ==================== QUERY METHODS ====================
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    def date_range(self) -> DateRange:
        return DateRange(check_in=self.check_in, check_out=self.check_out)

    def get_nights(self) -> int:
        return (self.check_out - self.check_in).days


class Guest(TrackedEntity):
    """Guest Aggregate Root Entity - identity for offline bookings"""

    guest_id: UUID = Field(default_factory=uuid4)
    name: str = Field(min_length=2, max_length=100)
    phone: str
    cpf: Optional[str] = None
    birth_date: Optional[date] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()

    @field_validator('phone')
    @classmethod
    def phone_format(cls, v: str) -> str:
        v = v.strip()
        if not v or not PHONE_PATTERN.match(v):
            raise ValueError('Invalid phone format')
        return v

    @field_validator('cpf', mode='before')
    @classmethod
    def cpf_digits(cls, v):
        v = normalize_cpf(v)
        if v is not None and len(v) != 11:
            raise ValueError('CPF must contain 11 digits')
        return v

    @field_validator('birth_date')
    @classmethod
    def birth_date_not_in_future(cls, v, info: ValidationInfo):
        today = (info.context or {}).get('today')
        if v is not None and today is not None and v > today:
            raise ValueError('Birth date cannot be in the future')
        return v

    @staticmethod
    def create(info: GuestInfo, today: Optional[date] = None) -> "Guest":
        return _validated(
            Guest,
            context={'today': today},
            name=info.name,
            phone=info.phone,
            cpf=info.cpf,
            birth_date=info.birth_date
        )

    def merge(self, info: GuestInfo, today: Optional[date] = None) -> Set[str]:
        """Enrich this record from ``info`` without erasing populated fields.

        Returns the names of the fields that changed.
        """
        changes: Dict[str, Any] = {}
        if info.name and info.name != self.name:
            changes["name"] = info.name
        if info.phone and info.phone != self.phone:
            changes["phone"] = info.phone
        cpf = normalize_cpf(info.cpf)
        if cpf and not self.cpf:
            changes["cpf"] = cpf
        if info.birth_date and not self.birth_date:
            changes["birth_date"] = info.birth_date
        if not changes:
            return set()
        return self._apply_changes(changes, context={'today': today})
