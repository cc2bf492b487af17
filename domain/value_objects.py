"""Domain Value Objects"""
import re
from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime, timedelta
from uuid import UUID, uuid4
from typing import Iterator, Optional

from domain.enums import GuestKind


def normalize_date(value):
    """Drop the time-of-day component so day arithmetic never drifts"""
    if isinstance(value, datetime):
        return value.date()
    return value


def normalize_cpf(cpf: Optional[str]) -> Optional[str]:
    """Strip every non-digit; an empty result means no CPF"""
    if not cpf:
        return None
    digits = re.sub(r"\D", "", cpf)
    return digits or None


class DateRange(BaseModel):
    """Value Object for a half-open stay interval [check_in, check_out)"""
    check_in: date
    check_out: date

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

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def days(self) -> Iterator[date]:
        """Every charged calendar day; check-out day is excluded"""
        current = self.check_in
        while current < self.check_out:
            yield current
            current += timedelta(days=1)

    def overlaps(self, check_in: date, check_out: date) -> bool:
        return self.check_in < check_out and self.check_out > check_in

    class Config:
        frozen = True


class GuestRef(BaseModel):
    """Tagged reference to whoever a booking is for"""
    kind: GuestKind
    id: UUID

    @classmethod
    def user(cls, user_id: UUID) -> "GuestRef":
        return cls(kind=GuestKind.USER, id=user_id)

    @classmethod
    def guest(cls, guest_id: UUID) -> "GuestRef":
        return cls(kind=GuestKind.GUEST, id=guest_id)

    def is_user(self, user_id: UUID) -> bool:
        return self.kind == GuestKind.USER and self.id == user_id

    class Config:
        frozen = True


class GuestInfo(BaseModel):
    """Guest details supplied by an owner recording an offline booking"""
    name: str
    phone: str
    cpf: Optional[str] = None
    birth_date: Optional[date] = None

    @field_validator('name', 'phone')
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    class Config:
        frozen = True


class Faq(BaseModel):
    """Child Entity for an area's frequently asked questions"""
    faq_id: UUID = Field(default_factory=uuid4)
    question: str = Field(max_length=500)
    answer: str = Field(max_length=2000)

    @field_validator('question', 'answer')
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Each FAQ needs a question and an answer')
        return v

    class Config:
        from_attributes = True
