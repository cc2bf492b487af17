"""Pricing engine - nightly price resolution over special price rules"""
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from domain.entities import Area
from domain.enums import PriceSource, SpecialPriceType
from domain.exceptions import ValidationError
from domain.special_prices import SpecialPriceRule
from domain.value_objects import DateRange, normalize_date

CENTS = Decimal("0.01")


class DayPrice(BaseModel):
    """Price charged for one calendar day and the tier that produced it"""
    day: date
    price: Decimal
    source: PriceSource
    rule_id: Optional[UUID] = None
    rule_name: Optional[str] = None

    class Config:
        frozen = True


def month_day(day: date) -> str:
    return f"{day.month:02d}-{day.day:02d}"


def weekday_sunday_first(day: date) -> int:
    """0=Sunday .. 6=Saturday"""
    return day.isoweekday() % 7


def _is_package(rule: SpecialPriceRule, day: date) -> bool:
    return rule.type == SpecialPriceType.DATE_RANGE and rule.is_package is True and rule.covers(day)


def _is_date_range(rule: SpecialPriceRule, day: date) -> bool:
    return rule.type == SpecialPriceType.DATE_RANGE and rule.is_package is not True and rule.covers(day)


def _is_holiday(rule: SpecialPriceRule, day: date) -> bool:
    return rule.type == SpecialPriceType.HOLIDAY and rule.holiday_date == month_day(day)


def _is_day_of_week(rule: SpecialPriceRule, day: date) -> bool:
    return (
        rule.type == SpecialPriceType.DAY_OF_WEEK
        and bool(rule.days_of_week)
        and weekday_sunday_first(day) in rule.days_of_week
    )


# Strict priority: the first tier with a matching rule decides the price
TIERS: List[tuple] = [
    (PriceSource.PACKAGE, _is_package),
    (PriceSource.DATE_RANGE, _is_date_range),
    (PriceSource.HOLIDAY, _is_holiday),
    (PriceSource.DAY_OF_WEEK, _is_day_of_week),
]


class PriceResolver:
    """Computes what an area charges per day and per stay.

    Rules are tried tier by tier (package, date range, holiday, day of
    week) and the area's base price applies when none matches. When
    several rules of the same tier match, the most recently created one
    wins; rules created at the same instant keep their storage order.
    """

    def quote_day(self, area: Area, day: date) -> DayPrice:
        day = normalize_date(day)
        rules = area.active_special_prices()

        for source, matches in TIERS:
            candidates = [rule for rule in rules if matches(rule, day)]
            if not candidates:
                continue
            rule = self._pick(candidates)
            price = rule.price
            if source == PriceSource.PACKAGE:
                price = rule.price / rule.package_days()
            return DayPrice(day=day, price=price, source=source, rule_id=rule.rule_id, rule_name=rule.name)

        return DayPrice(day=day, price=area.price_per_day, source=PriceSource.BASE)

    def price_for_date(self, area: Area, day: date) -> Decimal:
        return self.quote_day(area, day).price

    def breakdown(self, area: Area, check_in: date, check_out: date) -> List[DayPrice]:
        """One entry per charged day of [check_in, check_out)"""
        stay = self._stay(check_in, check_out)
        return [self.quote_day(area, day) for day in stay.days()]

    def total_price(self, area: Area, check_in: date, check_out: date) -> Decimal:
        days = self.breakdown(area, check_in, check_out)
        total = sum((entry.price for entry in days), Decimal("0"))
        return total.quantize(CENTS, rounding=ROUND_HALF_UP)

    @staticmethod
    def _pick(candidates: List[SpecialPriceRule]) -> SpecialPriceRule:
        # max() keeps the first of equal keys, so ties fall back to storage order
        return max(candidates, key=lambda rule: rule.created_at)

    @staticmethod
    def _stay(check_in: date, check_out: date) -> DateRange:
        check_in, check_out = normalize_date(check_in), normalize_date(check_out)
        if check_out <= check_in:
            raise ValidationError("Check-out must be after check-in")
        return DateRange(check_in=check_in, check_out=check_out)
