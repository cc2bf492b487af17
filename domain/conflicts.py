"""Conflict detection over half-open stay intervals"""
import logging
from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from domain.entities import Booking
from domain.enums import ACTIVE_BOOKING_STATUSES
from domain.repositories import BookingRepository
from domain.value_objects import normalize_date

logger = logging.getLogger(__name__)


def intervals_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """[a_start, a_end) and [b_start, b_end) share at least one day"""
    return a_start < b_end and a_end > b_start


def first_conflict(
    bookings: Iterable[Booking],
    check_in: date,
    check_out: date,
    exclude_booking_id: Optional[UUID] = None
) -> Optional[Booking]:
    for booking in bookings:
        if booking.status not in ACTIVE_BOOKING_STATUSES:
            continue
        if exclude_booking_id is not None and booking.booking_id == exclude_booking_id:
            continue
        if intervals_overlap(booking.check_in, booking.check_out, check_in, check_out):
            return booking
    return None


class ConflictDetector:
    """Checks a candidate stay against the active bookings of an area"""

    def __init__(self, booking_repo: BookingRepository):
        self.booking_repo = booking_repo

    async def has_conflict(
        self,
        area_id: UUID,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[UUID] = None
    ) -> bool:
        check_in, check_out = normalize_date(check_in), normalize_date(check_out)
        bookings = await self.booking_repo.find_by_area(area_id, statuses=ACTIVE_BOOKING_STATUSES)
        conflict = first_conflict(bookings, check_in, check_out, exclude_booking_id)
        if conflict is not None:
            logger.debug(
                "Stay %s..%s on area %s overlaps booking %s",
                check_in, check_out, area_id, conflict.booking_id
            )
        return conflict is not None
