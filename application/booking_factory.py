"""Booking creation - validation, conflict check, pricing and persistence"""
import asyncio
import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Optional
from uuid import UUID

from application.errors import translate_errors
from application.guest_resolver import GuestIdentityResolver
from domain.auth import User
from domain.conflicts import ConflictDetector
from domain.entities import Area, Booking
from domain.enums import BookingStatus
from domain.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from domain.pricing import PriceResolver
from domain.repositories import BookingRepository
from domain.value_objects import DateRange, GuestInfo, GuestRef, normalize_date

logger = logging.getLogger(__name__)


class BookingFactory:
    """Validates and builds new bookings, self-service or external.

    Creation is serialised per area: the conflict check and the booking
    write happen under the same lock, so two requests for overlapping
    dates cannot both pass the check. The locks live in this process
    only (one per area, never evicted); several workers sharing a store
    need a constraint in the store itself.
    """

    def __init__(
        self,
        booking_repo: BookingRepository,
        conflict_detector: ConflictDetector,
        price_resolver: PriceResolver,
        guest_resolver: GuestIdentityResolver,
        today: Callable[[], date] = date.today
    ):
        self.booking_repo = booking_repo
        self.conflict_detector = conflict_detector
        self.price_resolver = price_resolver
        self.guest_resolver = guest_resolver
        self.today = today
        self._area_locks: Dict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    @translate_errors
    async def create_booking(
        self,
        area: Optional[Area],
        requester: User,
        check_in: date,
        check_out: date,
        guests_count: int,
        is_external: bool = False,
        external_guest: Optional[GuestInfo] = None,
        total_price: Optional[Decimal] = None,
        status: Optional[BookingStatus] = None
    ) -> Booking:
        """Create a booking; each failed check raises and stops the flow"""
        check_in, check_out = normalize_date(check_in), normalize_date(check_out)

        if area is None:
            raise NotFoundError("Area not found")
        if is_external:
            if not (area.is_owned_by(requester.user_id) or requester.is_admin):
                raise AuthorizationError("You are not allowed to record bookings for this area")
        else:
            if not area.active:
                raise ValidationError("This area is not available for booking")
            if area.is_owned_by(requester.user_id):
                raise ValidationError("You cannot book your own area")

        if guests_count < 1:
            raise ValidationError("At least 1 guest is required")
        if guests_count > area.max_guests:
            raise ValidationError(f"This area supports at most {area.max_guests} guests")

        if check_out <= check_in:
            raise ValidationError("Check-out must be after check-in")
        if not is_external and check_in < self.today():
            raise ValidationError("Check-in date cannot be in the past")

        if is_external and external_guest is None:
            raise ValidationError("Guest details are required for external bookings")

        async with self._area_locks[area.area_id]:
            if await self.conflict_detector.has_conflict(area.area_id, check_in, check_out):
                logger.warning(
                    "Rejected booking for area %s: %s..%s overlaps an active booking",
                    area.area_id, check_in, check_out
                )
                raise ConflictError("This area is already booked for the selected dates")

            # An owner-entered total for an external booking overrides the computed one
            if not (is_external and total_price is not None):
                total_price = self.price_resolver.total_price(area, check_in, check_out)
            elif total_price < 0:
                raise ValidationError("Total price cannot be negative")

            # Guest records are written last, once nothing else can reject the booking
            if is_external:
                guest = await self.guest_resolver.resolve(external_guest)
                guest_ref = GuestRef.guest(guest.guest_id)
            else:
                guest_ref = GuestRef.user(requester.user_id)

            if is_external:
                initial_status = status or BookingStatus.CONFIRMED
            else:
                initial_status = BookingStatus.PENDING

            booking = Booking.create(
                area_id=area.area_id,
                guest=guest_ref,
                date_range=DateRange(check_in=check_in, check_out=check_out),
                guests=guests_count,
                total_price=total_price,
                status=initial_status
            )
            booking = await self.booking_repo.save(booking)

        logger.info(
            "Created %s booking %s on area %s (%s nights, total %s, %s)",
            "external" if is_external else "self-service", booking.booking_id, area.area_id,
            booking.get_nights(), booking.total_price, booking.status.value
        )
        return booking
