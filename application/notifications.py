"""Notification sender contract"""
import logging
from abc import ABC, abstractmethod

from domain.entities import Area, Booking
from domain.enums import BookingStatus

logger = logging.getLogger(__name__)


class NotificationSender(ABC):
    """Fire-and-forget messages about bookings"""

    @abstractmethod
    async def booking_created(self, booking: Booking, area: Area) -> None:
        pass

    @abstractmethod
    async def booking_status_changed(self, booking: Booking, previous: BookingStatus) -> None:
        pass


class LoggingNotificationSender(NotificationSender):
    """Writes notifications to the application log instead of sending email"""

    async def booking_created(self, booking: Booking, area: Area) -> None:
        logger.info(
            "New booking %s for area '%s' (%s -> %s, %s guests, total %s)",
            booking.booking_id, area.name, booking.check_in, booking.check_out,
            booking.guests, booking.total_price
        )

    async def booking_status_changed(self, booking: Booking, previous: BookingStatus) -> None:
        logger.info(
            "Booking %s changed from %s to %s",
            booking.booking_id, previous.value, booking.status.value
        )


async def notify_safely(coro) -> None:
    """Await a notification; failures are logged and never reach the caller"""
    try:
        await coro
    except Exception:
        logger.exception("Notification delivery failed")
