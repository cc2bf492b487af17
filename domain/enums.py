"""Domain Enums"""
from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Bookings in these states block the calendar
ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class SpecialPriceType(str, Enum):
    DATE_RANGE = "date_range"
    DAY_OF_WEEK = "day_of_week"
    HOLIDAY = "holiday"


class GuestKind(str, Enum):
    USER = "user"
    GUEST = "guest"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class PriceSource(str, Enum):
    """Which tier produced a day's price"""
    PACKAGE = "package"
    DATE_RANGE = "date_range"
    HOLIDAY = "holiday"
    DAY_OF_WEEK = "day_of_week"
    BASE = "base"
