"""Booking status state machine"""
from typing import Dict, FrozenSet

from domain.enums import BookingStatus
from domain.exceptions import InvalidTransitionError

TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return BookingStatus(target) in TRANSITIONS[BookingStatus(current)]


def apply_transition(current: BookingStatus, target: BookingStatus) -> BookingStatus:
    """Return the new status or raise InvalidTransitionError naming both states"""
    current = BookingStatus(current)
    try:
        target = BookingStatus(target)
    except ValueError:
        raise InvalidTransitionError(current.value, str(target))
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)
    return target


def is_terminal(status: BookingStatus) -> bool:
    return not TRANSITIONS[BookingStatus(status)]
