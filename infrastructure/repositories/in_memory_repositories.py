"""In-Memory Repository Implementations

Documents are stored as copies so that, like a real document store, an
entity only changes in storage through ``update``, which writes its dirty
fields.
"""
from typing import Collection, Dict, List, Optional, TypeVar
from uuid import UUID

from domain.auth import UserInDB
from domain.entities import Area, Booking, Guest, TrackedEntity
from domain.enums import BookingStatus
from domain.exceptions import DuplicateKeyError
from domain.repositories import AreaRepository, BookingRepository, GuestRepository, UserRepository
from domain.value_objects import GuestRef

E = TypeVar("E", bound=TrackedEntity)


def _copy(entity):
    return entity.model_copy(deep=True)


def _write_dirty(stored: E, entity: E) -> E:
    """Copy only the dirty fields of ``entity`` onto the stored document"""
    changes = {field: getattr(entity, field) for field in entity.dirty_fields()}
    updated = stored.model_copy(update=changes, deep=True)
    entity.clear_dirty()
    return updated


class InMemoryAreaRepository(AreaRepository):
    """In-memory implementation of AreaRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Area] = {}

    async def save(self, area: Area) -> Area:
        """Save area to memory"""
        area.clear_dirty()
        self._storage[area.area_id] = _copy(area)
        return area

    async def find_by_id(self, area_id: UUID) -> Optional[Area]:
        """Find area by ID"""
        area = self._storage.get(area_id)
        return _copy(area) if area else None

    def _matching(self, active, owner_id, search) -> List[Area]:
        results = []
        term = search.lower() if search else None
        for area in self._storage.values():
            if active is not None and area.active != active:
                continue
            if owner_id is not None and area.owner_id != owner_id:
                continue
            if term and not any(term in (text or "").lower() for text in (area.name, area.description, area.address)):
                continue
            results.append(area)
        return sorted(results, key=lambda a: a.created_at, reverse=True)

    async def find(
        self,
        active: Optional[bool] = None,
        owner_id: Optional[UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[Area]:
        """Find areas matching the filters, newest first"""
        results = self._matching(active, owner_id, search)[skip:]
        if limit is not None:
            results = results[:limit]
        return [_copy(a) for a in results]

    async def count(
        self,
        active: Optional[bool] = None,
        owner_id: Optional[UUID] = None,
        search: Optional[str] = None
    ) -> int:
        """Count areas matching the filters"""
        return len(self._matching(active, owner_id, search))

    async def update(self, area: Area) -> Area:
        """Update area"""
        if area.area_id not in self._storage:
            raise ValueError("Area not found")
        self._storage[area.area_id] = _write_dirty(self._storage[area.area_id], area)
        return area

    async def delete(self, area_id: UUID) -> bool:
        """Delete area"""
        if area_id in self._storage:
            del self._storage[area_id]
            return True
        return False


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of BookingRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Booking] = {}

    async def save(self, booking: Booking) -> Booking:
        """Save booking to memory"""
        booking.clear_dirty()
        self._storage[booking.booking_id] = _copy(booking)
        return booking

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        booking = self._storage.get(booking_id)
        return _copy(booking) if booking else None

    def _by_area(self, area_id, statuses) -> List[Booking]:
        return [
            b for b in self._storage.values()
            if b.area_id == area_id and (statuses is None or b.status in statuses)
        ]

    async def find_by_area(
        self,
        area_id: UUID,
        statuses: Optional[Collection[BookingStatus]] = None
    ) -> List[Booking]:
        """Find bookings of an area, check-in descending"""
        results = sorted(self._by_area(area_id, statuses), key=lambda b: b.check_in, reverse=True)
        return [_copy(b) for b in results]

    async def find_by_areas(self, area_ids: Collection[UUID]) -> List[Booking]:
        """Find bookings of several areas, newest first"""
        wanted = set(area_ids)
        results = [b for b in self._storage.values() if b.area_id in wanted]
        return [_copy(b) for b in sorted(results, key=lambda b: b.created_at, reverse=True)]

    async def find_by_guest(self, guest: GuestRef) -> List[Booking]:
        """Find bookings made by a guest, newest first"""
        results = [b for b in self._storage.values() if b.guest == guest]
        return [_copy(b) for b in sorted(results, key=lambda b: b.created_at, reverse=True)]

    async def count_by_area(
        self,
        area_id: UUID,
        statuses: Optional[Collection[BookingStatus]] = None
    ) -> int:
        """Count bookings of an area"""
        return len(self._by_area(area_id, statuses))

    async def update(self, booking: Booking) -> Booking:
        """Update booking"""
        if booking.booking_id not in self._storage:
            raise ValueError("Booking not found")
        self._storage[booking.booking_id] = _write_dirty(self._storage[booking.booking_id], booking)
        return booking


class InMemoryGuestRepository(GuestRepository):
    """In-memory implementation of GuestRepository with a sparse unique CPF index"""

    def __init__(self):
        self._storage: Dict[UUID, Guest] = {}

    def _check_cpf(self, guest: Guest) -> None:
        if not guest.cpf:
            return
        for other in self._storage.values():
            if other.cpf == guest.cpf and other.guest_id != guest.guest_id:
                raise DuplicateKeyError("cpf", guest.cpf)

    async def save(self, guest: Guest) -> Guest:
        """Save guest to memory"""
        self._check_cpf(guest)
        guest.clear_dirty()
        self._storage[guest.guest_id] = _copy(guest)
        return guest

    async def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        """Find guest by ID"""
        guest = self._storage.get(guest_id)
        return _copy(guest) if guest else None

    async def find_by_cpf(self, cpf: str) -> Optional[Guest]:
        """Find guest by normalized CPF"""
        for guest in self._storage.values():
            if guest.cpf == cpf:
                return _copy(guest)
        return None

    async def find_by_phone(self, phone: str) -> Optional[Guest]:
        """Find guest by exact phone"""
        for guest in self._storage.values():
            if guest.phone == phone:
                return _copy(guest)
        return None

    async def update(self, guest: Guest) -> Guest:
        """Update guest"""
        if guest.guest_id not in self._storage:
            raise ValueError("Guest not found")
        self._check_cpf(guest)
        self._storage[guest.guest_id] = _write_dirty(self._storage[guest.guest_id], guest)
        return guest


class InMemoryUserRepository(UserRepository):
    """In-memory implementation of UserRepository"""

    def __init__(self):
        self._storage: Dict[UUID, UserInDB] = {}

    async def save(self, user: UserInDB) -> UserInDB:
        """Save user to memory"""
        if await self.find_by_email(user.email):
            raise DuplicateKeyError("email", user.email)
        self._storage[user.user_id] = user.model_copy(deep=True)
        return user

    async def find_by_id(self, user_id: UUID) -> Optional[UserInDB]:
        """Find user by ID"""
        user = self._storage.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def find_by_email(self, email: str) -> Optional[UserInDB]:
        """Find user by email"""
        email = email.lower()
        for user in self._storage.values():
            if user.email == email:
                return user.model_copy(deep=True)
        return None

    def _matching(self, search) -> List[UserInDB]:
        term = search.lower() if search else None
        results = [
            u for u in self._storage.values()
            if not term or term in u.name.lower() or term in u.email.lower()
        ]
        return sorted(results, key=lambda u: u.created_at, reverse=True)

    async def find(
        self,
        search: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[UserInDB]:
        """Find users whose name or email contains ``search``, newest first"""
        results = self._matching(search)[skip:]
        if limit is not None:
            results = results[:limit]
        return [u.model_copy(deep=True) for u in results]

    async def count(self, search: Optional[str] = None) -> int:
        """Count users matching the search"""
        return len(self._matching(search))

    async def update(self, user: UserInDB) -> UserInDB:
        """Update user"""
        if user.user_id not in self._storage:
            raise ValueError("User not found")
        other = await self.find_by_email(user.email)
        if other and other.user_id != user.user_id:
            raise DuplicateKeyError("email", user.email)
        self._storage[user.user_id] = user.model_copy(deep=True)
        return user

    async def delete(self, user_id: UUID) -> bool:
        """Delete user"""
        if user_id in self._storage:
            del self._storage[user_id]
            return True
        return False
