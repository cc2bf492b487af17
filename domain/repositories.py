"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Collection, Optional, List
from uuid import UUID

from domain.auth import UserInDB
from domain.entities import Area, Booking, Guest
from domain.enums import BookingStatus
from domain.value_objects import GuestRef


class AreaRepository(ABC):
    """Repository interface for Area Aggregate"""

    @abstractmethod
    async def save(self, area: Area) -> Area:
        """Create area"""
        pass

    @abstractmethod
    async def find_by_id(self, area_id: UUID) -> Optional[Area]:
        """Find area by ID"""
        pass

    @abstractmethod
    async def find(
        self,
        active: Optional[bool] = None,
        owner_id: Optional[UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[Area]:
        """Find areas matching the filters, newest first"""
        pass

    @abstractmethod
    async def count(
        self,
        active: Optional[bool] = None,
        owner_id: Optional[UUID] = None,
        search: Optional[str] = None
    ) -> int:
        """Count areas matching the filters"""
        pass

    @abstractmethod
    async def update(self, area: Area) -> Area:
        """Persist the dirty fields of an area"""
        pass

    @abstractmethod
    async def delete(self, area_id: UUID) -> bool:
        """Delete area"""
        pass


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate"""

    @abstractmethod
    async def save(self, booking: Booking) -> Booking:
        """Create booking"""
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        pass

    @abstractmethod
    async def find_by_area(
        self,
        area_id: UUID,
        statuses: Optional[Collection[BookingStatus]] = None
    ) -> List[Booking]:
        """Find bookings of an area, check-in descending"""
        pass

    @abstractmethod
    async def find_by_areas(self, area_ids: Collection[UUID]) -> List[Booking]:
        """Find bookings of several areas, newest first"""
        pass

    @abstractmethod
    async def find_by_guest(self, guest: GuestRef) -> List[Booking]:
        """Find bookings made by a guest, newest first"""
        pass

    @abstractmethod
    async def count_by_area(
        self,
        area_id: UUID,
        statuses: Optional[Collection[BookingStatus]] = None
    ) -> int:
        """Count bookings of an area"""
        pass

    @abstractmethod
    async def update(self, booking: Booking) -> Booking:
        """Persist the dirty fields of a booking"""
        pass


class GuestRepository(ABC):
    """Repository interface for Guest Aggregate.

    Implementations keep CPF unique when present and raise
    DuplicateKeyError on violation.
    """

    @abstractmethod
    async def save(self, guest: Guest) -> Guest:
        """Create guest"""
        pass

    @abstractmethod
    async def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        """Find guest by ID"""
        pass

    @abstractmethod
    async def find_by_cpf(self, cpf: str) -> Optional[Guest]:
        """Find guest by normalized CPF"""
        pass

    @abstractmethod
    async def find_by_phone(self, phone: str) -> Optional[Guest]:
        """Find guest by exact phone"""
        pass

    @abstractmethod
    async def update(self, guest: Guest) -> Guest:
        """Persist the dirty fields of a guest"""
        pass


class UserRepository(ABC):
    """Repository interface for registered users"""

    @abstractmethod
    async def save(self, user: UserInDB) -> UserInDB:
        """Create user; email is unique"""
        pass

    @abstractmethod
    async def find_by_id(self, user_id: UUID) -> Optional[UserInDB]:
        """Find user by ID"""
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[UserInDB]:
        """Find user by email"""
        pass

    @abstractmethod
    async def find(
        self,
        search: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[UserInDB]:
        """Find users whose name or email contains ``search``, newest first"""
        pass

    @abstractmethod
    async def count(self, search: Optional[str] = None) -> int:
        """Count users matching the search"""
        pass

    @abstractmethod
    async def update(self, user: UserInDB) -> UserInDB:
        """Replace the stored user; email stays unique"""
        pass

    @abstractmethod
    async def delete(self, user_id: UUID) -> bool:
        """Delete user"""
        pass
