"""Application Services - Business use cases"""
import logging
import re
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from application.booking_factory import BookingFactory
from application.errors import translate_errors
from application.notifications import NotificationSender, notify_safely
from domain.auth import User, UserInDB
from domain.conflicts import ConflictDetector
from domain.entities import Area, Booking
from domain.enums import ACTIVE_BOOKING_STATUSES, BookingStatus, GuestKind, UserRole
from domain.exceptions import (
    AuthorizationError, ConflictError, DuplicateKeyError, NotFoundError, ValidationError,
)
from domain.pricing import DayPrice, PriceResolver
from domain.repositories import AreaRepository, BookingRepository, GuestRepository, UserRepository
from domain.special_prices import SpecialPriceRule
from domain.value_objects import GuestInfo, GuestRef
from infrastructure.config import Settings
from infrastructure.security import create_access_token, get_password_hash, verify_password

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


def _can_manage(area: Area, user: User) -> bool:
    return area.is_owned_by(user.user_id) or user.is_admin


class AreaService:
    """Service for Area and special price use cases"""

    def __init__(
        self,
        area_repo: AreaRepository,
        booking_repo: BookingRepository,
        conflict_detector: ConflictDetector,
        price_resolver: PriceResolver,
        settings: Settings,
        today: Callable[[], date] = date.today
    ):
        self.area_repo = area_repo
        self.booking_repo = booking_repo
        self.conflict_detector = conflict_detector
        self.price_resolver = price_resolver
        self.settings = settings
        self.today = today

    async def _get_area(self, area_id: UUID) -> Area:
        area = await self.area_repo.find_by_id(area_id)
        if not area:
            raise NotFoundError("Area not found")
        return area

    async def _get_managed_area(self, area_id: UUID, user: User) -> Area:
        area = await self._get_area(area_id)
        if not _can_manage(area, user):
            raise AuthorizationError("You are not allowed to manage this area")
        return area

    @translate_errors
    async def create_area(self, owner: User, **data: Any) -> Area:
        """Create a new area owned by the caller"""
        area = Area.create(owner_id=owner.user_id, today=self.today(), **data)
        area = await self.area_repo.save(area)
        logger.info("Area %s created by %s", area.area_id, owner.user_id)
        return area

    @translate_errors
    async def get_area(self, area_id: UUID) -> Area:
        return await self._get_area(area_id)

    @translate_errors
    async def list_areas(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        active: Optional[bool] = True
    ) -> Tuple[List[Area], int, int]:
        """Page of areas (public listing shows active areas by default), the total count and the page size used"""
        limit = limit or self.settings.default_page_size
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")
        limit = min(limit, self.settings.max_page_size)
        areas = await self.area_repo.find(active=active, search=search, skip=(page - 1) * limit, limit=limit)
        total = await self.area_repo.count(active=active, search=search)
        return areas, total, limit

    @translate_errors
    async def get_my_areas(self, owner: User) -> List[Area]:
        return await self.area_repo.find(owner_id=owner.user_id)

    @translate_errors
    async def update_area(
        self,
        area_id: UUID,
        user: User,
        changes: Dict[str, Any],
        special_prices: Optional[List[Dict[str, Any]]] = None,
        faqs: Optional[List[Dict[str, Any]]] = None
    ) -> Area:
        """Partial update; special prices and FAQs are replaced wholesale when given"""
        area = await self._get_managed_area(area_id, user)
        if changes:
            area.update_details(changes)
        if special_prices is not None:
            area.replace_special_prices(special_prices, self.today())
        if faqs is not None:
            area.replace_faqs(faqs)
        if area.dirty_fields():
            await self.area_repo.update(area)
            logger.info("Area %s updated by %s", area_id, user.user_id)
        return area

    @translate_errors
    async def delete_area(self, area_id: UUID, user: User) -> None:
        """Hard delete, refused while pending or confirmed bookings exist"""
        area = await self._get_managed_area(area_id, user)
        active_bookings = await self.booking_repo.count_by_area(area.area_id, ACTIVE_BOOKING_STATUSES)
        if active_bookings > 0:
            raise ConflictError("Cannot delete an area with active bookings")
        await self.area_repo.delete(area.area_id)
        logger.info("Area %s deleted by %s", area_id, user.user_id)

    @translate_errors
    async def check_availability(self, area_id: UUID, check_in: date, check_out: date) -> bool:
        area = await self._get_area(area_id)
        if check_out <= check_in:
            raise ValidationError("Check-out must be after check-in")
        return not await self.conflict_detector.has_conflict(area.area_id, check_in, check_out)

    @translate_errors
    async def quote(self, area_id: UUID, check_in: date, check_out: date) -> Tuple[List[DayPrice], Decimal]:
        """Per-day prices and total for a prospective stay"""
        area = await self._get_area(area_id)
        days = self.price_resolver.breakdown(area, check_in, check_out)
        return days, self.price_resolver.total_price(area, check_in, check_out)

    # ==================== SPECIAL PRICES ====================
    @translate_errors
    async def list_special_prices(self, area_id: UUID, user: User) -> List[SpecialPriceRule]:
        area = await self._get_managed_area(area_id, user)
        return area.special_prices

    @translate_errors
    async def create_special_price(self, area_id: UUID, user: User, data: Dict[str, Any]) -> SpecialPriceRule:
        area = await self._get_managed_area(area_id, user)
        rule = area.add_special_price(data, self.today())
        await self.area_repo.update(area)
        logger.info("Special price %s (%s) added to area %s", rule.rule_id, rule.type.value, area_id)
        return rule

    @translate_errors
    async def update_special_price(
        self,
        area_id: UUID,
        rule_id: UUID,
        user: User,
        changes: Dict[str, Any]
    ) -> SpecialPriceRule:
        area = await self._get_managed_area(area_id, user)
        rule = area.update_special_price(rule_id, changes, self.today())
        await self.area_repo.update(area)
        logger.info("Special price %s on area %s updated", rule_id, area_id)
        return rule

    @translate_errors
    async def delete_special_price(self, area_id: UUID, rule_id: UUID, user: User) -> None:
        area = await self._get_managed_area(area_id, user)
        area.remove_special_price(rule_id)
        await self.area_repo.update(area)
        logger.info("Special price %s removed from area %s", rule_id, area_id)


class BookingService:
    """Service for Booking business use cases"""

    def __init__(
        self,
        booking_repo: BookingRepository,
        area_repo: AreaRepository,
        guest_repo: GuestRepository,
        user_repo: UserRepository,
        factory: BookingFactory,
        notifier: NotificationSender
    ):
        self.booking_repo = booking_repo
        self.area_repo = area_repo
        self.guest_repo = guest_repo
        self.user_repo = user_repo
        self.factory = factory
        self.notifier = notifier

    async def _get_booking(self, booking_id: UUID) -> Booking:
        booking = await self.booking_repo.find_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    async def _get_area(self, area_id: UUID) -> Area:
        area = await self.area_repo.find_by_id(area_id)
        if not area:
            raise NotFoundError("Area not found")
        return area

    @translate_errors
    async def create_booking(
        self,
        user: User,
        area_id: UUID,
        check_in: date,
        check_out: date,
        guests: int
    ) -> Booking:
        """Self-service booking by a registered user; starts pending"""
        area = await self.area_repo.find_by_id(area_id)
        booking = await self.factory.create_booking(area, user, check_in, check_out, guests)
        await notify_safely(self.notifier.booking_created(booking, area))
        return booking

    @translate_errors
    async def create_external_booking(
        self,
        user: User,
        area_id: UUID,
        check_in: date,
        check_out: date,
        guests: int,
        guest_info: GuestInfo,
        total_price: Optional[Decimal] = None,
        status: Optional[BookingStatus] = None
    ) -> Booking:
        """Booking recorded by the area owner for a guest who booked offline"""
        area = await self.area_repo.find_by_id(area_id)
        booking = await self.factory.create_booking(
            area, user, check_in, check_out, guests,
            is_external=True,
            external_guest=guest_info,
            total_price=total_price,
            status=status
        )
        await notify_safely(self.notifier.booking_created(booking, area))
        return booking

    @translate_errors
    async def get_my_bookings(self, user: User) -> List[Booking]:
        return await self.booking_repo.find_by_guest(GuestRef.user(user.user_id))

    @translate_errors
    async def get_bookings_for_owner(self, owner: User) -> List[Booking]:
        areas = await self.area_repo.find(owner_id=owner.user_id)
        return await self.booking_repo.find_by_areas([a.area_id for a in areas])

    @translate_errors
    async def get_bookings_by_area(self, area_id: UUID, user: User) -> List[Booking]:
        area = await self._get_area(area_id)
        if not _can_manage(area, user):
            raise AuthorizationError("You are not allowed to see the bookings of this area")
        return await self.booking_repo.find_by_area(area_id)

    @translate_errors
    async def get_booking(self, booking_id: UUID, user: User) -> Booking:
        """Visible to the registered guest, the area owner and admins"""
        booking = await self._get_booking(booking_id)
        if booking.guest.is_user(user.user_id) or user.is_admin:
            return booking
        area = await self.area_repo.find_by_id(booking.area_id)
        if area and area.is_owned_by(user.user_id):
            return booking
        raise AuthorizationError("You are not allowed to see this booking")

    @translate_errors
    async def update_status(self, booking_id: UUID, user: User, status: BookingStatus) -> Booking:
        """Owner or admin driven status change, always checked against the transition table"""
        booking = await self._get_booking(booking_id)
        area = await self._get_area(booking.area_id)
        if not _can_manage(area, user):
            raise AuthorizationError("You are not allowed to update this booking")
        previous = booking.transition_to(status)
        await self.booking_repo.update(booking)
        logger.info("Booking %s: %s -> %s by %s", booking_id, previous.value, booking.status.value, user.user_id)
        await notify_safely(self.notifier.booking_status_changed(booking, previous))
        return booking

    @translate_errors
    async def cancel_booking(self, booking_id: UUID, user: User) -> Booking:
        """Cancellation by the registered user who made the booking"""
        booking = await self._get_booking(booking_id)
        previous = booking.cancel_by_guest(user.user_id)
        await self.booking_repo.update(booking)
        logger.info("Booking %s cancelled by its guest (was %s)", booking_id, previous.value)
        await notify_safely(self.notifier.booking_status_changed(booking, previous))
        return booking

    @translate_errors
    async def describe_guest(self, guest: GuestRef) -> Dict[str, Any]:
        """Contact summary of whoever the booking is for"""
        if guest.kind == GuestKind.USER:
            user = await self.user_repo.find_by_id(guest.id)
            if user is None:
                return {"kind": guest.kind.value, "id": guest.id}
            return {"kind": guest.kind.value, "id": guest.id, "name": user.name, "email": user.email}
        record = await self.guest_repo.find_by_id(guest.id)
        if record is None:
            return {"kind": guest.kind.value, "id": guest.id}
        return {
            "kind": guest.kind.value,
            "id": guest.id,
            "name": record.name,
            "phone": record.phone,
            "cpf": record.cpf,
            "birth_date": record.birth_date,
        }


def _clean_email(email: str) -> str:
    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email")
    return email


def _clean_name(name: str) -> str:
    name = name.strip()
    if not 2 <= len(name) <= 100:
        raise ValidationError("Name must be between 2 and 100 characters")
    return name


def _check_password(password: str, label: str = "Password") -> None:
    if len(password) < 6:
        raise ValidationError(f"{label} must be at least 6 characters long")


async def _create_account(user_repo: UserRepository, name: str, email: str, password: str, role: UserRole) -> User:
    email = _clean_email(email)
    _check_password(password)
    user = UserInDB(name=_clean_name(name), email=email, role=role, hashed_password=get_password_hash(password))
    try:
        await user_repo.save(user)
    except DuplicateKeyError:
        raise ConflictError("Email already registered")
    logger.info("Registered %s user %s", role.value, user.user_id)
    return user.public()


class AuthService:
    """Service for registration, login and token issuance"""

    def __init__(self, user_repo: UserRepository, settings: Settings):
        self.user_repo = user_repo
        self.settings = settings

    @translate_errors
    async def register(self, name: str, email: str, password: str, role: UserRole = UserRole.USER) -> User:
        return await _create_account(self.user_repo, name, email, password, role)

    @translate_errors
    async def authenticate(self, email: str, password: str) -> Optional[User]:
        user = await self.user_repo.find_by_email(email.strip().lower())
        if not user or not verify_password(password, user.hashed_password):
            return None
        return user.public()

    def issue_token(self, user: User) -> str:
        return create_access_token({"sub": str(user.user_id)}, self.settings)

    @translate_errors
    async def seed_admin(self) -> Optional[User]:
        """Create the configured admin account unless it already exists"""
        email, password = self.settings.admin_email, self.settings.admin_password
        if not email or not password:
            return None
        existing = await self.user_repo.find_by_email(email.strip().lower())
        if existing:
            return existing.public()
        return await self.register(self.settings.admin_name, email, password, role=UserRole.ADMIN)


class UserService:
    """Account management: admins manage every account, users their own"""

    def __init__(self, user_repo: UserRepository, settings: Settings):
        self.user_repo = user_repo
        self.settings = settings

    async def _get_user(self, user_id: UUID) -> UserInDB:
        user = await self.user_repo.find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def _require_admin(caller: User) -> None:
        if not caller.is_admin:
            raise AuthorizationError("Admin access required")

    @staticmethod
    def _require_self_or_admin(caller: User, user_id: UUID) -> None:
        if caller.user_id != user_id and not caller.is_admin:
            raise AuthorizationError("You are not allowed to manage this account")

    async def _write(self, user: UserInDB) -> None:
        try:
            await self.user_repo.update(user)
        except DuplicateKeyError:
            raise ConflictError("Email already registered")

    @translate_errors
    async def list_users(
        self,
        caller: User,
        page: int = 1,
        limit: Optional[int] = None,
        search: Optional[str] = None
    ) -> Tuple[List[User], int, int]:
        """Page of users matching ``search`` on name or email, the total count and the page size used"""
        self._require_admin(caller)
        limit = limit or self.settings.default_page_size
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")
        limit = min(limit, self.settings.max_page_size)
        users = await self.user_repo.find(search=search, skip=(page - 1) * limit, limit=limit)
        total = await self.user_repo.count(search=search)
        return [u.public() for u in users], total, limit

    @translate_errors
    async def get_user(self, caller: User, user_id: UUID) -> User:
        self._require_self_or_admin(caller, user_id)
        user = await self._get_user(user_id)
        return user.public()

    @translate_errors
    async def create_user(
        self,
        caller: User,
        name: str,
        email: str,
        password: str,
        role: UserRole = UserRole.USER
    ) -> User:
        self._require_admin(caller)
        return await _create_account(self.user_repo, name, email, password, role)

    @translate_errors
    async def update_user(self, caller: User, user_id: UUID, changes: Dict[str, Any]) -> User:
        """Apply name, email, role and active changes; only admins may touch role and active"""
        self._require_self_or_admin(caller, user_id)
        if not caller.is_admin and (changes.get("role") is not None or changes.get("active") is not None):
            raise AuthorizationError("Only admins can change roles or account status")

        user = await self._get_user(user_id)
        updates: Dict[str, Any] = {}
        if changes.get("name") is not None:
            updates["name"] = _clean_name(changes["name"])
        if changes.get("email") is not None:
            email = _clean_email(changes["email"])
            if email != user.email:
                updates["email"] = email
        if changes.get("role") is not None:
            try:
                updates["role"] = UserRole(changes["role"])
            except ValueError:
                raise ValidationError("Invalid role")
        if changes.get("active") is not None:
            updates["active"] = bool(changes["active"])

        updates = {field: value for field, value in updates.items() if getattr(user, field) != value}
        if not updates:
            return user.public()
        user = user.model_copy(update=updates)
        await self._write(user)
        logger.info("User %s updated by %s: %s", user_id, caller.user_id, ", ".join(sorted(updates)))
        return user.public()

    @translate_errors
    async def update_profile(self, caller: User, name: Optional[str] = None, email: Optional[str] = None) -> User:
        """Self-service change of the caller's own name and email"""
        return await self.update_user(caller, caller.user_id, {"name": name, "email": email})

    @translate_errors
    async def update_password(
        self,
        caller: User,
        user_id: UUID,
        current_password: str,
        new_password: str
    ) -> None:
        """Replace the password after checking the current one"""
        self._require_self_or_admin(caller, user_id)
        user = await self._get_user(user_id)
        if not verify_password(current_password, user.hashed_password):
            raise ValidationError("Current password is incorrect")
        _check_password(new_password, label="New password")
        await self._write(user.model_copy(update={"hashed_password": get_password_hash(new_password)}))
        logger.info("Password changed for user %s", user_id)

    @translate_errors
    async def delete_user(self, caller: User, user_id: UUID) -> None:
        self._require_admin(caller)
        user = await self._get_user(user_id)
        await self.user_repo.delete(user.user_id)
        logger.info("User %s deleted by %s", user_id, caller.user_id)
