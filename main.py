import logging
import math
from datetime import date
from typing import Callable, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Area
    CreateAreaRequest, UpdateAreaRequest, AreaResponse, AreaListResponse, PaginationResponse,
    SpecialPriceRequest, SpecialPriceResponse, FaqResponse,
    AvailabilityResponse, QuoteResponse, DayPriceResponse,
    # Booking
    CreateBookingRequest, CreateExternalBookingRequest, UpdateBookingStatusRequest,
    BookingResponse, GuestSummaryResponse,
    # Auth
    RegisterRequest, Token, UserResponse,
    # User
    CreateUserRequest, UpdateUserRequest, UpdateProfileRequest, UpdatePasswordRequest, UserListResponse
)
from api.dependencies import (
    get_area_service, get_auth_service, get_booking_service, get_current_active_user, get_user_service,
)
from application.booking_factory import BookingFactory
from application.guest_resolver import GuestIdentityResolver
from application.notifications import LoggingNotificationSender
from application.services import AreaService, AuthService, BookingService, UserService
from domain.auth import User
from domain.conflicts import ConflictDetector
from domain.exceptions import (
    AuthorizationError, ConflictError, DomainError, InternalError, NotFoundError,
    StateImmutabilityError, ValidationError,
)
from domain.pricing import PriceResolver
from domain.value_objects import GuestInfo
from infrastructure.config import Settings, load_settings
from infrastructure.logging import setup_logging
from infrastructure.repositories.in_memory_repositories import (
    InMemoryAreaRepository, InMemoryBookingRepository, InMemoryGuestRepository, InMemoryUserRepository
)

logger = logging.getLogger(__name__)

# Checked in order, so subclasses must come before their bases
ERROR_STATUS = [
    (ValidationError, 400),
    (StateImmutabilityError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (InternalError, 500),
]

router = APIRouter()


def status_for(exc: DomainError) -> int:
    for error_cls, status_code in ERROR_STATUS:
        if isinstance(exc, error_cls):
            return status_code
    return 500


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_for(exc)
    detail = exc.message
    if status_code >= 500 and not request.app.state.settings.debug:
        detail = "Internal server error"
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, status_code, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": detail})


def create_app(settings: Optional[Settings] = None, today: Callable[[], date] = date.today) -> FastAPI:
    """Wire repositories and services into a new application"""
    settings = settings or load_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Booking backend for rentable areas with special pricing",
        version="1.0.0",
        debug=settings.debug
    )

    # Initialize repositories
    area_repo = InMemoryAreaRepository()
    booking_repo = InMemoryBookingRepository()
    guest_repo = InMemoryGuestRepository()
    user_repo = InMemoryUserRepository()

    conflict_detector = ConflictDetector(booking_repo)
    price_resolver = PriceResolver()
    factory = BookingFactory(
        booking_repo, conflict_detector, price_resolver, GuestIdentityResolver(guest_repo, today=today), today=today
    )

    app.state.settings = settings
    app.state.user_repo = user_repo
    app.state.area_service = AreaService(
        area_repo, booking_repo, conflict_detector, price_resolver, settings, today=today
    )
    app.state.booking_service = BookingService(
        booking_repo, area_repo, guest_repo, user_repo, factory, LoggingNotificationSender()
    )
    app.state.auth_service = AuthService(user_repo, settings)
    app.state.user_service = UserService(user_repo, settings)

    app.add_exception_handler(DomainError, domain_error_handler)
    app.include_router(router)

    @app.on_event("startup")
    async def on_startup():
        logger.info("%s startup", settings.app_name)
        admin = await app.state.auth_service.seed_admin()
        if admin:
            logger.info("Admin account %s ready", admin.email)

    return app


# ============================================================================
# HEALTH ENDPOINT
# ============================================================================

@router.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@router.post("/register", response_model=UserResponse, status_code=201, tags=["Auth"])
async def register(request: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    """Register a new user account"""
    user = await service.register(request.name, request.email, request.password)
    return _user_to_response(user)

@router.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    service: AuthService = Depends(get_auth_service)
):
    user = await service.authenticate(form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.active:
        raise HTTPException(
            status_code=401,
            detail="Account is deactivated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {"access_token": service.issue_token(user), "token_type": "bearer"}

@router.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return _user_to_response(current_user)

@router.put("/users/me", response_model=UserResponse, tags=["Auth"])
async def update_users_me(
    request: UpdateProfileRequest,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(get_current_active_user)
):
    """Change the caller's own name or email"""
    user = await service.update_profile(current_user, name=request.name, email=request.email)
    return _user_to_response(user)

# ============================================================================
# USER ENDPOINTS
# ============================================================================

@router.get("/api/users", response_model=UserListResponse, tags=["Users"])
async def list_users(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(get_current_active_user)
):
    """List users, newest first (admin only)"""
    users, total, limit = await service.list_users(current_user, page=page, limit=limit, search=search)
    return UserListResponse(
        users=[_user_to_response(u) for u in users],
        pagination=PaginationResponse(
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_items=total,
            items_per_page=limit
        )
    )

@router.post("/api/users", response_model=UserResponse, status_code=201, tags=["Users"])
async def create_user(
    request: CreateUserRequest,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(get_current_active_user)
):
    """Create an account with any role (admin only)"""
    user = await service.create_user(current_user, request.name, request.email, request.password, role=request.role)
    return _user_to_response(user)

@router.get("/api/users/{user_id}", response_model=UserResponse, tags=["Users"])
async def get_user(
    user_id: UUID,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(get_current_active_user)
):
    user = await service.get_user(current_user, user_id)
    return _user_to_response(user)

@router.put("/api/users/{user_id}", response_model=UserResponse, tags=["Users"])
async def update_user(
    user_id: UUID,
    request: UpdateUserRequest,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(get_current_active_user)
):
    """Update an account; role and active can only be changed by admins"""
    user = await service.update_user(current_user, user_id, request.model_dump(exclude_unset=True))
    return _user_to_response(user)

@router.patch("/api/users/{user_id}/password", tags=["Users"])
async def update_password(
    user_id: UUID,
    request: UpdatePasswordRequest,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(get_current_active_user)
):
    await service.update_password(current_user, user_id, request.current_password, request.new_password)
    return {"message": "Password updated"}

@router.delete("/api/users/{user_id}", status_code=204, tags=["Users"])
async def delete_user(
    user_id: UUID,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(get_current_active_user)
):
    await service.delete_user(current_user, user_id)
    return Response(status_code=204)

# ============================================================================
# AREA ENDPOINTS
# ============================================================================

@router.post("/api/areas", response_model=AreaResponse, status_code=201, tags=["Areas"])
async def create_area(
    request: CreateAreaRequest,
    service: AreaService = Depends(get_area_service),
    current_user: User = Depends(get_current_active_user)
):
    """Create new area owned by the caller"""
    data = request.model_dump(exclude={"special_prices", "faqs"})
    area = await service.create_area(
        current_user,
        special_prices=[_special_price_data(sp) for sp in request.special_prices],
        faqs=[faq.model_dump() for faq in request.faqs],
        **data
    )
    return _area_to_response(area)

@router.get("/api/areas", response_model=AreaListResponse, tags=["Areas"])
async def list_areas(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
    service: AreaService = Depends(get_area_service)
):
    """List active areas, newest first"""
    areas, total, limit = await service.list_areas(page=page, limit=limit, search=search)
    return AreaListResponse(
        areas=[_area_to_response(a) for a in areas],
        pagination=PaginationResponse(
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_items=total,
            items_per_page=limit
        )
    )

@router.get("/api/areas/mine", response_model=List[AreaResponse], tags=["Areas"])
async def get_my_areas(
    service: AreaService = Depends(get_area_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get every area owned by the caller"""
    areas = await service.get_my_areas(current_user)
    return [_area_to_response(a) for a in areas]

@router.get("/api/areas/{area_id}", response_model=AreaResponse, tags=["Areas"])
async def get_area(area_id: UUID, service: AreaService = Depends(get_area_service)):
    """Get area by ID"""
    area = await service.get_area(area_id)
    return _area_to_response(area)

@router.put("/api/areas/{area_id}", response_model=AreaResponse, tags=["Areas"])
async def update_area(
    area_id: UUID,
    request: UpdateAreaRequest,
    service: AreaService = Depends(get_area_service),
    current_user: User = Depends(get_current_active_user)
):
    """Update area details; special prices and FAQs are replaced when sent"""
    changes = request.model_dump(exclude_unset=True, exclude={"special_prices", "faqs"})
    special_prices = None
    if request.special_prices is not None:
        special_prices = [_special_price_data(sp) for sp in request.special_prices]
    faqs = None
    if request.faqs is not None:
        faqs = [faq.model_dump() for faq in request.faqs]
    area = await service.update_area(area_id, current_user, changes, special_prices=special_prices, faqs=faqs)
    return _area_to_response(area)

@router.delete("/api/areas/{area_id}", status_code=204, tags=["Areas"])
async def delete_area(
    area_id: UUID,
    service: AreaService = Depends(get_area_service),
    current_user: User = Depends(get_current_active_user)
):
    """Delete an area without active bookings"""
    await service.delete_area(area_id, current_user)
    return Response(status_code=204)

@router.get("/api/areas/{area_id}/availability", response_model=AvailabilityResponse, tags=["Areas"])
async def check_availability(
    area_id: UUID,
    check_in: date,
    check_out: date,
    service: AreaService = Depends(get_area_service)
):
    """Check whether the area is free for [check_in, check_out)"""
    available = await service.check_availability(area_id, check_in, check_out)
    return AvailabilityResponse(area_id=area_id, check_in=check_in, check_out=check_out, available=available)

@router.get("/api/areas/{area_id}/quote", response_model=QuoteResponse, tags=["Areas"])
async def quote_price(
    area_id: UUID,
    check_in: date,
    check_out: date,
    service: AreaService = Depends(get_area_service)
):
    """Per-day price breakdown and total for a stay"""
    days, total = await service.quote(area_id, check_in, check_out)
    return QuoteResponse(
        area_id=area_id,
        check_in=check_in,
        check_out=check_out,
        nights=len(days),
        days=[
            DayPriceResponse(day=d.day, price=d.price, source=d.source, rule_name=d.rule_name)
            for d in days
        ],
        total_price=total
    )

@router.get("/api/areas/{area_id}/bookings", response_model=List[BookingResponse], tags=["Areas"])
async def get_area_bookings(
    area_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get bookings of an area, latest check-in first"""
    bookings = await service.get_bookings_by_area(area_id, current_user)
    return [await _booking_to_response(b, service) for b in bookings]

# ============================================================================
# SPECIAL PRICE ENDPOINTS
# ============================================================================

@router.get("/api/areas/{area_id}/special-prices", response_model=List[SpecialPriceResponse], tags=["Special Prices"])
async def list_special_prices(
    area_id: UUID,
    service: AreaService = Depends(get_area_service),
    current_user: User = Depends(get_current_active_user)
):
    rules = await service.list_special_prices(area_id, current_user)
    return [_special_price_to_response(r) for r in rules]

@router.post(
    "/api/areas/{area_id}/special-prices",
    response_model=SpecialPriceResponse,
    status_code=201,
    tags=["Special Prices"]
)
async def create_special_price(
    area_id: UUID,
    request: SpecialPriceRequest,
    service: AreaService = Depends(get_area_service),
    current_user: User = Depends(get_current_active_user)
):
    rule = await service.create_special_price(area_id, current_user, _special_price_data(request))
    return _special_price_to_response(rule)

@router.put(
    "/api/areas/{area_id}/special-prices/{rule_id}",
    response_model=SpecialPriceResponse,
    tags=["Special Prices"]
)
async def update_special_price(
    area_id: UUID,
    rule_id: UUID,
    request: SpecialPriceRequest,
    service: AreaService = Depends(get_area_service),
    current_user: User = Depends(get_current_active_user)
):
    """Merge the sent fields into the rule"""
    changes = request.model_dump(exclude_unset=True, mode="json")
    rule = await service.update_special_price(area_id, rule_id, current_user, changes)
    return _special_price_to_response(rule)

@router.delete("/api/areas/{area_id}/special-prices/{rule_id}", status_code=204, tags=["Special Prices"])
async def delete_special_price(
    area_id: UUID,
    rule_id: UUID,
    service: AreaService = Depends(get_area_service),
    current_user: User = Depends(get_current_active_user)
):
    await service.delete_special_price(area_id, rule_id, current_user)
    return Response(status_code=204)

# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@router.post("/api/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Book an area for the caller"""
    booking = await service.create_booking(
        current_user, request.area_id, request.check_in, request.check_out, request.guests
    )
    return await _booking_to_response(booking, service)

@router.post("/api/bookings/external", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_external_booking(
    request: CreateExternalBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Record a booking made outside the platform"""
    booking = await service.create_external_booking(
        current_user,
        request.area_id,
        request.check_in,
        request.check_out,
        request.guests,
        GuestInfo(**request.guest.model_dump()),
        total_price=request.total_price,
        status=request.status
    )
    return await _booking_to_response(booking, service)

@router.get("/api/bookings/mine", response_model=List[BookingResponse], tags=["Bookings"])
async def get_my_bookings(
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    bookings = await service.get_my_bookings(current_user)
    return [await _booking_to_response(b, service) for b in bookings]

@router.get("/api/bookings/owner", response_model=List[BookingResponse], tags=["Bookings"])
async def get_owner_bookings(
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Bookings across every area the caller owns"""
    bookings = await service.get_bookings_for_owner(current_user)
    return [await _booking_to_response(b, service) for b in bookings]

@router.get("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    booking = await service.get_booking(booking_id, current_user)
    return await _booking_to_response(booking, service)

@router.put("/api/bookings/{booking_id}/status", response_model=BookingResponse, tags=["Bookings"])
async def update_booking_status(
    booking_id: UUID,
    request: UpdateBookingStatusRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Move a booking through its lifecycle"""
    booking = await service.update_status(booking_id, current_user, request.status)
    return await _booking_to_response(booking, service)

@router.post("/api/bookings/{booking_id}/cancel", response_model=BookingResponse, tags=["Bookings"])
async def cancel_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Cancel one of the caller's own bookings"""
    booking = await service.cancel_booking(booking_id, current_user)
    return await _booking_to_response(booking, service)

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _special_price_data(request: SpecialPriceRequest) -> dict:
    """Fields actually provided, in the shape the domain validates"""
    return request.model_dump(exclude_none=True, mode="json")

def _user_to_response(user) -> UserResponse:
    return UserResponse(
        user_id=user.user_id,
        name=user.name,
        email=user.email,
        role=user.role.value,
        active=user.active
    )

def _special_price_to_response(rule) -> SpecialPriceResponse:
    """Convert SpecialPriceRule to SpecialPriceResponse"""
    return SpecialPriceResponse(
        rule_id=rule.rule_id,
        type=rule.type.value,
        name=rule.name,
        price=rule.price,
        start_date=rule.start_date,
        end_date=rule.end_date,
        is_package=rule.is_package,
        days_of_week=rule.days_of_week,
        holiday_date=rule.holiday_date,
        active=rule.active,
        created_at=rule.created_at
    )

def _area_to_response(area) -> AreaResponse:
    """Convert Area entity to AreaResponse"""
    return AreaResponse(
        area_id=area.area_id,
        owner_id=area.owner_id,
        name=area.name,
        description=area.description,
        address=area.address,
        neighborhood=area.neighborhood,
        city=area.city,
        amenities=area.amenities,
        images=area.images,
        price_per_day=area.price_per_day,
        max_guests=area.max_guests,
        active=area.active,
        special_prices=[_special_price_to_response(r) for r in area.special_prices],
        faqs=[FaqResponse(faq_id=f.faq_id, question=f.question, answer=f.answer) for f in area.faqs],
        created_at=area.created_at,
        updated_at=area.updated_at,
        version=area.version
    )

async def _booking_to_response(booking, service: BookingService) -> BookingResponse:
    """Convert Booking entity to BookingResponse with guest contact details"""
    guest = await service.describe_guest(booking.guest)
    return BookingResponse(
        booking_id=booking.booking_id,
        area_id=booking.area_id,
        guest=GuestSummaryResponse(**guest),
        check_in=booking.check_in,
        check_out=booking.check_out,
        nights=booking.get_nights(),
        guests=booking.guests,
        total_price=booking.total_price,
        status=booking.status.value,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        version=booking.version
    )


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
