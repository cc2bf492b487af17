"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, StrictBool
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Any, List, Optional

from domain.enums import BookingStatus, PriceSource, SpecialPriceType, UserRole


# ============================================================================
# AREA SCHEMAS
# ============================================================================

class FaqRequest(BaseModel):
    """FAQ request DTO"""
    question: str
    answer: str


class SpecialPriceRequest(BaseModel):
    """Special price request DTO; dates and flags are type-checked by the rule itself"""
    type: Optional[SpecialPriceType] = None
    name: Optional[str] = None
    price: Optional[Decimal] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_package: Any = None
    days_of_week: Any = None
    holiday_date: Optional[str] = None
    active: Any = None


class CreateAreaRequest(BaseModel):
    """Create area request DTO"""
    name: str
    description: str = ""
    address: str
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    price_per_day: Decimal
    max_guests: int = 1
    amenities: List[str] = []
    images: List[str] = []
    special_prices: List[SpecialPriceRequest] = []
    faqs: List[FaqRequest] = []


class UpdateAreaRequest(BaseModel):
    """Update area request DTO; only the fields sent are changed"""
    name: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    price_per_day: Optional[Decimal] = None
    max_guests: Optional[int] = None
    amenities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    active: Optional[bool] = None
    special_prices: Optional[List[SpecialPriceRequest]] = None
    faqs: Optional[List[FaqRequest]] = None


class FaqResponse(BaseModel):
    """FAQ response DTO"""
    faq_id: UUID
    question: str
    answer: str


class SpecialPriceResponse(BaseModel):
    """Special price response DTO"""
    rule_id: UUID
    type: str
    name: str
    price: Decimal
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_package: Optional[bool] = None
    days_of_week: Optional[List[int]] = None
    holiday_date: Optional[str] = None
    active: Optional[bool] = None
    created_at: datetime


class AreaResponse(BaseModel):
    """Area response DTO"""
    area_id: UUID
    owner_id: UUID
    name: str
    description: str
    address: str
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    amenities: List[str]
    images: List[str]
    price_per_day: Decimal
    max_guests: int
    active: bool
    special_prices: List[SpecialPriceResponse]
    faqs: List[FaqResponse]
    created_at: datetime
    updated_at: datetime
    version: int


class PaginationResponse(BaseModel):
    """Pagination metadata DTO"""
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class AreaListResponse(BaseModel):
    """Paginated area list DTO"""
    areas: List[AreaResponse]
    pagination: PaginationResponse


class AvailabilityResponse(BaseModel):
    """Availability response DTO"""
    area_id: UUID
    check_in: date
    check_out: date
    available: bool


class DayPriceResponse(BaseModel):
    """Price of one charged day"""
    day: date
    price: Decimal
    source: PriceSource
    rule_name: Optional[str] = None


class QuoteResponse(BaseModel):
    """Price quote response DTO"""
    area_id: UUID
    check_in: date
    check_out: date
    nights: int
    days: List[DayPriceResponse]
    total_price: Decimal


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class CreateBookingRequest(BaseModel):
    """Create booking request DTO"""
    area_id: UUID
    check_in: date
    check_out: date
    guests: int = 1


class GuestInfoRequest(BaseModel):
    """Offline guest details DTO"""
    name: str
    phone: str
    cpf: Optional[str] = None
    birth_date: Optional[date] = None


class CreateExternalBookingRequest(BaseModel):
    """Create external booking request DTO"""
    area_id: UUID
    check_in: date
    check_out: date
    guests: int = 1
    guest: GuestInfoRequest
    total_price: Optional[Decimal] = None
    status: Optional[BookingStatus] = None


class UpdateBookingStatusRequest(BaseModel):
    """Update booking status request DTO"""
    status: str


class GuestSummaryResponse(BaseModel):
    """Who a booking is for"""
    kind: str
    id: UUID
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    cpf: Optional[str] = None
    birth_date: Optional[date] = None


class BookingResponse(BaseModel):
    """Booking response DTO"""
    booking_id: UUID
    area_id: UUID
    guest: GuestSummaryResponse
    check_in: date
    check_out: date
    nights: int
    guests: int
    total_price: Decimal
    status: str
    created_at: datetime
    updated_at: datetime
    version: int


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class RegisterRequest(BaseModel):
    """Register request DTO"""
    name: str
    email: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str


class UserResponse(BaseModel):
    user_id: UUID
    name: str
    email: str
    role: str
    active: bool = True


# ============================================================================
# USER SCHEMAS
# ============================================================================

class CreateUserRequest(BaseModel):
    """Admin create user request DTO"""
    name: str
    email: str
    password: str
    role: UserRole = UserRole.USER


class UpdateUserRequest(BaseModel):
    """Update user request DTO; role and active are admin-only"""
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[UserRole] = None
    active: Optional[StrictBool] = None


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class UpdatePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class UserListResponse(BaseModel):
    """Paginated user list DTO"""
    users: List[UserResponse]
    pagination: PaginationResponse
