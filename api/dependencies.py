"""API Dependencies - Authentication and services"""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from uuid import UUID

from application.services import AreaService, AuthService, BookingService, UserService
from domain.auth import User
from infrastructure.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def get_area_service(request: Request) -> AreaService:
    return request.app.state.area_service


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


async def get_current_user(request: Request, token: str = Depends(oauth2_scheme)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    payload = decode_access_token(token, request.app.state.settings)
    if payload is None:
        raise credentials_exception
    subject = payload.get("sub")
    if subject is None:
        raise credentials_exception
    try:
        user_id = UUID(subject)
    except ValueError:
        raise credentials_exception

    user = await request.app.state.user_repo.find_by_id(user_id)
    if user is None:
        raise credentials_exception
    return user.public()


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user
