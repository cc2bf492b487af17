"""Application settings"""
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel


class Settings(BaseModel):
    app_name: str = "Area Booking API"
    debug: bool = False

    # JWT
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "console"  # Options: "console", "json"

    # Admin account created at startup when both are set
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    admin_name: str = "Administrator"

    # Listing pagination
    default_page_size: int = 10
    max_page_size: int = 100


def _flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


def load_settings() -> Settings:
    """Read .env and the process environment once into a Settings object"""
    load_dotenv()
    return Settings(
        app_name=os.environ.get("APP_NAME", "Area Booking API"),
        debug=_flag("DEBUG"),
        secret_key=os.environ.get("JWT_SECRET", "change-me-in-production"),
        algorithm=os.environ.get("JWT_ALGORITHM", "HS256"),
        access_token_expire_minutes=int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", "30")),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        log_format=os.environ.get("LOG_FORMAT", "console"),
        admin_email=os.environ.get("ADMIN_EMAIL") or None,
        admin_password=os.environ.get("ADMIN_PASSWORD") or None,
        admin_name=os.environ.get("ADMIN_NAME", "Administrator"),
        default_page_size=int(os.environ.get("DEFAULT_PAGE_SIZE", "10")),
        max_page_size=int(os.environ.get("MAX_PAGE_SIZE", "100")),
    )
