"""Domain Entities - Auth"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime

from domain.enums import UserRole


class User(BaseModel):
    """User Entity"""
    user_id: UUID = Field(default_factory=uuid4)
    name: str = Field(min_length=2, max_length=100)
    email: str
    role: UserRole = UserRole.USER
    active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    class Config:
        from_attributes = True


class UserInDB(User):
    """User with hashed password for DB storage"""
    hashed_password: str

    def public(self) -> User:
        return User(**self.model_dump(exclude={"hashed_password"}))
