"""Pydantic v2 schemas for identity endpoints."""
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, EmailStr

from eduauth.domain.identity.entities import User


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    first_name: str
    last_name: str
    role: str
    phone: str | None = None
    school_id: UUID | None = None
    attributes: dict[str, Any] | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class ProfileUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None


class UserResponse(BaseModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    phone: str | None
    role: str
    school_id: UUID | None
    attributes: dict[str, Any]
    is_active: bool
    is_verified: bool
    is_locked: bool
    last_login_at: datetime | None
    created_at: datetime
    version: int

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=str(user.email),
            first_name=user.first_name,
            last_name=user.last_name,
            phone=user.phone,
            role=str(user.role),
            school_id=user.school_id,
            attributes=user.attributes,
            is_active=user.is_active,
            is_verified=user.is_verified,
            is_locked=user.is_locked,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
            version=user.version,
        )


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class DependencyHealthResponse(BaseModel):
    name: str
    status: str
    response_time_ms: float | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    dependencies: list[DependencyHealthResponse]
