"""Authentication schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from tableorder.core.sanitize import sanitize_text
from tableorder.models.user import AppRole


class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class RegisterRequest(BaseModel):
    """Customer sign-up body. Staff accounts are created by tenant admins."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    full_name: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=20)

    @field_validator("full_name", "phone")
    @classmethod
    def clean_text(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v) or None


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"


class RoleResponse(BaseModel):
    role: AppRole
    tenant_id: Optional[str] = None

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    """Current user with the role rows that gate staff views."""

    id: int
    email: EmailStr
    full_name: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool
    created_at: datetime
    roles: List[RoleResponse] = []

    model_config = {"from_attributes": True}
