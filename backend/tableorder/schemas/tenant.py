"""Tenant, settings, table and staff-account schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from tableorder.core.sanitize import sanitize_text
from tableorder.models.user import AppRole


class TenantCreate(BaseModel):
    """Register a restaurant (universal admin)."""

    tenant_name: str = Field(..., min_length=1, max_length=200)
    restaurant_name: str = Field(..., min_length=1, max_length=200)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(default=None, max_length=50)
    restaurant_address: Optional[str] = Field(default=None, max_length=500)
    table_count: Optional[int] = Field(default=None, ge=0, le=500)
    menu_sheet_url: Optional[str] = Field(default=None, max_length=500)
    merchant_upi_id: Optional[str] = Field(default=None, max_length=100)
    service_charge: Optional[Decimal] = Field(default=None, ge=0, le=100)
    payment_modes: Optional[Dict[str, bool]] = None
    require_customer_auth: bool = True

    @field_validator("tenant_name", "restaurant_name", "restaurant_address")
    @classmethod
    def clean_text(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v)


class TenantUpdate(BaseModel):
    is_active: bool


class TenantResponse(BaseModel):
    id: str
    tenant_name: str
    restaurant_name: str
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SettingsUpdate(BaseModel):
    """Partial settings update. Omitted fields are left unchanged."""

    restaurant_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    restaurant_address: Optional[str] = Field(default=None, max_length=500)
    merchant_upi_id: Optional[str] = Field(default=None, max_length=100)
    payment_modes: Optional[Dict[str, bool]] = None
    service_charge: Optional[Decimal] = Field(default=None, ge=0, le=100)
    table_count: Optional[int] = Field(default=None, ge=0, le=500)
    menu_sheet_url: Optional[str] = Field(default=None, max_length=500)
    require_customer_auth: Optional[bool] = None
    theme_config: Optional[Dict[str, Any]] = None

    @field_validator("restaurant_name", "restaurant_address")
    @classmethod
    def clean_text(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v)


class SettingsResponse(BaseModel):
    """Full settings as seen by the tenant admin."""

    tenant_id: str
    restaurant_name: str
    restaurant_address: Optional[str] = None
    merchant_upi_id: Optional[str] = None
    payment_modes: Dict[str, bool]
    service_charge: Decimal
    table_count: int
    menu_sheet_url: Optional[str] = None
    require_customer_auth: bool
    theme_config: Optional[Dict[str, Any]] = None
    updated_at: datetime

    model_config = {"from_attributes": True}


class TableUpdate(BaseModel):
    is_active: bool


class TableResponse(BaseModel):
    table_number: int
    is_active: bool

    model_config = {"from_attributes": True}


class TenantUserCreate(BaseModel):
    """Staff account created by a tenant admin."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    role: str
    full_name: Optional[str] = Field(default=None, max_length=200)


class TenantUserResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: AppRole
    tenant_id: str
