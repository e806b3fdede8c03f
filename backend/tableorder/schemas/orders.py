"""Order schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from tableorder.core.sanitize import sanitize_text
from tableorder.models.order import PaymentMode


class PlaceOrderRequest(BaseModel):
    """Place the table's current cart as an order."""

    payment_mode: PaymentMode
    customer_name: Optional[str] = Field(default=None, max_length=100)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("customer_name", "customer_phone", "notes")
    @classmethod
    def clean_text(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v) or None


class StaffActionRequest(BaseModel):
    """Kitchen action body. ``mark_paid`` confirms payment in the same step."""

    mark_paid: bool = False
