"""Cart schemas."""

from __future__ import annotations

from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field, field_validator


class CartItemAdd(BaseModel):
    """Add one unit of a menu item."""

    item_id: str = Field(..., min_length=1, max_length=100)


class CartItemUpdate(BaseModel):
    """Change an item's quantity by ``delta`` (+1 / -1 from the stepper)."""

    delta: int = Field(..., ge=-99, le=99)

    @field_validator("delta")
    @classmethod
    def non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("delta must not be zero")
        return v


class CartItemResponse(BaseModel):
    item_id: str
    name: str
    category: str
    price: Decimal
    veg: bool
    image_url: str
    quantity: int
    line_total: Decimal

    model_config = {"from_attributes": True}


class CartResponse(BaseModel):
    """Cart contents with the bill the customer will be charged."""

    tenant_id: str
    table_number: int
    items: List[CartItemResponse]
    item_count: int
    subtotal: Decimal
    service_charge_percentage: Decimal
    service_charge_amount: Decimal
    total: Decimal
