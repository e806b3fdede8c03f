"""Order models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    JSON, Boolean, DateTime, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from tableorder.db.base import Base
from tableorder.models.validators import non_negative, percentage, validate_list_of_dicts


class OrderStatus(str, Enum):
    """Kitchen status of an order."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    COOKING = "cooking"
    COMPLETED = "completed"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class PaymentMode(str, Enum):
    UPI = "upi"
    CASH = "cash"
    CARD = "card"


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.REJECTED})


class Order(Base):
    """A customer order for one table.

    Money fields are computed once at creation and never recomputed.
    """

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("tenant_id", "order_id", name="uq_orders_tenant_order_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[str] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    table_id: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    service_charge: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    service_charge_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False
    )
    payment_mode: Mapped[PaymentMode] = mapped_column(SQLEnum(PaymentMode), nullable=False)
    payment_claimed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payment_claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    upi_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    qr_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    bill_downloaded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    cook_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    last_updated_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @validates("subtotal", "service_charge_amount", "total")
    def _validate_amounts(self, key, value):
        return non_negative(key, value)

    @validates("service_charge")
    def _validate_service_charge(self, key, value):
        return percentage(key, value)

    @validates("items")
    def _validate_items(self, key, value):
        return validate_list_of_dicts(key, value)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def snapshot(self) -> dict[str, Any]:
        """JSON-safe view of the row, as carried by change events."""
        def _ts(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "order_id": self.order_id,
            "tenant_id": self.tenant_id,
            "table_id": self.table_id,
            "items": self.items,
            "subtotal": str(self.subtotal),
            "service_charge": str(self.service_charge),
            "service_charge_amount": str(self.service_charge_amount),
            "total": str(self.total),
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "payment_mode": self.payment_mode.value,
            "payment_claimed": self.payment_claimed,
            "payment_claimed_at": _ts(self.payment_claimed_at),
            "bill_downloaded": self.bill_downloaded,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "notes": self.notes,
            "upi_url": self.upi_url,
            "qr_url": self.qr_url,
            "cook_name": self.cook_name,
            "created_at": _ts(self.created_at),
            "accepted_at": _ts(self.accepted_at),
            "completed_at": _ts(self.completed_at),
            "paid_at": _ts(self.paid_at),
            "last_updated_at": _ts(self.last_updated_at),
            "last_updated_by": self.last_updated_by,
        }


class OrderSequence(Base):
    """Per-tenant counter behind human-readable order ids."""

    __tablename__ = "order_sequences"

    tenant_id: Mapped[str] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), primary_key=True
    )
    last_value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
