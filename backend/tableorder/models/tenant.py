"""Tenant (restaurant), settings and table models."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from tableorder.db.base import Base, TimestampMixin
from tableorder.models.validators import non_negative, percentage, positive, valid_payment_modes

DEFAULT_PAYMENT_MODES = {"upi": True, "cash": True, "card": False}


def _new_tenant_id() -> str:
    return str(uuid.uuid4())


class Tenant(Base, TimestampMixin):
    """A restaurant using the service. All other rows are scoped to one tenant."""

    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_tenant_id)
    tenant_name: Mapped[str] = mapped_column(String(200), nullable=False)
    restaurant_name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    settings: Mapped[Optional["TenantSettings"]] = relationship(
        "TenantSettings", back_populates="tenant", uselist=False, cascade="all, delete-orphan"
    )
    tables: Mapped[list["RestaurantTable"]] = relationship(
        "RestaurantTable", back_populates="tenant", cascade="all, delete-orphan",
        order_by="RestaurantTable.table_number",
    )


class TenantSettings(Base, TimestampMixin):
    """Per-tenant configuration edited by the tenant admin."""

    __tablename__ = "tenant_settings"

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[str] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), unique=True, nullable=False, index=True
    )
    restaurant_name: Mapped[str] = mapped_column(String(200), nullable=False)
    restaurant_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    merchant_upi_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    payment_modes: Mapped[dict] = mapped_column(
        JSON, default=lambda: dict(DEFAULT_PAYMENT_MODES), nullable=False
    )
    # Percentage of subtotal, 0-100
    service_charge: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)
    table_count: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    menu_sheet_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    require_customer_auth: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    theme_config: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="settings")

    @validates("service_charge")
    def _validate_service_charge(self, key, value):
        return percentage(key, value)

    @validates("table_count")
    def _validate_table_count(self, key, value):
        return non_negative(key, value)

    @validates("payment_modes")
    def _validate_payment_modes(self, key, value):
        return valid_payment_modes(key, value)

    def enabled_payment_modes(self) -> list[str]:
        return [mode for mode, enabled in (self.payment_modes or {}).items() if enabled]


class RestaurantTable(Base):
    """A physical table with its own QR code."""

    __tablename__ = "restaurant_tables"
    __table_args__ = (
        UniqueConstraint("tenant_id", "table_number", name="uq_restaurant_tables_tenant_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[str] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    table_number: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="tables")

    @validates("table_number")
    def _validate_table_number(self, key, value):
        return positive(key, value)
