"""User and role-assignment models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Enum as SQLEnum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tableorder.db.base import Base, TimestampMixin


class AppRole(str, Enum):
    """Roles a user can hold, each scoped to a tenant (admin may be global)."""

    ADMIN = "admin"
    TENANT_ADMIN = "tenant_admin"
    MANAGER = "manager"
    CHEF = "chef"
    COOK = "cook"
    WAITER = "waiter"


class User(Base, TimestampMixin):
    """Account used by staff and, optionally, signed-in customers."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    roles: Mapped[list["RoleAssignment"]] = relationship(
        "RoleAssignment", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        return self.full_name or self.email.split("@")[0]


class RoleAssignment(Base):
    """A (user, role, tenant) grant. ``admin`` with no tenant is the universal admin."""

    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role", "tenant_id", name="uq_user_roles_user_role_tenant"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[AppRole] = mapped_column(SQLEnum(AppRole), nullable=False)
    tenant_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True
    )

    user: Mapped["User"] = relationship("User", back_populates="roles")
