"""SQLAlchemy models."""

from tableorder.models.tenant import Tenant, TenantSettings, RestaurantTable
from tableorder.models.user import User, RoleAssignment, AppRole
from tableorder.models.order import (
    Order,
    OrderSequence,
    OrderStatus,
    PaymentStatus,
    PaymentMode,
    TERMINAL_STATUSES,
)

__all__ = [
    "Tenant",
    "TenantSettings",
    "RestaurantTable",
    "User",
    "RoleAssignment",
    "AppRole",
    "Order",
    "OrderSequence",
    "OrderStatus",
    "PaymentStatus",
    "PaymentMode",
    "TERMINAL_STATUSES",
]
