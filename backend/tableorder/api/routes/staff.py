"""Kitchen and billing dashboards.

Chef, cook and manager accounts work the kitchen board; waiters, managers and
tenant admins work the billing view. Every action is checked against the
order's current status and fails with 409 if someone else got there first.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request

from tableorder.api.deps import OrderManagerDep, OrderRepositoryDep, live_board_cutoff
from tableorder.core.rate_limit import limiter
from tableorder.core.rbac import RequireBilling, RequireChef
from tableorder.models.order import OrderStatus, PaymentStatus
from tableorder.schemas.orders import StaffActionRequest
from tableorder.services.order_lifecycle import next_action

logger = logging.getLogger(__name__)

router = APIRouter()


def _board_row(order) -> dict:
    return {**order.snapshot(), "next_action": next_action(order)}


# ==================== KITCHEN ====================

@router.get("/tenants/{tenant_id}/staff/orders")
@limiter.limit("120/minute")
def list_kitchen_orders(
    request: Request,
    tenant_id: str,
    current_user: RequireChef,
    repository: OrderRepositoryDep,
    status: Optional[OrderStatus] = None,
):
    """Live orders plus those finished in the last few minutes, newest first."""
    orders = repository.list_for_tenant(
        tenant_id,
        visible_since=live_board_cutoff(),
        statuses=[status] if status else None,
    )
    return [_board_row(order) for order in orders]


@router.post("/tenants/{tenant_id}/staff/orders/{order_id}/accept")
@limiter.limit("60/minute")
def accept_order(
    request: Request,
    tenant_id: str,
    order_id: str,
    current_user: RequireChef,
    manager: OrderManagerDep,
    body: Optional[StaffActionRequest] = None,
):
    mark_paid = bool(body and body.mark_paid)
    order = manager.accept_order(tenant_id, order_id, current_user.as_staff(), mark_paid=mark_paid)
    return _board_row(order)


@router.post("/tenants/{tenant_id}/staff/orders/{order_id}/advance")
@limiter.limit("60/minute")
def advance_order(
    request: Request,
    tenant_id: str,
    order_id: str,
    current_user: RequireChef,
    manager: OrderManagerDep,
    body: Optional[StaffActionRequest] = None,
):
    """Start cooking or mark completed. Unpaid orders need ``mark_paid``."""
    mark_paid = bool(body and body.mark_paid)
    order = manager.advance(tenant_id, order_id, current_user.as_staff(), mark_paid=mark_paid)
    return _board_row(order)


@router.post("/tenants/{tenant_id}/staff/orders/{order_id}/reject")
@limiter.limit("60/minute")
def reject_order(
    request: Request,
    tenant_id: str,
    order_id: str,
    current_user: RequireChef,
    manager: OrderManagerDep,
):
    order = manager.reject(tenant_id, order_id, current_user.as_staff())
    return _board_row(order)


@router.post("/tenants/{tenant_id}/staff/orders/{order_id}/toggle-payment")
@limiter.limit("60/minute")
def toggle_kitchen_payment(
    request: Request,
    tenant_id: str,
    order_id: str,
    current_user: RequireChef,
    manager: OrderManagerDep,
):
    order = manager.toggle_payment(tenant_id, order_id, current_user.as_staff())
    return _board_row(order)


# ==================== BILLING ====================

@router.get("/tenants/{tenant_id}/billing/orders")
@limiter.limit("120/minute")
def list_billing_orders(
    request: Request,
    tenant_id: str,
    current_user: RequireBilling,
    repository: OrderRepositoryDep,
    payment_status: Optional[PaymentStatus] = None,
):
    """All orders of the tenant, optionally only paid or unpaid ones."""
    orders = repository.list_for_tenant(tenant_id)
    if payment_status:
        orders = [o for o in orders if o.payment_status == payment_status]
    return [order.snapshot() for order in orders]


@router.post("/tenants/{tenant_id}/billing/orders/{order_id}/toggle-payment")
@limiter.limit("60/minute")
def toggle_billing_payment(
    request: Request,
    tenant_id: str,
    order_id: str,
    current_user: RequireBilling,
    manager: OrderManagerDep,
):
    """Confirm or revert a payment from the billing desk."""
    return manager.toggle_payment(tenant_id, order_id, current_user.as_staff()).snapshot()
