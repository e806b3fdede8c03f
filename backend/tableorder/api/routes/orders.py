"""Customer order routes: place, track, claim payment, cancel and download the bill."""

import logging

from fastapi import APIRouter, Request, Response, status

from tableorder.api.deps import (
    CartStoreDep,
    OrderManagerDep,
    OrderRepositoryDep,
    TenantServiceDep,
    live_board_cutoff,
    open_table,
)
from tableorder.core.errors import OrderNotFoundError, OrderValidationError
from tableorder.core.rate_limit import limiter
from tableorder.core.rbac import OptionalCurrentUser
from tableorder.schemas.orders import PlaceOrderRequest
from tableorder.services.billing import render_bill_pdf
from tableorder.services.order_lifecycle import CustomerInfo

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/tenants/{tenant_id}/tables/{table_number}/orders", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def place_order(
    request: Request,
    tenant_id: str,
    table_number: int,
    body: PlaceOrderRequest,
    service: TenantServiceDep,
    cart: CartStoreDep,
    manager: OrderManagerDep,
    current_user: OptionalCurrentUser,
):
    """Place the table's cart as a new order and empty the cart.

    Cash and card orders come back already paid. UPI orders carry the
    payment link and QR code the customer pays with.
    """
    tenant, table = open_table(service, tenant_id, table_number)
    items = cart.items(tenant_id, table_number)
    if not items:
        raise OrderValidationError("Your cart is empty")

    order = manager.place_order(
        tenant,
        tenant.settings,
        table,
        [item.to_order_line() for item in items],
        body.payment_mode.value,
        customer=CustomerInfo(
            name=body.customer_name,
            email=body.customer_email,
            phone=body.customer_phone,
        ),
        user_id=current_user.user_id if current_user else None,
        notes=body.notes,
    )
    cart.clear(tenant_id, table_number)
    return order.snapshot()


@router.get("/tenants/{tenant_id}/tables/{table_number}/orders")
@limiter.limit("120/minute")
def list_table_orders(
    request: Request,
    tenant_id: str,
    table_number: int,
    service: TenantServiceDep,
    repository: OrderRepositoryDep,
):
    """Orders for this table that are still live or finished within the last few minutes."""
    open_table(service, tenant_id, table_number)
    orders = repository.list_for_table(tenant_id, str(table_number), live_board_cutoff())
    return [order.snapshot() for order in orders]


@router.post("/tenants/{tenant_id}/orders/{order_id}/claim-payment")
@limiter.limit("10/minute")
def claim_payment(request: Request, tenant_id: str, order_id: str, manager: OrderManagerDep):
    """Customer reports a UPI payment; staff confirm it from the dashboard."""
    return manager.claim_payment(tenant_id, order_id).snapshot()


@router.delete("/tenants/{tenant_id}/orders/{order_id}")
@limiter.limit("10/minute")
def cancel_order(
    request: Request,
    tenant_id: str,
    order_id: str,
    manager: OrderManagerDep,
    current_user: OptionalCurrentUser,
):
    """Cancel a pending, unpaid order. Accepted or paid orders cannot be cancelled."""
    snapshot = manager.cancel_order(
        tenant_id, order_id, user_id=current_user.user_id if current_user else None
    )
    return {"message": f"Order {order_id} cancelled", "order": snapshot}


@router.get("/tenants/{tenant_id}/orders/{order_id}/bill")
@limiter.limit("30/minute")
def download_bill(
    request: Request,
    tenant_id: str,
    order_id: str,
    service: TenantServiceDep,
    repository: OrderRepositoryDep,
    manager: OrderManagerDep,
):
    """Printable PDF bill."""
    order = repository.get(tenant_id, order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    pdf = render_bill_pdf(order, service.get_settings(tenant_id))
    manager.mark_bill_downloaded(tenant_id, order_id)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="bill-{order_id}.pdf"'},
    )
