"""Per-table cart routes."""

import logging

from fastapi import APIRouter, Request, status

from tableorder.api.deps import CartStoreDep, MenuSourceDep, TenantServiceDep, open_table
from tableorder.core.errors import NotFoundError
from tableorder.core.rate_limit import limiter
from tableorder.schemas.cart import CartItemAdd, CartItemResponse, CartItemUpdate, CartResponse
from tableorder.services.cart import CartStore
from tableorder.services.tenant_service import TenantService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants/{tenant_id}/tables/{table_number}/cart")


def _cart_response(service: TenantService, cart: CartStore, tenant_id: str, table_number: int) -> CartResponse:
    tenant_settings = service.get_settings(tenant_id)
    items, bill = cart.summary(tenant_id, table_number, tenant_settings.service_charge)
    return CartResponse(
        tenant_id=tenant_id,
        table_number=table_number,
        items=[CartItemResponse.model_validate(item) for item in items],
        item_count=sum(item.quantity for item in items),
        subtotal=bill.subtotal,
        service_charge_percentage=bill.service_charge_percentage,
        service_charge_amount=bill.service_charge_amount,
        total=bill.total,
    )


@router.get("", response_model=CartResponse)
@limiter.limit("120/minute")
def get_cart(request: Request, tenant_id: str, table_number: int,
             service: TenantServiceDep, cart: CartStoreDep):
    open_table(service, tenant_id, table_number)
    return _cart_response(service, cart, tenant_id, table_number)


@router.delete("", response_model=CartResponse)
@limiter.limit("60/minute")
def clear_cart(request: Request, tenant_id: str, table_number: int,
               service: TenantServiceDep, cart: CartStoreDep):
    open_table(service, tenant_id, table_number)
    cart.clear(tenant_id, table_number)
    return _cart_response(service, cart, tenant_id, table_number)


@router.post("/items", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("120/minute")
def add_cart_item(request: Request, tenant_id: str, table_number: int, body: CartItemAdd,
                  service: TenantServiceDep, cart: CartStoreDep, menu: MenuSourceDep):
    """Add one unit of a menu item, priced from the current menu."""
    open_table(service, tenant_id, table_number)
    tenant_settings = service.get_settings(tenant_id)
    menu_item = menu.find_item(tenant_id, tenant_settings.menu_sheet_url, body.item_id)
    if menu_item is None:
        raise NotFoundError(f"Menu item {body.item_id} is not available")
    cart.add_item(tenant_id, table_number, menu_item)
    logger.debug(f"Cart {tenant_id}/{table_number}: +1 {menu_item.item_id}")
    return _cart_response(service, cart, tenant_id, table_number)


@router.patch("/items/{item_id}", response_model=CartResponse)
@limiter.limit("120/minute")
def update_cart_item(request: Request, tenant_id: str, table_number: int, item_id: str,
                     body: CartItemUpdate, service: TenantServiceDep, cart: CartStoreDep):
    """Step an item's quantity up or down; reaching zero removes it."""
    open_table(service, tenant_id, table_number)
    cart.update_quantity(tenant_id, table_number, item_id, body.delta)
    return _cart_response(service, cart, tenant_id, table_number)


@router.delete("/items/{item_id}", response_model=CartResponse)
@limiter.limit("120/minute")
def remove_cart_item(request: Request, tenant_id: str, table_number: int, item_id: str,
                     service: TenantServiceDep, cart: CartStoreDep):
    open_table(service, tenant_id, table_number)
    cart.remove_item(tenant_id, table_number, item_id)
    return _cart_response(service, cart, tenant_id, table_number)
