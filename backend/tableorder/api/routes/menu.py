"""Customer-facing restaurant info and menu."""

import logging

from fastapi import APIRouter, Request

from tableorder.api.deps import MenuSourceDep, TenantServiceDep
from tableorder.core.rate_limit import limiter
from tableorder.services.menu_source import group_by_category

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/tenants/{tenant_id}/public-settings")
@limiter.limit("60/minute")
def get_public_settings(request: Request, tenant_id: str, service: TenantServiceDep):
    """Restaurant name, service charge and payment modes shown to diners."""
    return service.public_settings(tenant_id)


@router.get("/tenants/{tenant_id}/menu")
@limiter.limit("60/minute")
def get_menu(
    request: Request,
    tenant_id: str,
    service: TenantServiceDep,
    menu: MenuSourceDep,
    refresh: bool = False,
):
    """Available menu items grouped by category, in sheet order."""
    tenant_settings = service.get_settings(tenant_id)
    items = menu.get_menu(tenant_id, tenant_settings.menu_sheet_url, refresh=refresh)
    grouped = group_by_category(items)
    return {
        "tenant_id": tenant_id,
        "restaurant_name": tenant_settings.restaurant_name,
        "item_count": len(items),
        "categories": [
            {"name": category, "items": [item.to_dict() for item in category_items]}
            for category, category_items in grouped.items()
        ],
    }
