"""Tenant admin routes: settings, tables, QR codes and staff accounts."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Request, status

from tableorder.api.deps import MenuSourceDep, TenantServiceDep
from tableorder.core.rate_limit import limiter
from tableorder.core.rbac import RequireStaffUsers, RequireTenantAdmin
from tableorder.schemas.tenant import (
    SettingsResponse,
    SettingsUpdate,
    TableResponse,
    TableUpdate,
    TenantUserCreate,
    TenantUserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants/{tenant_id}")


@router.get("/settings", response_model=SettingsResponse)
@limiter.limit("60/minute")
def get_settings(request: Request, tenant_id: str, current_user: RequireTenantAdmin,
                 service: TenantServiceDep):
    return service.get_settings(tenant_id)


@router.patch("/settings", response_model=SettingsResponse)
@limiter.limit("30/minute")
def update_settings(request: Request, tenant_id: str, body: SettingsUpdate,
                    current_user: RequireTenantAdmin, service: TenantServiceDep, menu: MenuSourceDep):
    """Partial update. A new menu sheet URL drops the cached menu."""
    changes = body.model_dump(exclude_unset=True)
    tenant_settings = service.update_settings(tenant_id, changes)
    if "menu_sheet_url" in changes:
        menu.invalidate(tenant_id)
    logger.info(f"Settings for tenant {tenant_id} changed by {current_user.email}")
    return tenant_settings


@router.get("/tables", response_model=List[TableResponse])
@limiter.limit("60/minute")
def list_tables(request: Request, tenant_id: str, current_user: RequireTenantAdmin,
                service: TenantServiceDep):
    service.get_tenant(tenant_id)
    return service.list_tables(tenant_id)


@router.patch("/tables/{table_number}", response_model=TableResponse)
@limiter.limit("30/minute")
def update_table(request: Request, tenant_id: str, table_number: int, body: TableUpdate,
                 current_user: RequireTenantAdmin, service: TenantServiceDep):
    """Take a table out of service or back in. Inactive tables refuse orders."""
    return service.set_table_active(tenant_id, table_number, body.is_active)


@router.get("/qr-codes")
@limiter.limit("30/minute")
def get_qr_codes(request: Request, tenant_id: str, current_user: RequireTenantAdmin,
                 service: TenantServiceDep, base_url: Optional[str] = None):
    """Customer URL and QR image link for every active table."""
    return service.table_qr_codes(tenant_id, base_url)


@router.post("/users", response_model=TenantUserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_tenant_user(request: Request, tenant_id: str, body: TenantUserCreate,
                       current_user: RequireStaffUsers, service: TenantServiceDep):
    """Create a staff account holding one role in this tenant."""
    user = service.create_tenant_user(
        email=body.email,
        password=body.password,
        role=body.role,
        tenant_id=tenant_id,
        full_name=body.full_name,
    )
    logger.info(f"User {user.email} created for tenant {tenant_id} by {current_user.email}")
    return TenantUserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=body.role,
        tenant_id=tenant_id,
    )
