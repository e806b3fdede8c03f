"""Universal admin routes: tenant registration and activation."""

import logging
from typing import List

from fastapi import APIRouter, Request, status

from tableorder.api.deps import TenantServiceDep
from tableorder.core.rate_limit import limiter
from tableorder.core.rbac import RequireUniversalAdmin
from tableorder.schemas.tenant import TenantCreate, TenantResponse, TenantUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/tenants", response_model=List[TenantResponse])
@limiter.limit("60/minute")
def list_tenants(request: Request, current_user: RequireUniversalAdmin, service: TenantServiceDep):
    return service.list_tenants()


@router.post("/tenants", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def register_tenant(request: Request, body: TenantCreate, current_user: RequireUniversalAdmin,
                    service: TenantServiceDep):
    """Register a restaurant with its settings and numbered tables."""
    tenant = service.register_tenant(**body.model_dump())
    logger.info(f"Tenant {tenant.id} registered by {current_user.email}")
    return tenant


@router.patch("/tenants/{tenant_id}", response_model=TenantResponse)
@limiter.limit("30/minute")
def update_tenant(request: Request, tenant_id: str, body: TenantUpdate,
                  current_user: RequireUniversalAdmin, service: TenantServiceDep):
    """Activate or deactivate a tenant. Inactive tenants refuse customer orders."""
    return service.set_tenant_active(tenant_id, body.is_active)
