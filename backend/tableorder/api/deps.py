"""Shared route dependencies."""

from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends

from tableorder.core.config import settings
from tableorder.core.errors import TableUnavailableError
from tableorder.db.session import DbSession
from tableorder.models.tenant import RestaurantTable, Tenant
from tableorder.services.cart import CartStore, get_cart_store
from tableorder.services.menu_source import MenuSource, get_menu_source
from tableorder.services.order_lifecycle import OrderLifecycleManager
from tableorder.services.order_repository import SqlAlchemyOrderRepository
from tableorder.services.payment_link import PaymentLinkProvider, get_payment_link_provider
from tableorder.services.tenant_service import TenantService


def get_tenant_service(db: DbSession) -> TenantService:
    return TenantService(db)


def get_order_repository(db: DbSession) -> SqlAlchemyOrderRepository:
    return SqlAlchemyOrderRepository(db)


def get_order_manager(
    repository: Annotated[SqlAlchemyOrderRepository, Depends(get_order_repository)],
    payment_links: Annotated[PaymentLinkProvider, Depends(get_payment_link_provider)],
) -> OrderLifecycleManager:
    return OrderLifecycleManager(repository, payment_links)


TenantServiceDep = Annotated[TenantService, Depends(get_tenant_service)]
OrderRepositoryDep = Annotated[SqlAlchemyOrderRepository, Depends(get_order_repository)]
OrderManagerDep = Annotated[OrderLifecycleManager, Depends(get_order_manager)]
MenuSourceDep = Annotated[MenuSource, Depends(get_menu_source)]
CartStoreDep = Annotated[CartStore, Depends(get_cart_store)]


def live_board_cutoff() -> datetime:
    """Completed and rejected orders older than this drop off the live boards."""
    return datetime.now(timezone.utc) - timedelta(minutes=settings.order_expiry_minutes)


def open_table(service: TenantService, tenant_id: str, table_number: int) -> tuple[Tenant, RestaurantTable]:
    """Tenant and table for a customer request, refusing inactive ones."""
    tenant = service.get_tenant(tenant_id)
    table = service.get_table(tenant_id, table_number)
    if not tenant.is_active or table is None or not table.is_active:
        raise TableUnavailableError(tenant_id, table_number)
    return tenant, table
