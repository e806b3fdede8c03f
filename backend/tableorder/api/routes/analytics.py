"""Manager analytics."""

import logging

from fastapi import APIRouter, Query, Request, Response

from tableorder.core.rate_limit import limiter
from tableorder.core.rbac import RequireAnalytics
from tableorder.db.session import DbSession
from tableorder.services.analytics import AnalyticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants/{tenant_id}/analytics")


@router.get("")
@limiter.limit("30/minute")
def get_order_stats(
    request: Request,
    tenant_id: str,
    current_user: RequireAnalytics,
    db: DbSession,
    time_range: str = Query("today", alias="range", description="today, 7days or 30days"),
):
    """Revenue, volume, top items and cooking times for the selected period."""
    return AnalyticsService(db).order_stats(tenant_id, time_range)


@router.get("/export.csv")
@limiter.limit("10/minute")
def export_orders(request: Request, tenant_id: str, current_user: RequireAnalytics, db: DbSession):
    csv_text = AnalyticsService(db).export_orders_csv(tenant_id)
    logger.info(f"Order export for tenant {tenant_id} by {current_user.email}")
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="orders-{tenant_id}.csv"'},
    )
