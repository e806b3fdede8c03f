"""API routes."""

from fastapi import APIRouter

from tableorder.api.routes import admin, analytics, auth, cart, menu, orders, staff, tenants, websocket_endpoints

api_router = APIRouter()

# Customer-facing (public)
api_router.include_router(menu.router, tags=["menu"])
api_router.include_router(cart.router, tags=["cart"])
api_router.include_router(orders.router, tags=["orders"])

# Staff dashboards
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(staff.router, tags=["kitchen", "billing"])
api_router.include_router(tenants.router, tags=["tenant-admin"])
api_router.include_router(analytics.router, tags=["analytics"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])

# Live order streams (JWT checked in the handlers)
api_router.include_router(websocket_endpoints.router, prefix="/ws", tags=["websocket"])
