"""
WebSocket endpoints for live order tracking.

Customer stream (public): ``/ws/tenants/{tenant_id}/tables/{table_number}``
    Sends a ``snapshot`` of the table's visible orders, then every change to
    them as ``order_changed`` followed by any ``notification`` it triggers
    (accepted, cooking, completed, payment confirmed...).

Staff stream: ``/ws/tenants/{tenant_id}/orders``
    Same protocol for all orders of the tenant, with staff notifications
    (new order, cancellation, payment claimed). Requires a chef or billing
    role in the tenant.

Staff auth is checked in order: ``access_token`` cookie, ``?token=`` query
parameter, then a first message ``{"type": "auth", "token": "..."}``.

Clients may send ``{"type": "ping"}`` at any time and get ``{"type": "pong"}``.
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool
from starlette.websockets import WebSocketState

from tableorder.api.deps import live_board_cutoff
from tableorder.core.rbac import TokenData, authenticate_token, load_role_grants
from tableorder.core.rbac_policy import Route, can_access
from tableorder.core.security import COOKIE_ACCESS_NAME
from tableorder.db.session import DbSession
from tableorder.services import notifier
from tableorder.services.order_repository import SqlAlchemyOrderRepository
from tableorder.services.realtime import Subscription, order_events, ws_manager

logger = logging.getLogger(__name__)

router = APIRouter()

# Seconds the client has to send the first-message auth event
_AUTH_TIMEOUT = 5.0
WS_POLICY_CLOSE = 4001
WS_FORBIDDEN_CLOSE = 4003
WS_INTERNAL_ERROR_CLOSE = 1011


async def _authenticate(websocket: WebSocket, db, query_token: Optional[str]) -> Optional[TokenData]:
    """Authenticate an accepted socket. Closes it and returns None on failure."""
    cookie_token = websocket.cookies.get(COOKIE_ACCESS_NAME)
    for token in (cookie_token, query_token):
        if token:
            user = await run_in_threadpool(authenticate_token, token, db)
            if user:
                return user
    if cookie_token or query_token:
        await websocket.close(code=WS_POLICY_CLOSE, reason="Invalid token")
        return None

    try:
        raw = await asyncio.wait_for(websocket.receive_text(), timeout=_AUTH_TIMEOUT)
        message = json.loads(raw)
    except asyncio.TimeoutError:
        await websocket.close(code=WS_POLICY_CLOSE, reason="Authentication timeout")
        return None
    except json.JSONDecodeError:
        await websocket.close(code=WS_POLICY_CLOSE, reason="Invalid auth message")
        return None

    if not isinstance(message, dict) or message.get("type") != "auth" or not message.get("token"):
        await websocket.close(code=WS_POLICY_CLOSE, reason='First message must be {"type":"auth","token":"..."}')
        return None
    user = await run_in_threadpool(authenticate_token, message["token"], db)
    if not user:
        await websocket.close(code=WS_POLICY_CLOSE, reason="Invalid token")
        return None
    return user


async def _pump_events(websocket: WebSocket, subscription: Subscription,
                       state: notifier.NotifierState, audience: notifier.Audience) -> None:
    """Forward feed events and the notifications they produce until cancelled."""
    while True:
        event = await subscription.get()
        state, notifications = notifier.reduce(state, event, audience)
        await websocket.send_json(event.to_message())
        for notification in notifications:
            await websocket.send_json(notification.to_message())


async def _receive_loop(websocket: WebSocket) -> None:
    while True:
        data = await websocket.receive_text()
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON received: {data[:100]}")
            continue
        if isinstance(message, dict) and message.get("type") == "ping":
            await websocket.send_json({"type": "pong"})


async def _stream(websocket: WebSocket, subscription: Subscription, snapshot: list[dict],
                  audience: notifier.Audience) -> None:
    state = notifier.seed(notifier.NotifierState(), snapshot)
    await websocket.send_json({"type": "snapshot", "orders": snapshot})

    pump = asyncio.create_task(_pump_events(websocket, subscription, state, audience))
    receiver = asyncio.create_task(_receive_loop(websocket))
    try:
        # Whichever side stops first ends the stream
        await asyncio.wait({pump, receiver}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pump.cancel()
        receiver.cancel()
        subscription.close()

    failed = False
    for name, task in (("receive", receiver), ("event", pump)):
        try:
            await task
        except asyncio.CancelledError:
            pass
        except WebSocketDisconnect as e:
            logger.debug(f"WebSocket client disconnected (code {e.code})")
        except Exception as e:
            logger.error(f"WebSocket {name} loop failed: {e}")
            failed = True

    connected = WebSocketState.CONNECTED
    if failed and websocket.client_state == connected and websocket.application_state == connected:
        await websocket.close(code=WS_INTERNAL_ERROR_CLOSE, reason="Order feed stopped")


@router.websocket("/tenants/{tenant_id}/tables/{table_number}")
async def table_orders_websocket(websocket: WebSocket, tenant_id: str, table_number: int, db: DbSession):
    """Live status of a table's orders for the customer's tracking screen."""
    channel = f"table:{tenant_id}:{table_number}"
    if not await ws_manager.connect(websocket, channel):
        return

    # Subscribe before the snapshot so no change falls between the two
    subscription = order_events.subscribe(tenant_id, str(table_number))
    repository = SqlAlchemyOrderRepository(db)
    orders = await run_in_threadpool(
        repository.list_for_table, tenant_id, str(table_number), live_board_cutoff()
    )
    try:
        await _stream(websocket, subscription, [o.snapshot() for o in orders], notifier.Audience.CUSTOMER)
    finally:
        ws_manager.disconnect(websocket, channel)
        logger.info(f"Table stream closed: tenant={tenant_id} table={table_number}")


@router.websocket("/tenants/{tenant_id}/orders")
async def tenant_orders_websocket(
    websocket: WebSocket,
    tenant_id: str,
    db: DbSession,
    token: Optional[str] = Query(None, description="Auth token (prefer cookie or first-message auth)"),
):
    """Live order feed for the kitchen and billing dashboards."""
    channel = f"staff:{tenant_id}"
    if not await ws_manager.connect(websocket, channel):
        return
    try:
        user = await _authenticate(websocket, db, token)
        if user is None:
            return
        grants = await run_in_threadpool(load_role_grants, db, user.user_id)
        if not (can_access(Route.CHEF, grants, tenant_id) or can_access(Route.BILLING, grants, tenant_id)):
            logger.warning(f"WebSocket access denied: user {user.user_id} for tenant {tenant_id}")
            await websocket.close(code=WS_FORBIDDEN_CLOSE, reason="Not authorized for this restaurant")
            return
        await websocket.send_json({"type": "auth_success", "user_id": user.user_id})

        subscription = order_events.subscribe(tenant_id)
        repository = SqlAlchemyOrderRepository(db)
        orders = await run_in_threadpool(
            repository.list_for_tenant, tenant_id, live_board_cutoff()
        )
        await _stream(websocket, subscription, [o.snapshot() for o in orders], notifier.Audience.STAFF)
    finally:
        ws_manager.disconnect(websocket, channel)
        logger.info(f"Staff stream closed: tenant={tenant_id}")
