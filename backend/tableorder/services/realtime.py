"""Real-time order change feed.

Lifecycle code publishes an ``OrderChanged`` event after each confirmed
write. WebSocket handlers subscribe to a tenant (staff board) or to one
table of a tenant (customer tracking) and receive events in commit order.

Publishing is safe from any thread: sync route handlers run in the
threadpool while subscribers live on the event loop.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import WebSocket, status

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class OrderChanged:
    """A committed change to one order row, with the row as it is after the change."""

    type: ChangeType
    tenant_id: str
    table_id: str
    order_id: str
    order: Dict[str, Any]
    committed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": "order_changed",
            "event": self.type.value,
            "tenant_id": self.tenant_id,
            "table_id": self.table_id,
            "order_id": self.order_id,
            "order": self.order,
            "committed_at": self.committed_at.isoformat(),
        }

    @classmethod
    def for_order(cls, change_type: ChangeType, order) -> "OrderChanged":
        return cls(
            type=change_type,
            tenant_id=order.tenant_id,
            table_id=str(order.table_id),
            order_id=order.order_id,
            order=order.snapshot(),
        )


class Subscription:
    """One subscriber's queue, bound to the event loop it was created on."""

    def __init__(self, broker: "OrderEventBroker", tenant_id: str, table_id: Optional[str],
                 loop: asyncio.AbstractEventLoop):
        self._broker = broker
        self.tenant_id = tenant_id
        self.table_id = table_id
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()

    def matches(self, event: OrderChanged) -> bool:
        if event.tenant_id != self.tenant_id:
            return False
        return self.table_id is None or event.table_id == self.table_id

    async def get(self) -> OrderChanged:
        return await self.queue.get()

    def close(self) -> None:
        self._broker.unsubscribe(self)


class OrderEventBroker:
    """Fan-out of order changes to filtered subscribers."""

    def __init__(self):
        self._subscriptions: set[Subscription] = set()
        self._lock = threading.Lock()

    def subscribe(self, tenant_id: str, table_id: Optional[str] = None) -> Subscription:
        """Subscribe from inside a running event loop."""
        sub = Subscription(self, tenant_id, str(table_id) if table_id is not None else None,
                           asyncio.get_running_loop())
        with self._lock:
            self._subscriptions.add(sub)
        logger.debug(f"Order feed subscription tenant={tenant_id} table={table_id}")
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(sub)

    def publish(self, event: OrderChanged) -> int:
        """Deliver ``event`` to every matching subscriber. Returns the delivery count."""
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]

        delivered = 0
        for sub in targets:
            try:
                sub.loop.call_soon_threadsafe(sub.queue.put_nowait, event)
                delivered += 1
            except RuntimeError:
                # Subscriber's loop has shut down
                logger.info(f"Dropping closed order feed subscription for tenant {sub.tenant_id}")
                self.unsubscribe(sub)
        logger.debug(
            f"Published {event.type.value} for order {event.order_id} "
            f"(tenant {event.tenant_id}) to {delivered} subscribers"
        )
        return delivered

    def subscriber_count(self, tenant_id: Optional[str] = None) -> int:
        with self._lock:
            if tenant_id is None:
                return len(self._subscriptions)
            return sum(1 for s in self._subscriptions if s.tenant_id == tenant_id)


class ConnectionManager:
    """Bookkeeping for open WebSocket connections, grouped by channel."""

    MAX_CONNECTIONS_PER_CHANNEL = 500

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, channel: str) -> bool:
        """Accept a connection. Returns False if the channel is at capacity."""
        if len(self.active_connections.get(channel, [])) >= self.MAX_CONNECTIONS_PER_CHANNEL:
            logger.warning(f"WebSocket connection rejected: channel '{channel}' at capacity")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return False
        await websocket.accept()
        self.active_connections.setdefault(channel, []).append(websocket)
        logger.debug(f"WebSocket connected to channel '{channel}'")
        return True

    def disconnect(self, websocket: WebSocket, channel: str) -> None:
        connections = self.active_connections.get(channel)
        if connections and websocket in connections:
            connections.remove(websocket)
            if not connections:
                del self.active_connections[channel]
        logger.debug(f"WebSocket disconnected from channel '{channel}'")

    def get_connection_count(self, channel: Optional[str] = None) -> int:
        if channel:
            return len(self.active_connections.get(channel, []))
        return sum(len(conns) for conns in self.active_connections.values())


order_events = OrderEventBroker()
ws_manager = ConnectionManager()
