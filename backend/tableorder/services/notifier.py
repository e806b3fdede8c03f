"""Turns the order change feed into user-facing notifications.

``reduce`` is a pure function: given the state a client has accumulated and
the next ``OrderChanged`` event, it returns the new state and the
notifications to show. Feeds may redeliver or reorder events; the reducer
announces each status transition once and never moves an order backwards.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Mapping, Optional

from tableorder.models.order import OrderStatus, PaymentStatus
from tableorder.services.realtime import ChangeType, OrderChanged

STATUS_RANK = {
    OrderStatus.PENDING.value: 0,
    OrderStatus.ACCEPTED.value: 1,
    OrderStatus.COOKING.value: 2,
    OrderStatus.COMPLETED.value: 3,
    OrderStatus.REJECTED.value: 3,
}
TERMINAL = {OrderStatus.COMPLETED.value, OrderStatus.REJECTED.value}


class Audience(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"


class Effect(str, Enum):
    CELEBRATE = "celebrate"
    SOUND = "sound"


@dataclass(frozen=True)
class Notification:
    order_id: str
    kind: str
    title: str
    message: str
    level: str = "info"
    effect: Optional[Effect] = None

    def to_message(self) -> dict:
        return {
            "type": "notification",
            "order_id": self.order_id,
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "level": self.level,
            "effect": self.effect.value if self.effect else None,
        }


@dataclass(frozen=True)
class NotifierState:
    """What a client has already seen. Never mutated; ``reduce`` returns copies."""

    statuses: Mapping[str, str] = field(default_factory=dict)
    payments: Mapping[str, str] = field(default_factory=dict)
    claims: frozenset = frozenset()
    versions: Mapping[str, datetime] = field(default_factory=dict)
    announced: frozenset = frozenset()
    celebrated: frozenset = frozenset()


_CUSTOMER_STATUS_MESSAGES = {
    "accepted": ("success", "✅ Order Accepted!", "Your order has been confirmed by the kitchen."),
    "cooking": ("info", "👨‍🍳 Your food is now cooking!", "The chef is preparing your delicious meal."),
    "completed": ("success", "🍽️ Order Completed!", "Enjoy your meal!"),
    "rejected": ("error", "❌ Order Rejected",
                 "Sorry, your order was rejected. Refund will be processed soon."),
}


def seed(state: NotifierState, orders: Iterable[Mapping]) -> NotifierState:
    """Record the current status of already-known orders without notifying."""
    statuses = dict(state.statuses)
    payments = dict(state.payments)
    claims = set(state.claims)
    versions = dict(state.versions)
    for order in orders:
        statuses[order["order_id"]] = order["status"]
        payments[order["order_id"]] = order["payment_status"]
        version = _row_version(order)
        if version is not None:
            versions[order["order_id"]] = version
        if order.get("payment_claimed"):
            claims.add(order["order_id"])
    return replace(state, statuses=statuses, payments=payments, claims=frozenset(claims), versions=versions)


def _row_version(order: Mapping) -> Optional[datetime]:
    """The row's own ``last_updated_at``; naive values are read as UTC."""
    value = order.get("last_updated_at")
    if not value:
        return None
    stamp = datetime.fromisoformat(value) if isinstance(value, str) else value
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp


def _payment_notification(order_id: str, order: Mapping) -> Notification:
    if order["payment_status"] == PaymentStatus.PAID.value:
        mode = order.get("payment_mode")
        message = f"Payment via {mode.upper()} confirmed." if mode else "Your payment has been confirmed."
        return Notification(order_id, "payment_confirmed", "💰 Payment Confirmed!", message, "success")
    return Notification(order_id, "payment_unpaid", "Payment status updated to unpaid", "", "info")


def reduce(
    state: NotifierState,
    event: OrderChanged,
    audience: Audience = Audience.CUSTOMER,
) -> tuple[NotifierState, list[Notification]]:
    order_id = event.order_id
    order = event.order
    notifications: list[Notification] = []

    statuses = dict(state.statuses)
    payments = dict(state.payments)
    claims = set(state.claims)
    versions = dict(state.versions)
    announced = set(state.announced)
    celebrated = set(state.celebrated)
    version = _row_version(order)

    if event.type == ChangeType.DELETE:
        if audience == Audience.STAFF and (order_id, "cancelled") not in announced:
            announced.add((order_id, "cancelled"))
            notifications.append(Notification(
                order_id, "order_cancelled", "Order Cancelled",
                f"Table {event.table_id} cancelled order {order_id}", "warning",
            ))
        statuses.pop(order_id, None)
        payments.pop(order_id, None)
        versions.pop(order_id, None)
        claims.discard(order_id)

    elif event.type == ChangeType.INSERT or order_id not in statuses:
        # First sighting seeds state; only staff are told about new orders
        if event.type == ChangeType.INSERT and audience == Audience.STAFF \
                and (order_id, "new") not in announced:
            announced.add((order_id, "new"))
            notifications.append(Notification(
                order_id, "new_order", "🍽️ New Order Received",
                f"Table {event.table_id}", "info", Effect.SOUND,
            ))
        if order_id not in statuses:
            statuses[order_id] = order["status"]
            payments[order_id] = order["payment_status"]
            if version is not None:
                versions[order_id] = version
            if order.get("payment_claimed"):
                claims.add(order_id)

    else:
        previous = statuses[order_id]
        current = order["status"]
        moved_forward = (
            current != previous
            and previous not in TERMINAL
            and STATUS_RANK.get(current, -1) > STATUS_RANK.get(previous, -1)
        )
        if moved_forward:
            statuses[order_id] = current
            if audience == Audience.CUSTOMER and (order_id, current) not in announced \
                    and current in _CUSTOMER_STATUS_MESSAGES:
                announced.add((order_id, current))
                level, title, message = _CUSTOMER_STATUS_MESSAGES[current]
                effect = None
                if current == OrderStatus.COMPLETED.value and order_id not in celebrated:
                    celebrated.add(order_id)
                    effect = Effect.CELEBRATE
                notifications.append(Notification(order_id, f"order_{current}", title, message, level, effect))

        # Payment follows the newest row version seen
        known = versions.get(order_id)
        current_row = version is None or known is None or version >= known
        if current_row and version is not None:
            versions[order_id] = version
        if current_row and order["payment_status"] != payments.get(order_id):
            payments[order_id] = order["payment_status"]
            if audience == Audience.CUSTOMER:
                notifications.append(_payment_notification(order_id, order))

        if order.get("payment_claimed") and order_id not in claims:
            claims.add(order_id)
            if audience == Audience.STAFF:
                notifications.append(Notification(
                    order_id, "payment_claimed", "💳 Payment Claimed",
                    f"Table {event.table_id} says order {order_id} is paid. Please verify.", "warning",
                ))

    new_state = NotifierState(
        statuses=statuses,
        payments=payments,
        claims=frozenset(claims),
        versions=versions,
        announced=frozenset(announced),
        celebrated=frozenset(celebrated),
    )
    return new_state, notifications
