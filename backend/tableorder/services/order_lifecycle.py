"""Order lifecycle: placement, kitchen status changes and payment state.

Status moves only forward::

    pending -> accepted -> cooking -> completed
    pending | accepted -> rejected

Payment is a separate axis (unpaid/paid) that only staff can set; customers
can merely claim they have paid. Every change is a conditional write against
the status the manager read, and is published to the change feed only after
the repository confirms it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional

from tableorder.core.errors import (
    AccessDeniedError,
    ConcurrentUpdateError,
    InvalidTransitionError,
    OrderNotFoundError,
    OrderValidationError,
    PaymentRequiredError,
    TableUnavailableError,
)
from tableorder.models.order import Order, OrderStatus, PaymentMode, PaymentStatus
from tableorder.services.billing import calculate_bill, line_total, to_decimal
from tableorder.services.order_repository import OrderRepository
from tableorder.services.payment_link import PaymentLinkProvider
from tableorder.services.realtime import ChangeType, OrderChanged, OrderEventBroker, order_events

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.ACCEPTED, OrderStatus.REJECTED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.COOKING, OrderStatus.REJECTED}),
    OrderStatus.COOKING: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
}

# Target of the staff "advance" action
NEXT_STATUS = {
    OrderStatus.ACCEPTED: OrderStatus.COOKING,
    OrderStatus.COOKING: OrderStatus.COMPLETED,
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def next_action(order: Order) -> Optional[str]:
    """Label of the next kitchen action for a dashboard button."""
    if order.status == OrderStatus.PENDING:
        return "accept"
    target = NEXT_STATUS.get(order.status)
    if target == OrderStatus.COOKING:
        return "start_cooking"
    if target == OrderStatus.COMPLETED:
        return "complete"
    return None


@dataclass(frozen=True)
class OrderLine:
    item_id: str
    name: str
    price: Decimal
    quantity: int
    category: str = ""
    veg: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "category": self.category,
            "price": str(to_decimal(self.price)),
            "quantity": self.quantity,
            "veg": self.veg,
            "line_total": str(line_total(self.price, self.quantity)),
        }


@dataclass(frozen=True)
class CustomerInfo:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class StaffMember:
    """The staff user performing an action, as recorded on the order."""

    user_id: int
    email: str
    display_name: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderLifecycleManager:
    def __init__(
        self,
        repository: OrderRepository,
        payment_links: Optional[PaymentLinkProvider] = None,
        publisher: OrderEventBroker = order_events,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repository = repository
        self.payment_links = payment_links
        self.publisher = publisher
        self.clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, tenant_id: str, order_id: str) -> Order:
        order = self.repository.get(tenant_id, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _publish(self, change_type: ChangeType, order: Order) -> None:
        self.publisher.publish(OrderChanged.for_order(change_type, order))

    def _conditional_update(
        self,
        order: Order,
        expected_statuses,
        changes: dict[str, Any],
        expected_payment: Optional[PaymentStatus] = None,
    ) -> Order:
        updated = self.repository.update_if(
            order.tenant_id, order.order_id, expected_statuses, changes, expected_payment
        )
        if updated is None:
            logger.warning(
                f"Conditional update lost for order {order.order_id} "
                f"(tenant {order.tenant_id}, expected {order.status.value})"
            )
            raise ConcurrentUpdateError(order.order_id)
        self._publish(ChangeType.UPDATE, updated)
        return updated

    def _staff_stamp(self, staff: StaffMember, now: datetime) -> dict[str, Any]:
        return {"last_updated_at": now, "last_updated_by": staff.email}

    # ------------------------------------------------------------------
    # Customer actions
    # ------------------------------------------------------------------

    def place_order(
        self,
        tenant,
        tenant_settings,
        table,
        lines: Iterable[OrderLine],
        payment_mode: str,
        *,
        customer: Optional[CustomerInfo] = None,
        user_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """Create a pending order from priced cart lines.

        UPI orders get their payment link before anything is stored, so a
        provider failure leaves no order behind. Cash and card orders are
        recorded as paid on creation.
        """
        if tenant is None or not tenant.is_active or table is None or not table.is_active:
            raise TableUnavailableError(
                getattr(tenant, "id", None), getattr(table, "table_number", None)
            )
        if tenant_settings is None:
            raise OrderValidationError("This restaurant is not accepting orders yet")

        lines = list(lines)
        if not lines:
            raise OrderValidationError("Your cart is empty")

        try:
            mode = PaymentMode(payment_mode)
        except ValueError:
            raise OrderValidationError(f"Unknown payment mode '{payment_mode}'")
        if mode.value not in tenant_settings.enabled_payment_modes():
            raise OrderValidationError(f"{mode.value.upper()} payments are not accepted here")

        if tenant_settings.require_customer_auth and user_id is None:
            raise AccessDeniedError("Please sign in to place an order")

        try:
            bill = calculate_bill(lines, tenant_settings.service_charge)
        except ValueError as e:
            raise OrderValidationError(str(e))

        order_id = self.repository.next_order_id(tenant.id)
        upi_url = qr_url = None
        if mode == PaymentMode.UPI:
            if self.payment_links is None:
                raise OrderValidationError("UPI payments are not available")
            link = self.payment_links.create_link(
                tenant_id=tenant.id,
                order_id=order_id,
                amount=bill.total,
                merchant_upi_id=tenant_settings.merchant_upi_id,
                payee_name=tenant_settings.restaurant_name,
            )
            upi_url, qr_url = link.upi_url, link.qr_url

        now = self.clock()
        paid_on_creation = mode in (PaymentMode.CASH, PaymentMode.CARD)
        customer = customer or CustomerInfo()
        order = Order(
            tenant_id=tenant.id,
            order_id=order_id,
            table_id=str(table.table_number),
            items=[line.to_dict() for line in lines],
            subtotal=bill.subtotal,
            service_charge=bill.service_charge_percentage,
            service_charge_amount=bill.service_charge_amount,
            total=bill.total,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PAID if paid_on_creation else PaymentStatus.UNPAID,
            payment_mode=mode,
            payment_claimed=False,
            payment_claimed_at=None,
            upi_url=upi_url,
            qr_url=qr_url,
            bill_downloaded=False,
            created_at=now,
            paid_at=now if paid_on_creation else None,
            last_updated_at=now,
            user_id=user_id,
            customer_name=customer.name,
            customer_email=customer.email,
            customer_phone=customer.phone,
            notes=notes,
        )
        saved = self.repository.add(order)
        logger.info(
            f"Order {saved.order_id} placed: tenant={saved.tenant_id} table={saved.table_id} "
            f"total={saved.total} mode={mode.value}"
        )
        self._publish(ChangeType.INSERT, saved)
        return saved

    def claim_payment(self, tenant_id: str, order_id: str) -> Order:
        """Customer says they paid. Staff still have to confirm."""
        order = self._require(tenant_id, order_id)
        updated = self.repository.update_if(
            tenant_id, order_id, None,
            {"payment_claimed": True, "payment_claimed_at": self.clock()},
        )
        if updated is None:
            raise OrderNotFoundError(order_id)
        logger.info(f"Payment claimed for order {order.order_id} (tenant {tenant_id})")
        self._publish(ChangeType.UPDATE, updated)
        return updated

    def cancel_order(self, tenant_id: str, order_id: str, user_id: Optional[int] = None) -> dict[str, Any]:
        """Delete a pending, unpaid order on the customer's request.

        The delete itself is conditional on the order still being pending and
        unpaid, so a concurrent accept makes the cancel fail instead of
        removing an accepted order.
        """
        order = self._require(tenant_id, order_id)
        if order.user_id is not None and user_id is not None and order.user_id != user_id:
            raise AccessDeniedError("You can only cancel your own orders")
        if order.status != OrderStatus.PENDING or order.payment_status != PaymentStatus.UNPAID:
            raise InvalidTransitionError(order_id, order.status.value, "cancelled")

        # Snapshot before the row disappears
        event = OrderChanged.for_order(ChangeType.DELETE, order)
        deleted = self.repository.delete_if(
            tenant_id, order_id, OrderStatus.PENDING, PaymentStatus.UNPAID
        )
        if not deleted:
            current = self.repository.get(tenant_id, order_id)
            if current is None:
                raise OrderNotFoundError(order_id)
            raise InvalidTransitionError(order_id, current.status.value, "cancelled")

        logger.info(f"Order {order_id} cancelled by customer (tenant {tenant_id})")
        self.publisher.publish(event)
        return event.order

    def mark_bill_downloaded(self, tenant_id: str, order_id: str) -> Order:
        order = self._require(tenant_id, order_id)
        if order.bill_downloaded:
            return order
        updated = self.repository.update_if(tenant_id, order_id, None, {"bill_downloaded": True})
        if updated is None:
            raise OrderNotFoundError(order_id)
        return updated

    # ------------------------------------------------------------------
    # Staff actions
    # ------------------------------------------------------------------

    def accept_order(self, tenant_id: str, order_id: str, staff: StaffMember,
                     mark_paid: bool = False) -> Order:
        order = self._require(tenant_id, order_id)
        if not can_transition(order.status, OrderStatus.ACCEPTED):
            raise InvalidTransitionError(order_id, order.status.value, OrderStatus.ACCEPTED.value)

        now = self.clock()
        changes = {
            "status": OrderStatus.ACCEPTED,
            "accepted_at": now,
            "cook_name": staff.display_name,
            **self._staff_stamp(staff, now),
        }
        if mark_paid and order.payment_status != PaymentStatus.PAID:
            changes["payment_status"] = PaymentStatus.PAID
            changes["paid_at"] = now
        updated = self._conditional_update(order, [OrderStatus.PENDING], changes)
        logger.info(f"Order {order_id} accepted by {staff.email} (tenant {tenant_id})")
        return updated

    def advance(self, tenant_id: str, order_id: str, staff: StaffMember,
                mark_paid: bool = False) -> Order:
        """Move an accepted order to cooking, or a cooking order to completed.

        Refused while the order is unpaid unless this same action marks it paid.
        """
        order = self._require(tenant_id, order_id)
        target = NEXT_STATUS.get(order.status)
        if target is None:
            wanted = OrderStatus.COOKING.value if order.status == OrderStatus.PENDING else "next"
            raise InvalidTransitionError(order_id, order.status.value, wanted)

        already_paid = order.payment_status == PaymentStatus.PAID
        if not already_paid and not mark_paid:
            raise PaymentRequiredError(order_id)

        now = self.clock()
        changes = {"status": target, **self._staff_stamp(staff, now)}
        if not already_paid:
            changes["payment_status"] = PaymentStatus.PAID
            changes["paid_at"] = now
        if target == OrderStatus.COMPLETED:
            changes["completed_at"] = now

        updated = self._conditional_update(
            order, [order.status], changes,
            expected_payment=PaymentStatus.PAID if already_paid else None,
        )
        logger.info(f"Order {order_id} moved to {target.value} by {staff.email} (tenant {tenant_id})")
        return updated

    def reject(self, tenant_id: str, order_id: str, staff: StaffMember) -> Order:
        order = self._require(tenant_id, order_id)
        if not can_transition(order.status, OrderStatus.REJECTED):
            raise InvalidTransitionError(order_id, order.status.value, OrderStatus.REJECTED.value)

        now = self.clock()
        changes = {"status": OrderStatus.REJECTED, **self._staff_stamp(staff, now)}
        updated = self._conditional_update(order, [order.status], changes)
        logger.info(f"Order {order_id} rejected by {staff.email} (tenant {tenant_id})")
        return updated

    def toggle_payment(self, tenant_id: str, order_id: str, staff: StaffMember) -> Order:
        """Flip paid/unpaid regardless of kitchen status. Last write wins."""
        order = self._require(tenant_id, order_id)
        now = self.clock()
        if order.payment_status == PaymentStatus.PAID:
            changes = {"payment_status": PaymentStatus.UNPAID, "paid_at": None}
        else:
            changes = {"payment_status": PaymentStatus.PAID, "paid_at": now}
        changes.update(self._staff_stamp(staff, now))

        updated = self.repository.update_if(tenant_id, order_id, None, changes)
        if updated is None:
            raise OrderNotFoundError(order_id)
        logger.info(
            f"Order {order_id} payment set to {updated.payment_status.value} by {staff.email} "
            f"(tenant {tenant_id})"
        )
        self._publish(ChangeType.UPDATE, updated)
        return updated
