"""Order persistence.

``OrderRepository`` is the only way lifecycle code touches stored orders.
Every state change goes through ``update_if``/``delete_if``, which apply the
change only while the row still has the expected status, so two staff
members acting on the same order cannot both win.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Collection
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from tableorder.core.config import settings
from tableorder.models.order import (
    TERMINAL_STATUSES, Order, OrderSequence, OrderStatus, PaymentStatus,
)

logger = logging.getLogger(__name__)


def format_order_id(sequence: int, prefix: Optional[str] = None) -> str:
    return f"{prefix or settings.order_id_prefix}-{sequence:04d}"


class OrderRepository(ABC):
    """Storage for orders, scoped by tenant on every call."""

    @abstractmethod
    def next_order_id(self, tenant_id: str) -> str:
        """Reserve the next human-readable order id for a tenant."""

    @abstractmethod
    def add(self, order: Order) -> Order:
        ...

    @abstractmethod
    def get(self, tenant_id: str, order_id: str) -> Optional[Order]:
        ...

    @abstractmethod
    def update_if(
        self,
        tenant_id: str,
        order_id: str,
        expected_statuses: Optional[Collection[OrderStatus]],
        changes: dict[str, Any],
        expected_payment: Optional[PaymentStatus] = None,
    ) -> Optional[Order]:
        """Apply ``changes`` only if the order is in one of ``expected_statuses``.

        Returns the updated order, or None when no row matched.
        """

    @abstractmethod
    def delete_if(
        self,
        tenant_id: str,
        order_id: str,
        expected_status: OrderStatus,
        expected_payment: PaymentStatus,
    ) -> bool:
        ...

    @abstractmethod
    def list_for_table(self, tenant_id: str, table_id: str, visible_since: datetime) -> list[Order]:
        """Orders of one table, hiding terminal orders last touched before ``visible_since``."""

    @abstractmethod
    def list_for_tenant(
        self,
        tenant_id: str,
        visible_since: Optional[datetime] = None,
        statuses: Optional[Collection[OrderStatus]] = None,
    ) -> list[Order]:
        ...


class SqlAlchemyOrderRepository(OrderRepository):
    """Repository backed by the relational store."""

    def __init__(self, db: Session):
        self.db = db

    def next_order_id(self, tenant_id: str) -> str:
        seq = self.db.execute(
            select(OrderSequence).where(OrderSequence.tenant_id == tenant_id).with_for_update()
        ).scalar_one_or_none()
        if seq is None:
            seq = OrderSequence(tenant_id=tenant_id, last_value=0)
            self.db.add(seq)
        seq.last_value += 1
        value = seq.last_value
        # Committed on its own: a failed order leaves a gap, never a duplicate
        self.db.commit()
        return format_order_id(value)

    def add(self, order: Order) -> Order:
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def get(self, tenant_id: str, order_id: str) -> Optional[Order]:
        return self.db.execute(
            select(Order).where(Order.tenant_id == tenant_id, Order.order_id == order_id)
        ).scalar_one_or_none()

    def update_if(self, tenant_id, order_id, expected_statuses, changes, expected_payment=None):
        stmt = update(Order).where(Order.tenant_id == tenant_id, Order.order_id == order_id)
        if expected_statuses is not None:
            stmt = stmt.where(Order.status.in_(list(expected_statuses)))
        if expected_payment is not None:
            stmt = stmt.where(Order.payment_status == expected_payment)
        result = self.db.execute(
            stmt.values(**changes).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            return None
        self.db.commit()
        order = self.get(tenant_id, order_id)
        if order is not None:
            self.db.refresh(order)
        return order

    def delete_if(self, tenant_id, order_id, expected_status, expected_payment) -> bool:
        result = self.db.execute(
            delete(Order)
            .where(
                Order.tenant_id == tenant_id,
                Order.order_id == order_id,
                Order.status == expected_status,
                Order.payment_status == expected_payment,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            return False
        self.db.commit()
        return True

    @staticmethod
    def _visible(visible_since: datetime):
        return or_(
            Order.status.notin_(list(TERMINAL_STATUSES)),
            Order.last_updated_at >= visible_since,
        )

    def list_for_table(self, tenant_id, table_id, visible_since):
        stmt = (
            select(Order)
            .where(Order.tenant_id == tenant_id, Order.table_id == str(table_id))
            .where(self._visible(visible_since))
            .order_by(Order.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars())

    def list_for_tenant(self, tenant_id, visible_since=None, statuses=None):
        stmt = select(Order).where(Order.tenant_id == tenant_id)
        if visible_since is not None:
            stmt = stmt.where(self._visible(visible_since))
        if statuses:
            stmt = stmt.where(Order.status.in_(list(statuses)))
        return list(self.db.execute(stmt.order_by(Order.created_at.desc())).scalars())
