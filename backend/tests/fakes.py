"""In-memory collaborators and canned data for unit tests."""

import copy
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from tableorder.core.errors import PaymentLinkError
from tableorder.core.security import create_access_token, get_password_hash
from tableorder.models.order import TERMINAL_STATUSES, Order
from tableorder.models.tenant import RestaurantTable, Tenant, TenantSettings
from tableorder.models.user import AppRole, RoleAssignment, User
from tableorder.services.order_repository import OrderRepository, format_order_id
from tableorder.services.payment_link import PaymentLink, PaymentLinkProvider


class InMemoryOrderRepository(OrderRepository):
    """Dict-backed repository with the same conditional-write contract."""

    def __init__(self):
        self.orders: dict[tuple[str, str], Order] = {}
        self.sequences: dict[str, int] = {}

    def next_order_id(self, tenant_id):
        self.sequences[tenant_id] = self.sequences.get(tenant_id, 0) + 1
        return format_order_id(self.sequences[tenant_id])

    def add(self, order):
        self.orders[(order.tenant_id, order.order_id)] = order
        return order

    def get(self, tenant_id, order_id):
        return self.orders.get((tenant_id, order_id))

    def update_if(self, tenant_id, order_id, expected_statuses, changes, expected_payment=None):
        order = self.orders.get((tenant_id, order_id))
        if order is None:
            return None
        if expected_statuses is not None and order.status not in expected_statuses:
            return None
        if expected_payment is not None and order.payment_status != expected_payment:
            return None
        for key, value in changes.items():
            setattr(order, key, value)
        return order

    def delete_if(self, tenant_id, order_id, expected_status, expected_payment):
        order = self.orders.get((tenant_id, order_id))
        if order is None or order.status != expected_status or order.payment_status != expected_payment:
            return False
        del self.orders[(tenant_id, order_id)]
        return True

    def _visible(self, order, visible_since):
        return order.status not in TERMINAL_STATUSES or order.last_updated_at >= visible_since

    def list_for_table(self, tenant_id, table_id, visible_since):
        rows = [o for (t, _), o in self.orders.items()
                if t == tenant_id and o.table_id == str(table_id) and self._visible(o, visible_since)]
        return sorted(rows, key=lambda o: o.created_at, reverse=True)

    def list_for_tenant(self, tenant_id, visible_since=None, statuses=None):
        rows = [o for (t, _), o in self.orders.items() if t == tenant_id]
        if visible_since is not None:
            rows = [o for o in rows if self._visible(o, visible_since)]
        if statuses:
            rows = [o for o in rows if o.status in statuses]
        return sorted(rows, key=lambda o: o.created_at, reverse=True)


class RecordingPublisher:
    """Stands in for the event broker and keeps every published event."""

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(copy.deepcopy(event))
        return 1

    @property
    def types(self):
        return [e.type.value for e in self.events]


class StaticPaymentLinks(PaymentLinkProvider):
    def __init__(self):
        self.calls = []

    def create_link(self, *, tenant_id, order_id, amount, merchant_upi_id, payee_name=None):
        self.calls.append((tenant_id, order_id, amount))
        return PaymentLink(upi_url=f"upi://pay?tn={order_id}", qr_url=f"https://qr.example/{order_id}")


class FailingPaymentLinks(PaymentLinkProvider):
    def create_link(self, **kwargs):
        raise PaymentLinkError("Payment service is unavailable, please try again")


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, minutes: float = 1):
        self.now += timedelta(minutes=minutes)
        return self.now


def fake_tenant(tenant_id="t-1", is_active=True):
    return SimpleNamespace(id=tenant_id, is_active=is_active)


def fake_table(number=3, is_active=True):
    return SimpleNamespace(table_number=number, is_active=is_active)


def fake_settings(service_charge="5", modes=None, merchant_upi_id="cafe@upi",
                  require_customer_auth=False, restaurant_name="Cafe Blue"):
    modes = modes if modes is not None else {"upi": True, "cash": True, "card": True}
    return SimpleNamespace(
        service_charge=Decimal(service_charge),
        payment_modes=modes,
        merchant_upi_id=merchant_upi_id,
        require_customer_auth=require_customer_auth,
        restaurant_name=restaurant_name,
        enabled_payment_modes=lambda: [m for m, on in modes.items() if on],
    )


SHEET_URL = "https://docs.google.com/spreadsheets/d/sheet-abc123/edit#gid=0"

MENU_CSV = (
    "Item Id,Item,Category,Price,Veg,Image URL,Available,qty,description\n"
    "P1,Paneer Tikka,Starters,100,TRUE,https://img.example/p1.jpg,TRUE,6 pcs,Smoky cottage cheese\n"
    "D1,Dal Makhani,Mains,50,TRUE,,TRUE,,\n"
    "C1,Chicken Curry,Mains,200,FALSE,,FALSE,,\n"
    "L1,Lassi,Drinks,45.50,TRUE,,true,,\n"
)


def menu_transport(csv_text: str = MENU_CSV, calls: Optional[list] = None) -> httpx.MockTransport:
    """Mock spreadsheet export serving ``csv_text``."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        return httpx.Response(200, text=csv_text, headers={"content-type": "text/csv"})

    return httpx.MockTransport(handler)


API = "/api/v1"


def make_tenant(
    db: Session,
    name: str = "Spice Garden",
    table_count: int = 5,
    service_charge: str = "5",
    payment_modes: dict | None = None,
    merchant_upi_id: str | None = "spicegarden@upi",
    require_customer_auth: bool = False,
    menu_sheet_url: str | None = SHEET_URL,
) -> Tenant:
    tenant = Tenant(tenant_name=name.lower().replace(" ", "-"), restaurant_name=name, is_active=True)
    tenant.settings = TenantSettings(
        restaurant_name=name,
        restaurant_address="12 MG Road, Bengaluru",
        merchant_upi_id=merchant_upi_id,
        payment_modes=payment_modes or {"upi": True, "cash": True, "card": False},
        service_charge=Decimal(service_charge),
        table_count=table_count,
        menu_sheet_url=menu_sheet_url,
        require_customer_auth=require_customer_auth,
    )
    tenant.tables = [RestaurantTable(table_number=n, is_active=True) for n in range(1, table_count + 1)]
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


def make_user(db: Session, email: str, role: AppRole | None = None, tenant_id: str | None = None,
              full_name: str | None = None, password: str = "testpass123") -> User:
    user = User(email=email, password_hash=get_password_hash(password), full_name=full_name, is_active=True)
    db.add(user)
    db.flush()
    if role is not None:
        db.add(RoleAssignment(user_id=user.id, role=role, tenant_id=tenant_id))
    db.commit()
    db.refresh(user)
    return user


def auth_headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}
