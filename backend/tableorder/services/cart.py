"""Per-table shopping cart.

Carts are keyed by (tenant, table) and hold menu items with a quantity of at
least one; decrementing an item to zero removes it. Storage is in-process by
default and Redis when ``REDIS_URL`` is set, so a cart survives restarts and
is shared between workers.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Optional

from tableorder.core.config import settings
from tableorder.core.errors import NotFoundError
from tableorder.services.billing import BillSummary, calculate_bill, line_total
from tableorder.services.menu_source import MenuItem
from tableorder.services.order_lifecycle import OrderLine

logger = logging.getLogger(__name__)


@dataclass
class CartItem:
    item_id: str
    name: str
    category: str
    price: Decimal
    veg: bool
    image_url: str
    quantity: int

    @classmethod
    def from_menu_item(cls, item: MenuItem, quantity: int = 1) -> "CartItem":
        return cls(
            item_id=item.item_id,
            name=item.name,
            category=item.category,
            price=item.price,
            veg=item.veg,
            image_url=item.image_url,
            quantity=quantity,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        return cls(**{**data, "price": Decimal(str(data["price"]))})

    def to_dict(self) -> dict:
        return {**asdict(self), "price": str(self.price)}

    @property
    def line_total(self) -> Decimal:
        return line_total(self.price, self.quantity)

    def to_order_line(self) -> OrderLine:
        return OrderLine(
            item_id=self.item_id,
            name=self.name,
            price=self.price,
            quantity=self.quantity,
            category=self.category,
            veg=self.veg,
        )


class CartStorage(ABC):
    @abstractmethod
    def load(self, key: str) -> list[dict]:
        ...

    @abstractmethod
    def save(self, key: str, items: list[dict]) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class InMemoryCartStorage(CartStorage):
    def __init__(self):
        self._carts: dict[str, list[dict]] = {}

    def load(self, key):
        return [dict(item) for item in self._carts.get(key, [])]

    def save(self, key, items):
        self._carts[key] = [dict(item) for item in items]

    def delete(self, key):
        self._carts.pop(key, None)


class RedisCartStorage(CartStorage):
    def __init__(self, client, ttl_seconds: int = 86400):
        self.client = client
        self.ttl_seconds = ttl_seconds

    def load(self, key):
        raw = self.client.get(key)
        return json.loads(raw) if raw else []

    def save(self, key, items):
        self.client.setex(key, self.ttl_seconds, json.dumps(items))

    def delete(self, key):
        self.client.delete(key)


class CartStore:
    def __init__(self, storage: Optional[CartStorage] = None):
        self.storage = storage or InMemoryCartStorage()
        self._lock = threading.Lock()

    @staticmethod
    def _key(tenant_id: str, table_number: int) -> str:
        return f"cart:{tenant_id}:{table_number}"

    def _load(self, key: str) -> list[CartItem]:
        return [CartItem.from_dict(data) for data in self.storage.load(key)]

    def _save(self, key: str, items: list[CartItem]) -> None:
        if items:
            self.storage.save(key, [item.to_dict() for item in items])
        else:
            self.storage.delete(key)

    def items(self, tenant_id: str, table_number: int) -> list[CartItem]:
        return self._load(self._key(tenant_id, table_number))

    def add_item(self, tenant_id: str, table_number: int, menu_item: MenuItem) -> list[CartItem]:
        """Add one of ``menu_item``, incrementing if it is already in the cart."""
        key = self._key(tenant_id, table_number)
        with self._lock:
            items = self._load(key)
            for item in items:
                if item.item_id == menu_item.item_id:
                    item.quantity += 1
                    break
            else:
                items.append(CartItem.from_menu_item(menu_item))
            self._save(key, items)
        return items

    def update_quantity(self, tenant_id: str, table_number: int, item_id: str, delta: int) -> list[CartItem]:
        """Change an item's quantity by ``delta``; it is removed when it reaches zero."""
        key = self._key(tenant_id, table_number)
        with self._lock:
            items = self._load(key)
            for item in items:
                if item.item_id == item_id:
                    item.quantity += delta
                    break
            else:
                raise NotFoundError(f"Item {item_id} is not in the cart")
            items = [item for item in items if item.quantity > 0]
            self._save(key, items)
        return items

    def remove_item(self, tenant_id: str, table_number: int, item_id: str) -> list[CartItem]:
        key = self._key(tenant_id, table_number)
        with self._lock:
            items = self._load(key)
            remaining = [item for item in items if item.item_id != item_id]
            if len(remaining) == len(items):
                raise NotFoundError(f"Item {item_id} is not in the cart")
            self._save(key, remaining)
        return remaining

    def clear(self, tenant_id: str, table_number: int) -> None:
        with self._lock:
            self.storage.delete(self._key(tenant_id, table_number))

    def summary(self, tenant_id: str, table_number: int, service_charge) -> tuple[list[CartItem], BillSummary]:
        items = self.items(tenant_id, table_number)
        return items, calculate_bill(items, service_charge)


def _build_cart_store() -> CartStore:
    if settings.redis_url:
        import redis
        client = redis.from_url(settings.redis_url, socket_connect_timeout=2)
        logger.info("Cart storage: Redis")
        return CartStore(RedisCartStorage(client, settings.cart_ttl_seconds))
    logger.info("Cart storage: in-memory")
    return CartStore()


cart_store = _build_cart_store()


def get_cart_store() -> CartStore:
    return cart_store
