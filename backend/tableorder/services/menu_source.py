"""Menu feed adapter.

Each tenant publishes its menu as a Google Sheet. The sheet is exported as
CSV, parsed into ``MenuItem`` records and cached for a few minutes; only
available items are ever returned.

Expected header row::

    Item Id, Item, Category, Price, Veg, Image URL, Available[, qty, description]
"""

import csv
import io
import logging
import re
from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from tableorder.core.cache import SimpleCache
from tableorder.core.config import settings
from tableorder.core.errors import MenuSourceError
from tableorder.services.billing import round2

logger = logging.getLogger(__name__)

SHEET_ID_PATTERN = re.compile(r"/d/([a-zA-Z0-9_-]+)")
REQUIRED_COLUMNS = ("Item Id", "Item", "Category", "Price", "Veg", "Image URL", "Available")


@dataclass(frozen=True)
class MenuItem:
    item_id: str
    name: str
    category: str
    price: Decimal
    veg: bool
    image_url: str
    available: bool
    quantity_label: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["price"] = float(self.price)
        return data


def extract_sheet_id(sheet_url: str) -> str:
    match = SHEET_ID_PATTERN.search(sheet_url or "")
    if not match:
        raise MenuSourceError("Invalid Google Sheet URL format.")
    return match.group(1)


def csv_export_url(sheet_id: str, sheet_name: Optional[str] = None) -> str:
    sheet_name = sheet_name or settings.menu_sheet_name
    return f"https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq?tqx=out:csv&sheet={sheet_name}"


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def parse_menu_csv(text: str) -> list[MenuItem]:
    """Parse the exported sheet. Rows without an id, name or valid price are skipped."""
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    headers = [h.strip() for h in (reader.fieldnames or [])]
    missing = [col for col in REQUIRED_COLUMNS if col not in headers]
    if missing:
        raise MenuSourceError(f"Menu sheet is missing columns: {', '.join(missing)}")
    reader.fieldnames = headers

    items: list[MenuItem] = []
    for line_no, row in enumerate(reader, start=2):
        if not any(_clean(v) for v in row.values() if isinstance(v, str)):
            continue
        item_id, name = _clean(row.get("Item Id")), _clean(row.get("Item"))
        if not item_id or not name:
            logger.warning(f"Skipping menu row {line_no}: missing item id or name")
            continue
        try:
            price = Decimal(_clean(row.get("Price")) or "0")
        except InvalidOperation:
            logger.warning(f"Skipping menu row {line_no} ({item_id}): invalid price {row.get('Price')!r}")
            continue
        if not price.is_finite() or price < 0:
            logger.warning(f"Skipping menu row {line_no} ({item_id}): invalid price {row.get('Price')!r}")
            continue

        item = MenuItem(
            item_id=item_id,
            name=name,
            category=_clean(row.get("Category")) or "Other",
            price=round2(price),
            veg=_flag(row.get("Veg")),
            image_url=_clean(row.get("Image URL")),
            available=_flag(row.get("Available")),
            quantity_label=_clean(row.get("qty")) or None,
            description=_clean(row.get("description")) or None,
        )
        if item.available:
            items.append(item)
    return items


def group_by_category(items: list[MenuItem]) -> dict[str, list[MenuItem]]:
    """Group items by category, keeping sheet order."""
    grouped: dict[str, list[MenuItem]] = {}
    for item in items:
        grouped.setdefault(item.category, []).append(item)
    return grouped


class MenuSource:
    """Fetches and caches tenant menus."""

    CACHE_PREFIX = "menu:"

    def __init__(self, cache: Optional[SimpleCache] = None,
                 transport: Optional[httpx.BaseTransport] = None,
                 ttl_seconds: Optional[int] = None):
        self.cache = cache or SimpleCache()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.menu_cache_ttl_seconds
        self._transport = transport

    def _fetch_csv(self, url: str) -> str:
        try:
            with httpx.Client(timeout=settings.menu_fetch_timeout, transport=self._transport,
                              follow_redirects=True) as client:
                response = client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as e:
            logger.warning(f"Menu fetch failed for {url}: {e}")
            raise MenuSourceError("Menu unavailable. Please contact restaurant staff.") from e

    def get_menu(self, tenant_id: str, sheet_url: Optional[str], refresh: bool = False) -> list[MenuItem]:
        if not sheet_url:
            raise MenuSourceError("Menu unavailable. Please contact restaurant staff.")

        key = f"{self.CACHE_PREFIX}{tenant_id}"
        if not refresh:
            cached = self.cache.get(key)
            if cached is not None and cached[0] == sheet_url:
                return cached[1]

        items = parse_menu_csv(self._fetch_csv(csv_export_url(extract_sheet_id(sheet_url))))
        self.cache.set(key, (sheet_url, items), ttl_seconds=self.ttl_seconds)
        logger.info(f"Loaded {len(items)} menu items for tenant {tenant_id}")
        return items

    def find_item(self, tenant_id: str, sheet_url: Optional[str], item_id: str) -> Optional[MenuItem]:
        for item in self.get_menu(tenant_id, sheet_url):
            if item.item_id == item_id:
                return item
        return None

    def invalidate(self, tenant_id: str) -> None:
        self.cache.delete(f"{self.CACHE_PREFIX}{tenant_id}")


menu_source = MenuSource()


def get_menu_source() -> MenuSource:
    return menu_source
