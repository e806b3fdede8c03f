"""Menu feed parsing, fetching and caching."""

from decimal import Decimal

import httpx
import pytest

from fakes import MENU_CSV, SHEET_URL, menu_transport
from tableorder.core.cache import SimpleCache
from tableorder.core.errors import MenuSourceError
from tableorder.services.menu_source import (
    MenuSource,
    csv_export_url,
    extract_sheet_id,
    group_by_category,
    parse_menu_csv,
)

HEADER = "Item Id,Item,Category,Price,Veg,Image URL,Available\n"


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestParse:
    def test_only_available_items(self):
        items = parse_menu_csv(MENU_CSV)
        assert [i.item_id for i in items] == ["P1", "D1", "L1"]

    def test_fields(self):
        paneer = parse_menu_csv(MENU_CSV)[0]
        assert paneer.name == "Paneer Tikka"
        assert paneer.category == "Starters"
        assert paneer.price == Decimal("100.00")
        assert paneer.veg is True
        assert paneer.image_url == "https://img.example/p1.jpg"
        assert paneer.quantity_label == "6 pcs"
        assert paneer.description == "Smoky cottage cheese"

    def test_optional_columns_blank(self):
        dal = parse_menu_csv(MENU_CSV)[1]
        assert dal.quantity_label is None
        assert dal.description is None
        assert dal.image_url == ""

    def test_decimal_price(self):
        lassi = parse_menu_csv(MENU_CSV)[2]
        assert lassi.price == Decimal("45.50")
        assert lassi.to_dict()["price"] == 45.5

    def test_price_rounds_half_up(self):
        items = parse_menu_csv(HEADER + "T1,Masala Chai,Drinks,12.125,TRUE,,TRUE\n")
        assert items[0].price == Decimal("12.13")

    def test_missing_columns(self):
        with pytest.raises(MenuSourceError, match="Price"):
            parse_menu_csv("Item Id,Item,Category,Veg,Image URL,Available\nP1,Tea,Drinks,TRUE,,TRUE\n")

    def test_bad_rows_skipped(self):
        text = HEADER + (
            "X1,Broken,Mains,abc,TRUE,,TRUE\n"
            "X2,Negative,Mains,-5,TRUE,,TRUE\n"
            ",No Id,Mains,10,TRUE,,TRUE\n"
            ",,,,,,\n"
            "T1,Tea,Drinks,20,TRUE,,TRUE\n"
        )
        assert [i.item_id for i in parse_menu_csv(text)] == ["T1"]

    def test_byte_order_mark_and_padded_headers(self):
        text = "\ufeffItem Id , Item,Category,Price,Veg,Image URL,Available\nT1,Tea,,20,false,,TRUE\n"
        (tea,) = parse_menu_csv(text)
        assert tea.category == "Other"
        assert tea.veg is False

    def test_group_by_category_keeps_order(self):
        grouped = group_by_category(parse_menu_csv(MENU_CSV))
        assert list(grouped) == ["Starters", "Mains", "Drinks"]


class TestSheetUrl:
    def test_extract_sheet_id(self):
        assert extract_sheet_id(SHEET_URL) == "sheet-abc123"

    @pytest.mark.parametrize("url", ["", None, "https://example.com/menu.csv"])
    def test_invalid_url(self, url):
        with pytest.raises(MenuSourceError):
            extract_sheet_id(url)

    def test_export_url(self):
        url = csv_export_url("sheet-abc123", "Sheet1")
        assert url == "https://docs.google.com/spreadsheets/d/sheet-abc123/gviz/tq?tqx=out:csv&sheet=Sheet1"


class TestMenuSource:
    def test_fetches_export(self):
        calls = []
        source = MenuSource(transport=menu_transport(calls=calls))
        items = source.get_menu("t-1", SHEET_URL)
        assert len(items) == 3
        assert len(calls) == 1
        assert "/d/sheet-abc123/gviz/tq" in calls[0]

    def test_cached_until_refresh(self):
        calls = []
        source = MenuSource(transport=menu_transport(calls=calls))
        source.get_menu("t-1", SHEET_URL)
        source.get_menu("t-1", SHEET_URL)
        assert len(calls) == 1
        source.get_menu("t-1", SHEET_URL, refresh=True)
        assert len(calls) == 2

    def test_cache_expires(self):
        calls = []
        clock = FakeClock()
        source = MenuSource(cache=SimpleCache(clock=clock), transport=menu_transport(calls=calls), ttl_seconds=300)
        source.get_menu("t-1", SHEET_URL)
        clock.now += 301
        source.get_menu("t-1", SHEET_URL)
        assert len(calls) == 2

    def test_changed_sheet_url_refetches(self):
        calls = []
        source = MenuSource(transport=menu_transport(calls=calls))
        source.get_menu("t-1", SHEET_URL)
        source.get_menu("t-1", "https://docs.google.com/spreadsheets/d/other-sheet/edit")
        assert len(calls) == 2

    def test_tenants_cached_separately(self):
        calls = []
        source = MenuSource(transport=menu_transport(calls=calls))
        source.get_menu("t-1", SHEET_URL)
        source.get_menu("t-2", SHEET_URL)
        assert len(calls) == 2

    def test_invalidate(self):
        calls = []
        source = MenuSource(transport=menu_transport(calls=calls))
        source.get_menu("t-1", SHEET_URL)
        source.invalidate("t-1")
        source.get_menu("t-1", SHEET_URL)
        assert len(calls) == 2

    def test_find_item(self):
        source = MenuSource(transport=menu_transport())
        assert source.find_item("t-1", SHEET_URL, "D1").name == "Dal Makhani"
        assert source.find_item("t-1", SHEET_URL, "C1") is None

    def test_no_sheet_configured(self):
        with pytest.raises(MenuSourceError):
            MenuSource(transport=menu_transport()).get_menu("t-1", None)

    def test_http_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404, text="not found"))
        with pytest.raises(MenuSourceError, match="Menu unavailable"):
            MenuSource(transport=transport).get_menu("t-1", SHEET_URL)

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(MenuSourceError):
            MenuSource(transport=httpx.MockTransport(handler)).get_menu("t-1", SHEET_URL)

    def test_failed_fetch_is_not_cached(self):
        source = MenuSource(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        with pytest.raises(MenuSourceError):
            source.get_menu("t-1", SHEET_URL)
        source._transport = menu_transport()
        assert len(source.get_menu("t-1", SHEET_URL)) == 3


class TestSimpleCache:
    def test_ttl(self):
        clock = FakeClock()
        cache = SimpleCache(clock=clock)
        cache.set("k", "v", ttl_seconds=10)
        assert cache.get("k") == "v"
        clock.now += 10
        assert cache.get("k") is None

    def test_clear_prefix(self):
        cache = SimpleCache()
        cache.set("menu:a", 1)
        cache.set("menu:b", 2)
        cache.set("other", 3)
        cache.clear_prefix("menu:")
        assert cache.get("menu:a") is None
        assert cache.get("other") == 3
