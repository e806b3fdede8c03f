"""Analytics summaries and CSV export."""

import csv
import io
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from fakes import API
from tableorder.core.errors import ValidationError
from tableorder.models.order import OrderStatus, PaymentStatus
from tableorder.services.analytics import CSV_COLUMNS, orders_to_csv, range_start, summarize_orders

NOW = datetime(2026, 10, 19, 14, 30, tzinfo=timezone.utc)


def order(total="100", paid=True, status=OrderStatus.COMPLETED, created=NOW, cook="Ravi",
          cooking_minutes=12, items=None, order_id="ORD-0001"):
    accepted = created + timedelta(minutes=2)
    completed = accepted + timedelta(minutes=cooking_minutes) if status == OrderStatus.COMPLETED else None
    return SimpleNamespace(
        order_id=order_id,
        table_id="3",
        total=Decimal(total),
        payment_status=PaymentStatus.PAID if paid else PaymentStatus.UNPAID,
        status=status,
        items=items if items is not None else [{"name": "Dal Makhani", "quantity": 1}],
        created_at=created,
        accepted_at=accepted if status != OrderStatus.PENDING else None,
        completed_at=completed,
        cook_name=cook,
    )


class TestRangeStart:
    def test_today_starts_at_midnight(self):
        assert range_start("today", NOW) == datetime(2026, 10, 19, tzinfo=timezone.utc)

    def test_rolling_windows(self):
        assert range_start("7days", NOW) == NOW - timedelta(days=7)
        assert range_start("30days", NOW) == NOW - timedelta(days=30)

    def test_unknown_range(self):
        with pytest.raises(ValidationError):
            range_start("forever", NOW)


class TestSummarize:
    def test_revenue_counts_paid_only(self):
        stats = summarize_orders([
            order("262.50"),
            order("100", paid=False, status=OrderStatus.PENDING),
            order("50", status=OrderStatus.REJECTED),
        ])
        assert stats["total_orders"] == 3
        assert stats["revenue"] == 312.5
        assert stats["unpaid_total"] == 100.0
        assert stats["completed_orders"] == 1
        assert stats["rejected_orders"] == 1
        assert stats["live_orders"] == 1

    def test_top_items(self):
        stats = summarize_orders([
            order(items=[{"name": "Lassi", "quantity": 3}, {"name": "Dal Makhani", "quantity": 1}]),
            order(items=[{"name": "Dal Makhani", "quantity": 1}]),
        ])
        assert stats["top_items"][0] == {"name": "Lassi", "quantity": 3}
        assert stats["top_items"][1] == {"name": "Dal Makhani", "quantity": 2}

    def test_cooking_times_and_cooks(self):
        stats = summarize_orders([
            order(cook="Ravi", cooking_minutes=10),
            order(cook="Ravi", cooking_minutes=20),
            order(cook="Meera", cooking_minutes=8),
            order(cook="Meera", status=OrderStatus.COOKING),
        ])
        assert stats["avg_cooking_time"] == round((10 + 20 + 8) / 3, 1)
        assert stats["fastest_cooking_time"] == 8.0
        assert stats["cook_performance"] == [
            {"cook_name": "Meera", "avg_time": 8.0, "orders": 1},
            {"cook_name": "Ravi", "avg_time": 15.0, "orders": 2},
        ]

    def test_no_completed_orders(self):
        stats = summarize_orders([order(status=OrderStatus.PENDING)])
        assert stats["avg_cooking_time"] is None
        assert stats["cook_performance"] == []

    def test_orders_by_hour(self):
        stats = summarize_orders([order(), order()])
        assert len(stats["orders_by_hour"]) == 24
        assert stats["orders_by_hour"][14] == {"hour": "14:00", "orders": 2}

    def test_orders_by_day_fills_gaps(self):
        stats = summarize_orders(
            [order("100", created=NOW), order("40", created=NOW - timedelta(days=2))],
            "7days",
            today=date(2026, 10, 19),
        )
        days = stats["orders_by_day"]
        assert len(days) == 7
        assert days[-1] == {"date": "2026-10-19", "orders": 1, "revenue": 100.0}
        assert days[-3] == {"date": "2026-10-17", "orders": 1, "revenue": 40.0}
        assert days[0] == {"date": "2026-10-13", "orders": 0, "revenue": 0.0}

    def test_today_has_no_daily_series(self):
        assert summarize_orders([order()], "today")["orders_by_day"] == []


class TestCsv:
    def test_columns_and_rows(self):
        text = orders_to_csv([order("262.5", cooking_minutes=15), order(status=OrderStatus.PENDING, cook=None,
                                                                        order_id="ORD-0002")])
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0] == CSV_COLUMNS
        assert rows[1] == ["ORD-0001", "3", "262.50", "completed", "paid", "Ravi", "15.0", "2026-10-19 14:30:00"]
        assert rows[2][5:7] == ["N/A", "N/A"]


class TestAnalyticsApi:
    def place(self, client, tenant, mode="cash"):
        client.post(f"{API}/tenants/{tenant.id}/tables/1/cart/items", json={"item_id": "P1"})
        return client.post(f"{API}/tenants/{tenant.id}/tables/1/orders", json={"payment_mode": mode}).json()

    def test_stats(self, client, tenant, manager_headers, chef_headers):
        done = self.place(client, tenant)["order_id"]
        self.place(client, tenant, "upi")
        for action in ("accept", "advance", "advance"):
            client.post(f"{API}/tenants/{tenant.id}/staff/orders/{done}/{action}", headers=chef_headers)

        response = client.get(f"{API}/tenants/{tenant.id}/analytics?range=today", headers=manager_headers)
        assert response.status_code == 200
        stats = response.json()
        assert stats["total_orders"] == 2
        assert stats["revenue"] == 105.0
        assert stats["unpaid_total"] == 105.0
        assert stats["completed_orders"] == 1
        assert stats["cook_performance"][0]["cook_name"] == "Ravi Kumar"
        assert stats["top_items"] == [{"name": "Paneer Tikka", "quantity": 2}]

    def test_invalid_range(self, client, tenant, manager_headers):
        response = client.get(f"{API}/tenants/{tenant.id}/analytics?range=year", headers=manager_headers)
        assert response.status_code == 400

    def test_chef_denied(self, client, tenant, chef_headers):
        response = client.get(f"{API}/tenants/{tenant.id}/analytics", headers=chef_headers)
        assert response.status_code == 403

    def test_export_csv(self, client, tenant, tenant_admin_headers):
        order_id = self.place(client, tenant)["order_id"]
        response = client.get(f"{API}/tenants/{tenant.id}/analytics/export.csv", headers=tenant_admin_headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0] == CSV_COLUMNS
        assert rows[1][0] == order_id
        assert rows[1][2] == "105.00"
