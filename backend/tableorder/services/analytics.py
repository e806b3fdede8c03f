"""Manager analytics and CSV export over a tenant's orders."""

import csv
import io
import logging
from collections import Counter, defaultdict
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from tableorder.core.errors import ValidationError
from tableorder.models.order import Order, OrderStatus, PaymentStatus
from tableorder.services.billing import round2

logger = logging.getLogger(__name__)

TIME_RANGES = {"today": 0, "7days": 7, "30days": 30}
LIVE_STATUSES = (OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.COOKING)
CSV_COLUMNS = [
    "Order ID", "Table", "Total", "Status", "Payment Status", "Cook", "Cooking Time (min)", "Created At",
]


def range_start(time_range: str, now: datetime) -> datetime:
    if time_range not in TIME_RANGES:
        raise ValidationError(f"Unknown time range '{time_range}', expected one of {', '.join(TIME_RANGES)}")
    days = TIME_RANGES[time_range]
    if days == 0:
        return datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    return now - timedelta(days=days)


def cooking_minutes(order: Order) -> Optional[float]:
    if order.accepted_at is None or order.completed_at is None:
        return None
    return (order.completed_at - order.accepted_at).total_seconds() / 60


def summarize_orders(orders: Iterable[Order], time_range: str = "today",
                     today: Optional[date] = None) -> dict[str, Any]:
    orders = list(orders)
    revenue = sum((o.total for o in orders if o.payment_status == PaymentStatus.PAID), Decimal("0"))
    unpaid = sum((o.total for o in orders if o.payment_status == PaymentStatus.UNPAID), Decimal("0"))

    item_counts: Counter = Counter()
    for order in orders:
        for item in order.items or []:
            item_counts[item.get("name", "Unknown")] += int(item.get("quantity", 0))

    by_hour = Counter(o.created_at.hour for o in orders if o.created_at)
    orders_by_day = []
    days = TIME_RANGES.get(time_range, 0)
    if days:
        daily_count: Counter = Counter()
        daily_revenue: dict[date, Decimal] = defaultdict(lambda: Decimal("0"))
        for o in orders:
            day = o.created_at.date()
            daily_count[day] += 1
            if o.payment_status == PaymentStatus.PAID:
                daily_revenue[day] += o.total
        last_day = today or datetime.now(timezone.utc).date()
        for offset in range(days - 1, -1, -1):
            day = last_day - timedelta(days=offset)
            orders_by_day.append({
                "date": day.isoformat(),
                "orders": daily_count.get(day, 0),
                "revenue": float(round2(daily_revenue.get(day, Decimal("0")))),
            })

    cook_times: dict[str, list[float]] = defaultdict(list)
    all_times = []
    for order in orders:
        if order.status != OrderStatus.COMPLETED:
            continue
        minutes = cooking_minutes(order)
        if minutes is None:
            continue
        all_times.append(minutes)
        if order.cook_name:
            cook_times[order.cook_name].append(minutes)

    return {
        "time_range": time_range,
        "total_orders": len(orders),
        "revenue": float(round2(revenue)),
        "unpaid_total": float(round2(unpaid)),
        "completed_orders": sum(1 for o in orders if o.status == OrderStatus.COMPLETED),
        "rejected_orders": sum(1 for o in orders if o.status == OrderStatus.REJECTED),
        "live_orders": sum(1 for o in orders if o.status in LIVE_STATUSES),
        "top_items": [{"name": name, "quantity": qty} for name, qty in item_counts.most_common(10)],
        "orders_by_hour": [{"hour": f"{h:02d}:00", "orders": by_hour.get(h, 0)} for h in range(24)],
        "orders_by_day": orders_by_day,
        "avg_cooking_time": round(sum(all_times) / len(all_times), 1) if all_times else None,
        "fastest_cooking_time": round(min(all_times), 1) if all_times else None,
        "cook_performance": sorted(
            (
                {"cook_name": cook, "avg_time": round(sum(times) / len(times), 1), "orders": len(times)}
                for cook, times in cook_times.items()
            ),
            key=lambda row: row["avg_time"],
        ),
    }


def orders_to_csv(orders: Iterable[Order]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for o in orders:
        minutes = cooking_minutes(o)
        writer.writerow([
            o.order_id,
            o.table_id,
            f"{o.total:.2f}",
            o.status.value,
            o.payment_status.value,
            o.cook_name or "N/A",
            f"{minutes:.1f}" if minutes is not None else "N/A",
            o.created_at.strftime("%Y-%m-%d %H:%M:%S") if o.created_at else "",
        ])
    return buffer.getvalue()


class AnalyticsService:
    def __init__(self, db: Session, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.db = db
        self.clock = clock

    def order_stats(self, tenant_id: str, time_range: str = "today") -> dict[str, Any]:
        now = self.clock()
        start = range_start(time_range, now)
        orders = self.db.execute(
            select(Order).where(Order.tenant_id == tenant_id, Order.created_at >= start)
        ).scalars().all()
        logger.debug(f"Analytics for tenant {tenant_id} ({time_range}): {len(orders)} orders")
        return summarize_orders(orders, time_range, today=now.date())

    def export_orders_csv(self, tenant_id: str) -> str:
        orders = self.db.execute(
            select(Order).where(Order.tenant_id == tenant_id).order_by(Order.created_at.desc())
        ).scalars().all()
        return orders_to_csv(orders)
