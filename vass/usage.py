from __future__ import annotations

import datetime as dt
import math
from typing import Any, Iterable

from .orders import parse_ts
from .settings import settings
from .types import Order


def billable_minutes(duration_seconds: int) -> int:
    """Calls are billed per started minute."""

    if duration_seconds <= 0:
        return 0
    return int(math.ceil(duration_seconds / 60))


def call_rate(business: dict[str, Any]) -> float:
    rate = business.get("call_rate")
    if rate is None:
        return float(settings.default_call_rate)
    return float(rate)


def _period_start(now: dt.datetime, period: str) -> dt.datetime:
    day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "month":
        return day.replace(day=1)
    return day


def _window(orders: Iterable[Order], start: dt.datetime, rate: float) -> dict[str, Any]:
    calls = 0
    minutes = 0
    seconds = 0
    for o in orders:
        created = parse_ts(o.created_at)
        if created is None or created < start:
            continue
        calls += 1
        seconds += o.call_duration
        minutes += billable_minutes(o.call_duration)
    return {
        "calls": calls,
        "minutes": minutes,
        "charges": round(minutes * rate, 2),
        "avg_call_minutes": round(seconds / 60 / calls, 1) if calls else 0.0,
    }


def business_usage(business: dict[str, Any], orders: list[Order], *, now: dt.datetime | None = None) -> dict[str, Any]:
    now = now or dt.datetime.now(dt.timezone.utc)
    rate = call_rate(business)
    limit = int(business.get("monthly_minute_limit") or settings.monthly_minute_limit)

    today = _window(orders, _period_start(now, "day"), rate)
    month = _window(orders, _period_start(now, "month"), rate)

    month_start = _period_start(now, "month")
    month_orders = []
    for o in orders:
        created = parse_ts(o.created_at)
        if created is not None and created >= month_start:
            month_orders.append(o)
    order_calls = sum(1 for o in month_orders if o.order and o.order != "No order details")
    inquiry_calls = len(month_orders) - order_calls

    def pct(n: int) -> float:
        return round(100.0 * n / len(month_orders), 1) if month_orders else 0.0

    return {
        "call_rate": rate,
        "today": today,
        "month": month,
        "monthly_limit": limit,
        "limit_used_pct": round(100.0 * month["minutes"] / limit, 1) if limit else 0.0,
        "next_bill_estimate": month["charges"],
        "billing_cycle": "monthly",
        "breakdown": {
            "order_calls": {"calls": order_calls, "pct": pct(order_calls)},
            "inquiry_calls": {"calls": inquiry_calls, "pct": pct(inquiry_calls)},
        },
    }


def order_totals(business: dict[str, Any], orders: Iterable[Order], *, since: dt.datetime | None = None) -> dict[str, Any]:
    """Call count and billed revenue over a business's reconciled orders."""

    rate = call_rate(business)
    calls = 0
    revenue = 0.0
    for o in orders:
        if since is not None:
            created = parse_ts(o.created_at)
            if created is None or created < since:
                continue
        calls += 1
        revenue += billable_minutes(o.call_duration) * rate
    return {"total_calls": calls, "total_revenue": round(revenue, 2)}


def admin_overview(
    clients: list[dict[str, Any]],
    orders_by_client: dict[str, list[Order]],
    *,
    now: dt.datetime | None = None,
) -> dict[str, Any]:
    now = now or dt.datetime.now(dt.timezone.utc)
    midnight = _period_start(now, "day")
    today = {
        str(c["id"]): order_totals(c, orders_by_client.get(str(c["id"]), []), since=midnight) for c in clients
    }
    active = [c for c in clients if c.get("is_active")]
    recent = []
    for c in clients[:5]:
        t = today[str(c["id"])]
        recent.append(
            {
                "id": c["id"],
                "name": c.get("business_name") or "",
                "status": "Active" if c.get("is_active") else "Inactive",
                "calls": t["total_calls"],
                "revenue": t["total_revenue"],
            }
        )
    return {
        "total_clients": len(clients),
        "active_clients": len(active),
        "calls_today": sum(t["total_calls"] for t in today.values()),
        "revenue_today": round(sum(t["total_revenue"] for t in today.values()), 2),
        "recent_clients": recent,
    }
