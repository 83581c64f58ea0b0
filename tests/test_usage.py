from __future__ import annotations

import datetime as dt

from vass.types import Order
from vass.usage import admin_overview, billable_minutes, business_usage, order_totals

NOW = dt.datetime(2026, 5, 20, 15, 0, tzinfo=dt.timezone.utc)


def _order(oid, created, seconds, order="No order details"):
    return Order(id=oid, created_at=created.isoformat(), call_duration=seconds, order=order)


def test_billable_minutes_round_up():
    assert billable_minutes(0) == 0
    assert billable_minutes(1) == 1
    assert billable_minutes(60) == 1
    assert billable_minutes(61) == 2
    assert billable_minutes(-5) == 0


def test_business_usage_windows():
    orders = [
        _order("a", NOW - dt.timedelta(hours=1), 90, order="Pizza"),
        _order("b", NOW - dt.timedelta(hours=2), 30),
        _order("c", NOW - dt.timedelta(days=3), 600, order="Burger"),
        _order("d", dt.datetime(2026, 4, 30, 23, 0, tzinfo=dt.timezone.utc), 300),
    ]
    usage = business_usage({"call_rate": 2.5, "monthly_minute_limit": 100}, orders, now=NOW)

    assert usage["call_rate"] == 2.5
    assert usage["today"] == {"calls": 2, "minutes": 3, "charges": 7.5, "avg_call_minutes": 1.0}
    assert usage["month"]["calls"] == 3
    assert usage["month"]["minutes"] == 13
    assert usage["month"]["charges"] == 32.5
    assert usage["next_bill_estimate"] == 32.5
    assert usage["monthly_limit"] == 100
    assert usage["limit_used_pct"] == 13.0
    assert usage["breakdown"]["order_calls"] == {"calls": 2, "pct": 66.7}
    assert usage["breakdown"]["inquiry_calls"] == {"calls": 1, "pct": 33.3}


def test_business_usage_defaults_without_calls():
    usage = business_usage({}, [], now=NOW)
    assert usage["call_rate"] == 2.0
    assert usage["monthly_limit"] == 5000
    assert usage["month"] == {"calls": 0, "minutes": 0, "charges": 0.0, "avg_call_minutes": 0.0}
    assert usage["breakdown"]["order_calls"]["pct"] == 0.0


def test_order_totals():
    orders = [
        _order("a", NOW - dt.timedelta(hours=1), 120),
        _order("b", NOW - dt.timedelta(days=2), 10),
        _order("c", NOW - dt.timedelta(days=2), 0),
    ]
    assert order_totals({"call_rate": 2.0}, orders) == {"total_calls": 3, "total_revenue": 6.0}
    assert order_totals({"call_rate": None}, orders, since=NOW - dt.timedelta(days=1)) == {
        "total_calls": 1,
        "total_revenue": 4.0,
    }


def test_admin_overview_counts_today_per_client():
    clients = [
        {"id": "1", "business_name": "Pizza Palace", "call_rate": 3.0, "is_active": True},
        {"id": "2", "business_name": "Taco Town", "call_rate": 2.0, "is_active": False},
    ]
    orders = {
        "1": [_order("a", NOW - dt.timedelta(hours=1), 61), _order("b", NOW - dt.timedelta(days=1), 60)],
        "2": [_order("c", NOW - dt.timedelta(hours=3), 30)],
    }
    body = admin_overview(clients, orders, now=NOW)
    assert body["total_clients"] == 2
    assert body["active_clients"] == 1
    assert body["calls_today"] == 2
    assert body["revenue_today"] == 8.0
    assert body["recent_clients"][1] == {"id": "2", "name": "Taco Town", "status": "Inactive", "calls": 1, "revenue": 2.0}


def test_usage_endpoint(client, fake, business, business_headers):
    fake.add("vapi_call", business_user_id=business["id"], call_duration=61, order="Pizza")
    body = client.get("/business/usage", headers=business_headers).json()
    assert body["call_rate"] == 3.0
    assert body["today"]["calls"] == 1
    assert body["today"]["minutes"] == 2
    assert body["today"]["charges"] == 6.0
