from __future__ import annotations

import csv
import datetime as dt
import io
from typing import Any, Iterable

from .types import Order, OrderStatus

ACTIVE_STATUSES = (OrderStatus.new, OrderStatus.printed)

# Allowed status moves. Deletion is handled separately and allowed from any active status.
TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.new: {OrderStatus.printed},
    OrderStatus.printed: {OrderStatus.printed, OrderStatus.completed},
    OrderStatus.completed: set(),
}

CSV_HEADER = ["Order ID", "Customer Name", "Items", "Total", "Date", "Status"]


class InvalidTransition(ValueError):
    def __init__(self, current: OrderStatus, target: OrderStatus) -> None:
        super().__init__(f"Cannot move order from {current.value} to {target.value}")
        self.current = current
        self.target = target


def check_transition(current: OrderStatus, target: OrderStatus) -> None:
    if target not in TRANSITIONS.get(current, set()):
        raise InvalidTransition(current, target)


def parse_ts(value: str | None) -> dt.datetime | None:
    if not value:
        return None
    try:
        parsed = dt.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def active_orders(orders: Iterable[Order], *, since: dt.datetime | None = None) -> list[Order]:
    """Orders shown on the New Orders screen (new + printed)."""

    out = []
    for o in orders:
        if o.status not in ACTIVE_STATUSES:
            continue
        if since is not None:
            created = parse_ts(o.created_at)
            if created is None or created <= since:
                continue
        out.append(o)
    return out


def new_count(orders: Iterable[Order]) -> int:
    return sum(1 for o in orders if o.status == OrderStatus.new)


def short_id(order_id: str) -> str:
    return (order_id or "")[:8].upper()


def filter_history(
    orders: Iterable[Order],
    *,
    search: str | None = None,
    date_from: dt.date | None = None,
    date_to: dt.date | None = None,
) -> list[Order]:
    """Completed orders matching a customer-name / order-id search and date range."""

    term = (search or "").strip().lower()
    out: list[Order] = []
    for o in orders:
        if o.status != OrderStatus.completed:
            continue
        if term and term not in o.caller_name.lower() and term not in o.id.lower():
            continue
        created = parse_ts(o.created_at)
        if date_from and (created is None or created.date() < date_from):
            continue
        if date_to and (created is None or created.date() > date_to):
            continue
        out.append(o)
    return out


def history_summary(all_orders: Iterable[Order]) -> dict[str, Any]:
    orders = list(all_orders)
    completed = [o for o in orders if o.status == OrderStatus.completed]
    revenue = sum(float(o.amount or 0.0) for o in completed)
    return {
        "total_orders": len(orders),
        "completed_orders": len(completed),
        "total_revenue": round(revenue, 2),
    }


def history_csv(orders: Iterable[Order]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for o in orders:
        created = parse_ts(o.created_at)
        writer.writerow(
            [
                o.id,
                o.caller_name,
                o.quantity,
                f"{float(o.amount or 0.0):.2f}",
                created.date().isoformat() if created else "",
                o.status.value,
            ]
        )
    return buffer.getvalue()


def receipt_data(order: Order, *, business: dict[str, Any] | None = None, options: dict[str, Any] | None = None) -> dict[str, Any]:
    """Fields a client needs to print an 80mm order receipt."""

    options = options or {}
    business = business or {}
    created = parse_ts(order.created_at)

    receipt: dict[str, Any] = {
        "title": "Order Receipt",
        "order_number": short_id(order.id),
        "business_name": order.business_name,
        "items": [{"item": order.order, "quantity": order.quantity}],
        "total_amount": round(float(order.amount or 0.0), 2),
        "amount_pending": order.amount is None,
        "paper_size": options.get("paper_size", "80mm"),
        "copies": int(options.get("print_copies") or 1),
        "footer": "Thank you for your order!",
    }
    if options.get("include_timestamp", True):
        receipt["date"] = created.date().isoformat() if created else None
        receipt["time"] = created.strftime("%H:%M:%S") if created else None
    if options.get("include_customer_info", True):
        receipt["customer"] = order.caller_name
        receipt["phone"] = order.phone_number
    if options.get("include_business_logo") and business.get("image_url"):
        receipt["logo_url"] = business["image_url"]
    return receipt


def sample_order(business: dict[str, Any]) -> Order:
    return Order(
        id="testprint-0000",
        business_user_id=business.get("id"),
        business_name=business.get("business_name") or "Unknown",
        phone_number="+910000000000",
        caller_name="Test Customer",
        order="Test item",
        quantity=1,
        created_at=dt.datetime.now(dt.timezone.utc).isoformat(),
    )
