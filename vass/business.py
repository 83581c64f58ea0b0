from __future__ import annotations

import datetime as dt
import logging
import re
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from .auth import public_profile, require_business
from .db import delete_record, set_record_status, update_print_settings
from .orders import (
    InvalidTransition,
    active_orders,
    check_transition,
    filter_history,
    history_csv,
    history_summary,
    new_count,
    parse_ts,
    receipt_data,
    sample_order,
    short_id,
)
from .reconcile import load_orders
from .types import Order, OrderStatus, PrintSettings
from .usage import business_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/business", tags=["business"])

# An unencoded "+" in the query string arrives as a space.
_SPACED_OFFSET = re.compile(r"(T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?) (\d{2}:?\d{2})$")


def _load(business: dict[str, Any]) -> list[Order]:
    try:
        return load_orders(business)
    except Exception:
        logger.exception("Failed fetching orders for %s", business.get("id"))
        raise HTTPException(status_code=500, detail="Failed to fetch orders")


def _find(business: dict[str, Any], order_id: str) -> Order:
    for o in _load(business):
        if o.id == order_id:
            return o
    raise HTTPException(status_code=404, detail="Order not found")


def _print_options(business: dict[str, Any]) -> PrintSettings:
    stored = business.get("print_settings") if isinstance(business.get("print_settings"), dict) else {}
    try:
        return PrintSettings(**{**stored, "auto_print": bool(business.get("auto_print", True))})
    except ValueError:
        logger.warning("Ignoring invalid stored print settings for %s", business.get("id"))
        return PrintSettings(auto_print=bool(business.get("auto_print", True)))


def _move(order: Order, target: OrderStatus, failure: str) -> Order:
    try:
        check_transition(order.status, target)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    try:
        set_record_status(order.source, order.id, target)
    except Exception:
        logger.exception("Failed setting order %s to %s", order.id, target.value)
        raise HTTPException(status_code=500, detail=failure)
    return order.model_copy(update={"status": target})


@router.get("/me")
def me(business: dict = Depends(require_business)) -> dict[str, Any]:
    return {"user": public_profile(business), "print_settings": _print_options(business).model_dump()}


@router.get("/overview")
def overview(business: dict = Depends(require_business)) -> dict[str, Any]:
    orders = _load(business)
    usage = business_usage(business, orders)
    midnight = dt.datetime.now(dt.timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return {
        "business_name": business.get("business_name") or "",
        "new_orders_today": new_count(active_orders(orders, since=midnight)),
        "total_calls_today": usage["today"]["calls"],
        "call_minutes_today": usage["today"]["minutes"],
        "auto_print": bool(business.get("auto_print")),
    }


@router.get("/orders")
def new_orders(
    since: str | None = Query(
        default=None,
        description="Only orders created after this ISO timestamp, e.g. 2026-05-20T10:00:00Z.",
    ),
    business: dict = Depends(require_business),
) -> dict[str, Any]:
    since_ts = None
    if since:
        since_ts = parse_ts(_SPACED_OFFSET.sub(r"\1+\2", since.strip()))
        if since_ts is None:
            raise HTTPException(status_code=400, detail="since must be an ISO timestamp")

    orders = active_orders(_load(business), since=since_ts)
    return {
        "business_name": business.get("business_name") or "",
        "new_count": new_count(orders),
        "orders": [o.model_dump() for o in orders],
        "server_time": dt.datetime.now(dt.timezone.utc).isoformat(),
    }


@router.post("/orders/{order_id}/print")
def print_order(order_id: str, business: dict = Depends(require_business)) -> dict[str, Any]:
    order = _find(business, order_id)
    order = _move(order, OrderStatus.printed, "Failed to mark order as printed")
    return {
        "order": order.model_dump(),
        "receipt": receipt_data(order, business=business, options=_print_options(business).model_dump()),
        "message": f"Order {short_id(order.id)} sent to printer",
    }


@router.post("/orders/{order_id}/complete")
def complete_order(order_id: str, business: dict = Depends(require_business)) -> dict[str, Any]:
    order = _find(business, order_id)
    order = _move(order, OrderStatus.completed, "Failed to mark order as completed")
    return {"order": order.model_dump(), "message": "Order has been marked as completed"}


@router.delete("/orders/{order_id}")
def delete_order(order_id: str, business: dict = Depends(require_business)) -> dict[str, Any]:
    order = _find(business, order_id)
    if order.status == OrderStatus.completed:
        raise HTTPException(status_code=409, detail="Completed orders cannot be deleted")
    try:
        delete_record(order.source, order.id)
    except Exception:
        logger.exception("Failed deleting order %s", order.id)
        raise HTTPException(status_code=500, detail="Failed to delete order")
    return {"success": True, "message": "Order has been deleted successfully"}


def _history(
    business: dict[str, Any],
    q: str | None,
    date_from: dt.date | None,
    date_to: dt.date | None,
) -> tuple[list[Order], list[Order]]:
    orders = _load(business)
    return orders, filter_history(orders, search=q, date_from=date_from, date_to=date_to)


@router.get("/history")
def order_history(
    q: str | None = None,
    date_from: dt.date | None = None,
    date_to: dt.date | None = None,
    business: dict = Depends(require_business),
) -> dict[str, Any]:
    all_orders, filtered = _history(business, q, date_from, date_to)
    return {
        "summary": history_summary(all_orders),
        "orders": [o.model_dump() for o in filtered],
        "count": len(filtered),
    }


@router.get("/history/export.csv")
def export_history(
    q: str | None = None,
    date_from: dt.date | None = None,
    date_to: dt.date | None = None,
    business: dict = Depends(require_business),
) -> Response:
    _, filtered = _history(business, q, date_from, date_to)
    return Response(
        content=history_csv(filtered),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=order-history.csv"},
    )


@router.get("/usage")
def call_usage(business: dict = Depends(require_business)) -> dict[str, Any]:
    return business_usage(business, _load(business))


@router.get("/settings/print")
def get_print_settings(business: dict = Depends(require_business)) -> dict[str, Any]:
    return _print_options(business).model_dump()


@router.put("/settings/print")
def save_print_settings(body: PrintSettings, business: dict = Depends(require_business)) -> dict[str, Any]:
    options = body.model_dump(exclude={"auto_print"})
    try:
        update_print_settings(str(business["id"]), body.auto_print, options)
    except Exception:
        logger.exception("Failed saving print settings for %s", business.get("id"))
        raise HTTPException(status_code=500, detail="Failed to save settings")
    return {"settings": body.model_dump(), "message": "Your print settings have been updated successfully"}


@router.post("/settings/print/test")
def test_print(business: dict = Depends(require_business)) -> dict[str, Any]:
    options = _print_options(business)
    return {
        "receipt": receipt_data(sample_order(business), business=business, options=options.model_dump()),
        "message": "A test order has been sent to your printer",
    }
