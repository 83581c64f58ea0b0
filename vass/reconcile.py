"""Finds a business's call/order rows across the two record schemas.

Rows written by the webhook live in ``vapi_call`` and carry
``business_user_id``; older rows only carry a denormalized ``business_name``
that may differ in case or spacing from the account's name. A few accounts
still have rows in the legacy ``orders`` table keyed by ``business_user_id``.

A business owns the union of:

* ``vapi_call`` rows with its ``business_user_id``;
* ``vapi_call`` rows with no ``business_user_id`` whose normalized name equals
  its normalized name;
* ``orders`` rows with its ``business_user_id``.

Only when all three are empty is a partial name match tried, and then only
against rows that no business owns by id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .db import CALLS_TABLE, LEGACY_ORDERS_TABLE, name_norm, select_all_rows
from .types import Order, OrderStatus

logger = logging.getLogger(__name__)

_ORDERING = "created_at.desc,id.desc"


@dataclass
class LookupResult:
    # (source table, row) pairs
    rows: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    strategies: list[str] = field(default_factory=list)


def escape_like(value: str) -> str:
    """Escapes a literal for a PostgREST like/ilike filter.

    ``*`` is PostgREST's wildcard and cannot be escaped, so it is dropped;
    ``%`` and ``_`` are SQL wildcards and get a backslash.
    """

    out = value.replace("*", "")
    for ch in ("\\", "%", "_"):
        out = out.replace(ch, "\\" + ch)
    return out


def _name_pattern(name: str) -> str:
    # Any spacing between words; exact equality is checked after the fetch.
    words = [escape_like(w) for w in name_norm(name).split()]
    return "*" + "*".join(w for w in words if w) + "*"


def _unowned(row: dict[str, Any]) -> bool:
    return not row.get("business_user_id")


def _by_owner(table: str, business_id: str) -> list[dict[str, Any]]:
    return select_all_rows(table, {"select": "*", "business_user_id": f"eq.{business_id}", "order": _ORDERING})


def _by_name(name: str) -> list[dict[str, Any]]:
    return select_all_rows(
        CALLS_TABLE,
        {"select": "*", "business_name": f"ilike.{_name_pattern(name)}", "order": _ORDERING},
    )


def find_order_rows(business: dict[str, Any]) -> LookupResult:
    business_id = str(business.get("id") or "")
    name = str(business.get("business_name") or "")
    wanted = name_norm(name)

    result = LookupResult()
    seen: set[tuple[str, str]] = set()

    def take(strategy: str, table: str, rows: list[dict[str, Any]]) -> None:
        added = 0
        for row in rows:
            key = (table, str(row.get("id")))
            if key in seen:
                continue
            seen.add(key)
            result.rows.append((table, row))
            added += 1
        if added:
            result.strategies.append(strategy)

    if business_id:
        take("business_user_id", CALLS_TABLE, _by_owner(CALLS_TABLE, business_id))
    if wanted:
        named = [r for r in _by_name(name) if _unowned(r) and name_norm(str(r.get("business_name") or "")) == wanted]
        take("business_name", CALLS_TABLE, named)
    if business_id:
        take("legacy_orders", LEGACY_ORDERS_TABLE, _by_owner(LEGACY_ORDERS_TABLE, business_id))

    if not result.rows and wanted:
        take("partial_name", CALLS_TABLE, [r for r in _by_name(name) if _unowned(r)])

    if result.rows:
        logger.info("Found %d rows for business %s via %s", len(result.rows), business_id, ",".join(result.strategies))
    else:
        logger.info("No order rows found for business %s", business_id)
    return result


def _first(row: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _status(value: Any) -> OrderStatus:
    try:
        return OrderStatus(str(value).lower())
    except ValueError:
        return OrderStatus.new


def normalize_order(row: dict[str, Any], source: str, business: dict[str, Any] | None = None) -> Order:
    business = business or {}
    payload = row.get("webhook_data") if isinstance(row.get("webhook_data"), dict) else {}

    return Order(
        id=str(row.get("id")),
        business_user_id=_first(row, "business_user_id") or business.get("id"),
        business_name=_first(row, "business_name") or business.get("business_name") or "Unknown",
        phone_number=str(_first(row, "phone_number", "caller_number") or "Unknown"),
        caller_name=str(_first(row, "caller_name") or _first(payload, "caller_name", "customer_name") or "Unknown"),
        order=str(_first(row, "order") or "No order details"),
        quantity=_as_int(_first(row, "quantity")),
        amount=_as_float(_first(row, "amount", "total")),
        raw_transcript=str(_first(row, "raw_transcript", "call_transcript") or ""),
        call_duration=_as_int(_first(row, "call_duration", "duration")),
        call_status=_first(row, "call_status"),
        status=_status(row.get("status")),
        created_at=row.get("created_at"),
        source=LEGACY_ORDERS_TABLE if source == LEGACY_ORDERS_TABLE else CALLS_TABLE,
    )


def load_orders(business: dict[str, Any]) -> list[Order]:
    result = find_order_rows(business)
    orders = [normalize_order(row, table, business) for table, row in result.rows]
    orders.sort(key=lambda o: o.created_at or "", reverse=True)
    return orders
