from __future__ import annotations

import logging
from typing import Any

from .db import get_active_business, insert_call_record
from .types import CallEvent

logger = logging.getLogger(__name__)


class BusinessNotFound(LookupError):
    pass


def _pick(*values: Any) -> Any:
    for v in values:
        if v not in (None, ""):
            return v
    return None


def _to_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def _to_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def extract_call_event(payload: dict[str, Any]) -> CallEvent:
    """Pulls call fields out of either a flat payload or a Vapi server-message envelope.

    Flat keys win over nested ones so integrations that post their own shape
    keep working unchanged.
    """

    message = payload.get("message")
    envelope = message if isinstance(message, dict) else {}
    call = envelope.get("call") or {}
    customer = call.get("customer") or envelope.get("customer") or {}
    artifact = envelope.get("artifact") or {}
    analysis = envelope.get("analysis") or {}
    structured = analysis.get("structuredData") or {}

    flat_message = message if isinstance(message, str) else None

    duration = _to_int(
        _pick(
            payload.get("call_duration"),
            payload.get("duration"),
            envelope.get("durationSeconds"),
            envelope.get("duration"),
        )
    )

    return CallEvent(
        caller_number=str(_pick(payload.get("caller_number"), payload.get("from"), customer.get("number")) or "Unknown"),
        caller_name=_pick(payload.get("caller_name"), customer.get("name"), structured.get("customer_name")),
        call_duration=max(duration or 0, 0),
        call_status=str(_pick(payload.get("call_status"), payload.get("status"), envelope.get("status")) or "completed"),
        transcript=str(
            _pick(
                payload.get("transcript"),
                flat_message,
                envelope.get("transcript"),
                artifact.get("transcript"),
            )
            or ""
        ),
        order=_pick(payload.get("order"), structured.get("order")),
        quantity=_to_int(_pick(payload.get("quantity"), structured.get("quantity"))),
        amount=_to_float(_pick(payload.get("amount"), payload.get("total"), structured.get("amount"), structured.get("total"))),
        raw=payload,
    )


def ingest_call_event(business_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Stores one call record for an active business and returns the inserted row.

    The insert is awaited before the caller responds, so a 200 means the
    order is persisted.
    """

    business = get_active_business(business_id)
    if not business:
        raise BusinessNotFound(business_id)

    event = extract_call_event(payload)
    row = insert_call_record(business, event)
    logger.info("Order %s created for business %s", row.get("id"), business_id)
    return row
