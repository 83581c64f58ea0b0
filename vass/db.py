from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from .settings import settings
from .types import CallEvent, OrderStatus, UserType

logger = logging.getLogger(__name__)

_http: httpx.Client | None = None

USERS_TABLE = "app_users"
CALLS_TABLE = "vapi_call"
LEGACY_ORDERS_TABLE = "orders"

# PostgREST caps responses (max-rows); larger reads are paged.
PAGE_SIZE = 1000


class SupabaseError(RuntimeError):
    """A PostgREST or Storage response with status >= 400."""

    def __init__(self, message: str, *, status_code: int, body: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def code(self) -> str:
        try:
            data = json.loads(self.body or "{}")
        except ValueError:
            return ""
        if isinstance(data, dict):
            return str(data.get("code") or "")
        return ""


def _is_missing_table_error(e: Exception) -> bool:
    if not isinstance(e, SupabaseError):
        return False
    return e.status_code == 404 or e.code in {"PGRST205", "42P01"}


def _is_missing_column_error(e: Exception) -> bool:
    return isinstance(e, SupabaseError) and (e.code in {"42703", "PGRST204"} or "does not exist" in e.body)


def _is_unique_violation(e: Exception) -> bool:
    return isinstance(e, SupabaseError) and (e.status_code == 409 or e.code == "23505")


def _is_invalid_value_error(e: Exception) -> bool:
    # e.g. a non-uuid string compared against a uuid column
    return isinstance(e, SupabaseError) and e.code == "22P02"


def _get_http() -> httpx.Client:
    global _http
    if _http is None:
        _http = httpx.Client(timeout=20)
    return _http


def _headers(prefer: str | None = None) -> dict[str, str]:
    h = {
        "apikey": settings.supabase_service_role_key or "",
        "Authorization": f"Bearer {settings.supabase_service_role_key or ''}",
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    if prefer:
        h["Prefer"] = prefer
    return h


def _base_url() -> str:
    return (settings.supabase_url or "").rstrip("/")


def _rest_url(table: str) -> str:
    # Supabase PostgREST endpoint
    return f"{_base_url()}/rest/v1/{table}"


def _raise_for(r: httpx.Response, verb: str, table: str) -> None:
    if r.status_code >= 400:
        raise SupabaseError(
            f"Supabase {verb} {table} failed ({r.status_code}): {r.text}",
            status_code=r.status_code,
            body=r.text,
        )


def _rest_get(table: str, params: dict[str, str]) -> list[dict[str, Any]]:
    r = _get_http().get(_rest_url(table), params=params, headers=_headers())
    _raise_for(r, "GET", table)
    return r.json() or []


def _rest_insert(
    table: str,
    body: dict[str, Any] | list[dict[str, Any]],
    *,
    params: dict[str, str] | None = None,
    prefer: str = "return=representation",
) -> list[dict[str, Any]]:
    r = _get_http().post(_rest_url(table), params=params, json=body, headers=_headers(prefer))
    _raise_for(r, "INSERT", table)
    return r.json() or []


def _rest_patch(table: str, params: dict[str, str], body: dict[str, Any]) -> list[dict[str, Any]]:
    r = _get_http().patch(
        _rest_url(table),
        params=params,
        json=body,
        headers=_headers("return=representation"),
    )
    _raise_for(r, "PATCH", table)
    return r.json() or []


def _rest_delete(table: str, params: dict[str, str]) -> list[dict[str, Any]]:
    r = _get_http().delete(_rest_url(table), params=params, headers=_headers("return=representation"))
    _raise_for(r, "DELETE", table)
    return r.json() or []


def name_norm(name: str) -> str:
    return " ".join((name or "").strip().lower().split())


# ---------------------------------------------------------------------------
# app_users
# ---------------------------------------------------------------------------


def get_user(username: str, user_type: UserType | str | None = None) -> dict[str, Any] | None:
    params = {
        "select": "*",
        "username": f"eq.{username}",
        "limit": "1",
    }
    if user_type is not None:
        params["user_type"] = f"eq.{UserType(user_type).value}"
    rows = _rest_get(USERS_TABLE, params)
    return rows[0] if rows else None


def get_user_by_id(user_id: str) -> dict[str, Any] | None:
    try:
        rows = _rest_get(USERS_TABLE, {"select": "*", "id": f"eq.{user_id}", "limit": "1"})
    except Exception as e:
        if _is_invalid_value_error(e):
            return None
        raise
    return rows[0] if rows else None


def get_active_business(business_id: str) -> dict[str, Any] | None:
    try:
        rows = _rest_get(
            USERS_TABLE,
            {
                "select": "id,business_name,is_active",
                "id": f"eq.{business_id}",
                "user_type": f"eq.{UserType.business.value}",
                "is_active": "eq.true",
                "limit": "1",
            },
        )
    except Exception as e:
        if _is_invalid_value_error(e):
            return None
        raise
    return rows[0] if rows else None


def list_business_users() -> list[dict[str, Any]]:
    return _rest_get(
        USERS_TABLE,
        {
            "select": "*",
            "user_type": f"eq.{UserType.business.value}",
            "order": "created_at.desc",
        },
    )


def insert_user(payload: dict[str, Any]) -> dict[str, Any]:
    rows = _rest_insert(USERS_TABLE, payload)
    if not rows:
        raise RuntimeError("Failed to insert app user")
    return rows[0]


def update_user(user_id: str, body: dict[str, Any]) -> dict[str, Any] | None:
    rows = _rest_patch(USERS_TABLE, {"id": f"eq.{user_id}"}, body)
    return rows[0] if rows else None


def update_print_settings(user_id: str, auto_print: bool, options: dict[str, Any]) -> dict[str, Any] | None:
    try:
        return update_user(user_id, {"auto_print": auto_print, "print_settings": options})
    except Exception as e:
        if not _is_missing_column_error(e):
            raise
    # Schema without print_settings: only the auto-print flag survives.
    logger.warning("app_users has no print_settings column; saving auto_print only")
    return update_user(user_id, {"auto_print": auto_print})


def delete_business_user(user_id: str) -> bool:
    """Deletes a business account. Admin rows are never matched."""

    try:
        rows = _rest_delete(
            USERS_TABLE,
            {"id": f"eq.{user_id}", "user_type": f"eq.{UserType.business.value}"},
        )
    except Exception as e:
        if _is_invalid_value_error(e):
            return False
        raise
    return bool(rows)


# ---------------------------------------------------------------------------
# call / order records
# ---------------------------------------------------------------------------


def select_rows(table: str, params: dict[str, str]) -> list[dict[str, Any]]:
    """Plain select that treats a missing table or column as no rows."""

    try:
        return _rest_get(table, params)
    except Exception as e:
        if _is_missing_table_error(e) or _is_missing_column_error(e) or _is_invalid_value_error(e):
            logger.debug("Select on %s skipped: %s", table, e)
            return []
        raise


def insert_call_record(business: dict[str, Any], event: CallEvent) -> dict[str, Any]:
    base: dict[str, Any] = {
        "business_name": business.get("business_name"),
        "caller_number": event.caller_number,
        "call_duration": event.call_duration,
        "call_status": event.call_status,
        "call_transcript": event.transcript,
        "webhook_data": event.raw,
    }
    extra: dict[str, Any] = {
        "business_user_id": business.get("id"),
        "status": OrderStatus.new.value,
    }
    if event.caller_name:
        extra["caller_name"] = event.caller_name
    if event.order:
        extra["order"] = event.order
    if event.quantity is not None:
        extra["quantity"] = event.quantity
    if event.amount is not None:
        extra["amount"] = event.amount

    # Older vapi_call tables only have the base columns.
    payload_candidates = [{**base, **extra}, base]

    last_exc: Exception | None = None
    for payload in payload_candidates:
        try:
            rows = _rest_insert(CALLS_TABLE, payload)
        except Exception as ex:
            if not _is_missing_column_error(ex):
                raise
            logger.warning("vapi_call is missing optional columns, retrying with base payload")
            last_exc = ex
            continue
        if rows:
            return rows[0]

    if last_exc:
        raise last_exc
    raise RuntimeError("Failed to create order")


def select_all_rows(table: str, params: dict[str, str]) -> list[dict[str, Any]]:
    """Like select_rows, but follows limit/offset pages until a short page comes back."""

    out: list[dict[str, Any]] = []
    offset = 0
    while True:
        page = select_rows(table, {**params, "limit": str(PAGE_SIZE), "offset": str(offset)})
        out.extend(page)
        if len(page) < PAGE_SIZE:
            return out
        offset += PAGE_SIZE


def set_record_status(table: str, record_id: str, status: OrderStatus) -> dict[str, Any] | None:
    rows = _rest_patch(table, {"id": f"eq.{record_id}"}, {"status": status.value})
    return rows[0] if rows else None


def delete_record(table: str, record_id: str) -> bool:
    rows = _rest_delete(table, {"id": f"eq.{record_id}"})
    return bool(rows)


# ---------------------------------------------------------------------------
# storage
# ---------------------------------------------------------------------------


def upload_object(path: str, content: bytes, content_type: str | None) -> str:
    """Uploads to the configured Storage bucket and returns the public URL."""

    bucket = settings.supabase_storage_bucket
    url = f"{_base_url()}/storage/v1/object/{bucket}/{path}"
    headers = {
        "apikey": settings.supabase_service_role_key or "",
        "Authorization": f"Bearer {settings.supabase_service_role_key or ''}",
        "Content-Type": content_type or "application/octet-stream",
        "x-upsert": "true",
    }
    r = _get_http().post(url, content=content, headers=headers)
    _raise_for(r, "UPLOAD", f"storage:{bucket}")
    return f"{_base_url()}/storage/v1/object/public/{bucket}/{path}"
