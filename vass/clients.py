from __future__ import annotations

import logging
import uuid
from typing import Any

from .auth import hash_password
from .db import (
    _is_unique_violation,
    delete_business_user,
    get_user,
    get_user_by_id,
    insert_user,
    list_business_users,
    update_user,
    upload_object,
)
from .reconcile import load_orders
from .settings import settings
from .types import ClientCreateIn, ClientUpdateIn, Order, UserType
from .usage import order_totals

logger = logging.getLogger(__name__)

_LOGO_TYPES = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp", "image/svg+xml": "svg"}


class MissingFields(ValueError):
    pass


class DuplicateUsername(ValueError):
    pass


class ClientNotFound(LookupError):
    pass


def client_view(user: dict[str, Any], totals: dict[str, Any] | None = None) -> dict[str, Any]:
    totals = totals or {}
    return {
        "id": user.get("id"),
        "business_name": user.get("business_name") or "",
        "username": user.get("username"),
        "call_rate": float(user.get("call_rate") or 0),
        "status": "Active" if user.get("is_active") else "Inactive",
        "auto_print": bool(user.get("auto_print")),
        "image_url": user.get("image_url"),
        "webhook_url": user.get("webhook_url"),
        "total_calls": int(totals.get("total_calls", 0)),
        "total_revenue": float(totals.get("total_revenue", 0.0)),
        "created_at": user.get("created_at"),
    }


def orders_by_client(users: list[dict[str, Any]]) -> dict[str, list[Order]]:
    # Same lookup as the business panel, so admin totals match what each business sees.
    return {str(u["id"]): load_orders(u) for u in users}


def list_clients() -> list[dict[str, Any]]:
    users = list_business_users()
    orders = orders_by_client(users)
    return [client_view(u, order_totals(u, orders[str(u["id"])])) for u in users]


def create_client(body: ClientCreateIn) -> dict[str, Any]:
    business_name = body.business_name.strip()
    username = body.username.strip()
    if not business_name or not username or not body.password:
        raise MissingFields("Please fill in all required fields")

    # The unique index on username is the real guard; this only gives a clean error early.
    if get_user(username) is not None:
        raise DuplicateUsername("Username already exists")

    payload: dict[str, Any] = {
        "username": username,
        "password_hash": hash_password(body.password),
        "user_type": UserType.business.value,
        "business_name": business_name,
        "call_rate": body.call_rate if body.call_rate is not None else settings.default_call_rate,
        "auto_print": body.auto_print,
        "is_active": True,
    }
    if body.email:
        payload["email"] = body.email
    if body.webhook_url:
        payload["webhook_url"] = body.webhook_url
    if body.logo_url:
        payload["image_url"] = body.logo_url

    try:
        user = insert_user(payload)
    except Exception as e:
        if _is_unique_violation(e):
            raise DuplicateUsername("Username already exists") from e
        raise

    logger.info("Created business client %s (%s)", user.get("id"), business_name)
    return user


def update_client(client_id: str, body: ClientUpdateIn) -> dict[str, Any]:
    changes = body.model_dump(exclude_none=True)
    if "business_name" in changes:
        changes["business_name"] = changes["business_name"].strip()
        if not changes["business_name"]:
            raise MissingFields("Business name cannot be empty")

    user = get_user_by_id(client_id)
    if not user or user.get("user_type") != UserType.business.value:
        raise ClientNotFound(client_id)
    if not changes:
        return user
    updated = update_user(client_id, changes)
    if not updated:
        raise ClientNotFound(client_id)
    return updated


def toggle_client_status(client_id: str) -> dict[str, Any]:
    user = get_user_by_id(client_id)
    if not user or user.get("user_type") != UserType.business.value:
        raise ClientNotFound(client_id)
    new_status = not bool(user.get("is_active"))
    updated = update_user(client_id, {"is_active": new_status})
    if not updated:
        raise ClientNotFound(client_id)
    logger.info("Client %s %s", client_id, "activated" if new_status else "deactivated")
    return updated


def delete_client(client_id: str) -> None:
    if not delete_business_user(client_id):
        raise ClientNotFound(client_id)
    logger.info("Deleted business client %s", client_id)


def set_client_logo(client_id: str, content: bytes, content_type: str | None) -> dict[str, Any]:
    user = get_user_by_id(client_id)
    if not user or user.get("user_type") != UserType.business.value:
        raise ClientNotFound(client_id)
    ext = _LOGO_TYPES.get((content_type or "").lower())
    if not ext:
        raise ValueError("Logo must be a PNG, JPEG, WebP or SVG image")

    path = f"{client_id}/{uuid.uuid4().hex}.{ext}"
    url = upload_object(path, content, content_type)
    updated = update_user(client_id, {"image_url": url})
    return updated or {**user, "image_url": url}
