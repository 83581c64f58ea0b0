from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from .auth import require_admin
from .clients import (
    ClientNotFound,
    DuplicateUsername,
    MissingFields,
    client_view,
    create_client,
    delete_client,
    list_clients,
    orders_by_client,
    set_client_logo,
    toggle_client_status,
    update_client,
)
from .db import CALLS_TABLE, LEGACY_ORDERS_TABLE, list_business_users, select_rows
from .types import ClientCreateIn, ClientUpdateIn
from .usage import admin_overview

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/overview")
def overview() -> dict[str, Any]:
    try:
        clients = list_business_users()
        orders = orders_by_client(clients)
    except Exception:
        logger.exception("Failed loading admin overview")
        raise HTTPException(status_code=500, detail="Failed to load dashboard")
    return admin_overview(clients, orders)


@router.get("/clients")
def get_clients() -> dict[str, Any]:
    try:
        clients = list_clients()
    except Exception:
        logger.exception("Failed fetching clients")
        raise HTTPException(status_code=500, detail="Failed to fetch clients")
    return {"clients": clients, "count": len(clients)}


@router.post("/clients", status_code=201)
def add_client(body: ClientCreateIn) -> dict[str, Any]:
    try:
        user = create_client(body)
    except MissingFields as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateUsername as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception:
        logger.exception("Failed creating client")
        raise HTTPException(status_code=500, detail="Failed to create client")
    return {
        "client": client_view(user),
        "message": f"{user.get('business_name')} has been added to the system",
    }


@router.patch("/clients/{client_id}")
def edit_client(client_id: str, body: ClientUpdateIn) -> dict[str, Any]:
    try:
        user = update_client(client_id, body)
    except MissingFields as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ClientNotFound:
        raise HTTPException(status_code=404, detail="Client not found")
    except Exception:
        logger.exception("Failed updating client %s", client_id)
        raise HTTPException(status_code=500, detail="Failed to update client")
    return {"client": client_view(user)}


@router.post("/clients/{client_id}/toggle-status")
def toggle_status(client_id: str) -> dict[str, Any]:
    try:
        user = toggle_client_status(client_id)
    except ClientNotFound:
        raise HTTPException(status_code=404, detail="Client not found")
    except Exception:
        logger.exception("Failed toggling client %s", client_id)
        raise HTTPException(status_code=500, detail="Failed to update client status")
    state = "activated" if user.get("is_active") else "deactivated"
    return {"client": client_view(user), "message": f"Client has been {state}"}


@router.delete("/clients/{client_id}")
def remove_client(client_id: str) -> dict[str, Any]:
    try:
        delete_client(client_id)
    except ClientNotFound:
        raise HTTPException(status_code=404, detail="Client not found")
    except Exception:
        logger.exception("Failed deleting client %s", client_id)
        raise HTTPException(status_code=500, detail="Failed to delete client")
    return {"success": True, "message": "Client has been removed from the system"}


@router.post("/clients/{client_id}/logo")
async def upload_logo(client_id: str, file: UploadFile = File(...)) -> dict[str, Any]:
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    try:
        user = set_client_logo(client_id, content, file.content_type)
    except ClientNotFound:
        raise HTTPException(status_code=404, detail="Client not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Failed uploading logo for %s", client_id)
        raise HTTPException(status_code=500, detail="Failed to upload logo")
    return {"client": client_view(user)}


@router.get("/debug")
def debug_tables() -> dict[str, Any]:
    """Connectivity check plus a small sample of each table."""

    out: dict[str, Any] = {}
    try:
        users = list_business_users()
        out["business_users"] = [
            {"id": u.get("id"), "username": u.get("username"), "business_name": u.get("business_name")} for u in users
        ]
    except Exception as e:
        logger.exception("Debug: app_users check failed")
        out["business_users"] = {"error": str(e)}

    for table in (CALLS_TABLE, LEGACY_ORDERS_TABLE):
        try:
            rows = select_rows(table, {"select": "*", "order": "created_at.desc", "limit": "5"})
        except Exception as e:
            logger.exception("Debug: %s check failed", table)
            out[table] = {"error": str(e)}
            continue
        out[table] = {
            "sample": rows,
            "business_names": sorted({str(r.get("business_name")) for r in rows if r.get("business_name")}),
            "business_user_ids": sorted({str(r.get("business_user_id")) for r in rows if r.get("business_user_id")}),
        }
    return out
