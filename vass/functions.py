"""Endpoints kept under the hosted-function paths the dashboard and voice provider already call."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from .auth import INVALID_CREDENTIALS, public_profile, require_admin, verify_password
from .clients import ClientNotFound, DuplicateUsername, MissingFields, create_client, delete_client
from .db import get_user
from .types import ClientCreateIn, DeleteClientIn, LoginIn
from .webhook import BusinessNotFound, ingest_call_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["functions"])


@router.post("/create-client", status_code=201, dependencies=[Depends(require_admin)])
def create_client_fn(body: ClientCreateIn) -> dict[str, Any]:
    try:
        user = create_client(body)
    except MissingFields as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateUsername as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception:
        logger.exception("create-client failed")
        raise HTTPException(status_code=500, detail="Failed to create client")
    return {"success": True, "clientId": user.get("id")}


@router.post("/delete-client", dependencies=[Depends(require_admin)])
def delete_client_fn(body: DeleteClientIn) -> dict[str, Any]:
    if not body.user_id:
        raise HTTPException(status_code=400, detail="User ID is required")
    try:
        delete_client(body.user_id)
    except ClientNotFound:
        raise HTTPException(status_code=404, detail="Client not found")
    except Exception:
        logger.exception("delete-client failed for %s", body.user_id)
        raise HTTPException(status_code=500, detail="Failed to delete client")
    return {"success": True}


@router.post("/authenticate-user")
def authenticate_user_fn(body: LoginIn) -> dict[str, Any]:
    username = body.username.strip()
    if not username or not body.password:
        raise HTTPException(status_code=400, detail="Username and password are required")
    try:
        user = get_user(username)
    except Exception:
        logger.exception("authenticate-user lookup failed")
        raise HTTPException(status_code=500, detail="Internal server error")
    if not user or not verify_password(body.password, user.get("password_hash")):
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    return {"success": True, "user": public_profile(user)}


@router.post("/webhook-handler")
async def webhook_handler(request: Request) -> JSONResponse:
    business_id = (request.query_params.get("business_id") or "").strip()
    if not business_id:
        return JSONResponse({"error": "Business ID is required"}, status_code=400)

    raw = await request.body()
    try:
        payload = json.loads(raw or b"")
    except ValueError:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    if not isinstance(payload, dict):
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)

    try:
        row = ingest_call_event(business_id, payload)
    except BusinessNotFound:
        logger.warning("Webhook for unknown or inactive business %s", business_id)
        return JSONResponse({"error": "Business not found or inactive"}, status_code=404)
    except Exception:
        logger.exception("Webhook insert failed for business %s", business_id)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    return JSONResponse({"success": True, "message": "Order created successfully", "order_id": row.get("id")})
