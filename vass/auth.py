from __future__ import annotations

import datetime as dt
import logging
from typing import Any

import bcrypt
import jwt
from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .db import get_user, get_user_by_id
from .settings import settings
from .types import LoginIn, UserType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

_bearer = HTTPBearer(auto_error=False)

INVALID_CREDENTIALS = "Invalid username or password."
INACTIVE_ACCOUNT = "Your account is inactive. Please contact support."


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode("utf-8")


def verify_password(password: str, stored_hash: Any) -> bool:
    """bcrypt compare; anything that is not a bcrypt hash never matches."""

    if not password or not isinstance(stored_hash, str) or not stored_hash.startswith("$2"):
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Malformed password hash encountered")
        return False


def public_profile(user: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": user.get("id"),
        "username": user.get("username"),
        "user_type": user.get("user_type"),
        "business_name": user.get("business_name") or "",
        "is_active": bool(user.get("is_active")),
        "auto_print": bool(user.get("auto_print")),
        "image_url": user.get("image_url"),
    }


def create_token(user: dict[str, Any]) -> str:
    now = dt.datetime.now(dt.timezone.utc)
    payload = {
        "sub": str(user["id"]),
        "username": user.get("username"),
        "user_type": user.get("user_type"),
        "iat": now,
        "exp": now + dt.timedelta(hours=settings.session_ttl_hours),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Session expired. Please log in again.")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid session")


def authenticate(username: str, password: str, user_type: UserType | None) -> dict[str, Any]:
    """Returns the user row for valid credentials or raises 400/401/403."""

    username = (username or "").strip()
    if not username or not password:
        raise HTTPException(status_code=400, detail="Please enter a username and password.")

    user = get_user(username, user_type)
    if not user or not verify_password(password, user.get("password_hash")):
        logger.info("Login rejected for %s (%s)", username, user_type.value if user_type else "any")
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    if user.get("user_type") == UserType.business.value and not user.get("is_active"):
        raise HTTPException(status_code=403, detail=INACTIVE_ACCOUNT)

    return user


@router.post("/login")
def login(body: LoginIn) -> dict[str, Any]:
    try:
        user = authenticate(body.username, body.password, body.user_type)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Login lookup failed")
        raise HTTPException(status_code=500, detail="An error occurred during login.")

    logger.info("User %s logged in as %s", user.get("username"), body.user_type.value)
    return {
        "access_token": create_token(user),
        "token_type": "bearer",
        "user": public_profile(user),
    }


def _claims(credentials: HTTPAuthorizationCredentials | None) -> dict[str, Any]:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return decode_token(credentials.credentials)


def require_admin(credentials: HTTPAuthorizationCredentials | None = Depends(_bearer)) -> dict[str, Any]:
    claims = _claims(credentials)
    if claims.get("user_type") != UserType.admin.value:
        raise HTTPException(status_code=403, detail="Admin access required")
    return claims


def require_business(credentials: HTTPAuthorizationCredentials | None = Depends(_bearer)) -> dict[str, Any]:
    """Resolves the current business row; deactivated or deleted accounts are locked out."""

    claims = _claims(credentials)
    if claims.get("user_type") != UserType.business.value:
        raise HTTPException(status_code=403, detail="Business access required")

    user = get_user_by_id(str(claims.get("sub")))
    if not user or user.get("user_type") != UserType.business.value:
        raise HTTPException(status_code=401, detail="Business not identified. Please log in again.")
    if not user.get("is_active"):
        raise HTTPException(status_code=403, detail=INACTIVE_ACCOUNT)
    return user
