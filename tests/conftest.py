from __future__ import annotations

import copy
import datetime as dt
import json
import os
import re
import uuid
from typing import Any

import httpx
import pytest

# Settings are read at import time.
os.environ["SUPABASE_URL"] = "https://test.supabase.co"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "service-role-test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["APP_ENV"] = "test"

from fastapi.testclient import TestClient  # noqa: E402

from vass import db  # noqa: E402
from vass.auth import create_token, hash_password  # noqa: E402
from vass.main import app  # noqa: E402

USER_COLUMNS = {
    "id", "username", "password_hash", "user_type", "business_name", "email", "call_rate", "auto_print",
    "print_settings", "monthly_minute_limit", "is_active", "image_url", "webhook_url", "created_at",
}
CALL_BASE_COLUMNS = {
    "id", "business_name", "caller_number", "call_duration", "call_status", "call_transcript", "webhook_data",
    "created_at",
}
CALL_COLUMNS = CALL_BASE_COLUMNS | {"business_user_id", "caller_name", "order", "quantity", "amount", "status"}
ORDER_COLUMNS = {
    "id", "business_user_id", "phone_number", "caller_name", "order", "quantity", "amount", "raw_transcript",
    "status", "created_at",
}
UUID_COLUMNS = {"id", "business_user_id"}

_RESERVED = {"select", "order", "limit", "offset"}


def now_iso(**delta: float) -> str:
    return (dt.datetime.now(dt.timezone.utc) + dt.timedelta(**delta)).isoformat()


def _text(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    return str(value)


def _comparable(value: Any) -> Any:
    s = _text(value)
    try:
        return float(s)
    except ValueError:
        pass
    try:
        parsed = dt.datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return s
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def _like(pattern: str, value: Any) -> bool:
    if value is None:
        return False
    parts = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif ch in "*%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    regex = "".join(parts)
    return re.fullmatch(regex, str(value), flags=re.IGNORECASE | re.DOTALL) is not None


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


class FakeSupabase:
    """Enough of PostgREST and Storage to drive the app in tests."""

    def __init__(self, columns: dict[str, set[str]] | None = None) -> None:
        self.columns: dict[str, set[str]] = {
            db.USERS_TABLE: USER_COLUMNS,
            db.CALLS_TABLE: CALL_COLUMNS,
            db.LEGACY_ORDERS_TABLE: ORDER_COLUMNS,
        }
        if columns is not None:
            self.columns = columns
        self.tables: dict[str, list[dict[str, Any]]] = {name: [] for name in self.columns}
        self.uploads: dict[str, bytes] = {}
        self.fail_inserts: set[str] = set()

    # -- seeding helpers --------------------------------------------------

    def add(self, table: str, **row: Any) -> dict[str, Any]:
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", now_iso())
        self.tables[table].append(row)
        return row

    def add_user(self, username: str, password: str, user_type: str = "business", **extra: Any) -> dict[str, Any]:
        row = {
            "username": username,
            "password_hash": hash_password(password),
            "user_type": user_type,
            "business_name": "",
            "call_rate": 2.0,
            "auto_print": True,
            "print_settings": {},
            "is_active": True,
        }
        row.update(extra)
        return self.add(db.USERS_TABLE, **row)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables[table]

    # -- transport --------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith("/storage/v1/object/"):
            key = path[len("/storage/v1/object/"):]
            self.uploads[key] = request.content
            return httpx.Response(200, json={"Key": key})
        if not path.startswith("/rest/v1/"):
            return httpx.Response(404, json={"message": "not found"})

        table = path[len("/rest/v1/"):]
        if table not in self.tables:
            return self._error(404, "PGRST205", f"Could not find the table 'public.{table}' in the schema cache")

        params = request.url.params
        try:
            matched = self._filter(table, params)
        except _PostgrestError as e:
            return self._error(400, e.code, e.message)

        if request.method == "GET":
            return httpx.Response(200, json=self._shape(matched, params))
        if request.method == "POST":
            return self._insert(table, json.loads(request.content or b"null"))
        if request.method == "PATCH":
            return self._patch(table, matched, json.loads(request.content or b"{}"))
        if request.method == "DELETE":
            self.tables[table] = [r for r in self.tables[table] if r not in matched]
            return httpx.Response(200, json=copy.deepcopy(matched))
        return httpx.Response(405, json={"message": "method not allowed"})

    def _error(self, status: int, code: str, message: str) -> httpx.Response:
        return httpx.Response(status, json={"code": code, "message": message})

    def _filter(self, table: str, params: httpx.QueryParams) -> list[dict[str, Any]]:
        rows = list(self.tables[table])
        for column, expr in params.multi_items():
            if column in _RESERVED:
                continue
            if column not in self.columns[table]:
                raise _PostgrestError("42703", f"column {table}.{column} does not exist")
            op, _, arg = expr.partition(".")
            if op == "eq" and column in UUID_COLUMNS and not _is_uuid(arg):
                raise _PostgrestError("22P02", f'invalid input syntax for type uuid: "{arg}"')
            rows = [r for r in rows if self._match(r.get(column), op, arg)]

        order = params.get("order")
        if order:
            # stable sorts, last key first
            for term in reversed(order.split(",")):
                column, _, direction = term.partition(".")
                rows.sort(key=lambda r: _text(r.get(column)), reverse=direction == "desc")
        offset = int(params.get("offset") or 0)
        limit = params.get("limit")
        rows = rows[offset : offset + int(limit)] if limit else rows[offset:]
        return rows

    def _match(self, value: Any, op: str, arg: str) -> bool:
        if op == "eq":
            return _text(value) == arg
        if op == "neq":
            return _text(value) != arg
        if op in ("like", "ilike"):
            return _like(arg, value)
        if op == "in":
            return _text(value) in {a.strip() for a in arg.strip("()").split(",")}
        if op == "is":
            return _text(value) == arg
        if op in ("gte", "gt", "lte", "lt"):
            if value is None:
                return False
            left, right = _comparable(value), _comparable(arg)
            return {
                "gte": left >= right,
                "gt": left > right,
                "lte": left <= right,
                "lt": left < right,
            }[op]
        raise _PostgrestError("PGRST100", f"unknown operator {op}")

    def _shape(self, rows: list[dict[str, Any]], params: httpx.QueryParams) -> list[dict[str, Any]]:
        select = params.get("select") or "*"
        out = copy.deepcopy(rows)
        if select == "*":
            return out
        wanted = [c.strip() for c in select.split(",")]
        return [{c: r.get(c) for c in wanted} for r in out]

    def _check_columns(self, table: str, body: dict[str, Any]) -> httpx.Response | None:
        for column in body:
            if column not in self.columns[table]:
                return self._error(
                    400, "PGRST204", f"Could not find the '{column}' column of '{table}' in the schema cache"
                )
        return None

    def _insert(self, table: str, body: Any) -> httpx.Response:
        if table in self.fail_inserts:
            return self._error(503, "", "service unavailable")
        items = body if isinstance(body, list) else [body]
        created = []
        for item in items:
            bad = self._check_columns(table, item)
            if bad is not None:
                return bad
            if table == db.USERS_TABLE and any(r["username"] == item.get("username") for r in self.tables[table]):
                return self._error(409, "23505", 'duplicate key value violates unique constraint "app_users_username_key"')
            row = dict(item)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", now_iso())
            if "status" in self.columns[table]:
                row.setdefault("status", "new")
            created.append(row)
        self.tables[table].extend(created)
        return httpx.Response(201, json=copy.deepcopy(created))

    def _patch(self, table: str, matched: list[dict[str, Any]], body: dict[str, Any]) -> httpx.Response:
        bad = self._check_columns(table, body)
        if bad is not None:
            return bad
        for row in matched:
            row.update(body)
        return httpx.Response(200, json=copy.deepcopy(matched))


class _PostgrestError(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@pytest.fixture
def fake(monkeypatch: pytest.MonkeyPatch) -> FakeSupabase:
    supabase = FakeSupabase()
    monkeypatch.setattr(db, "_http", httpx.Client(transport=httpx.MockTransport(supabase.handler)))
    return supabase


@pytest.fixture
def client(fake: FakeSupabase) -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin(fake: FakeSupabase) -> dict[str, Any]:
    return fake.add_user("admin", "admin-pass", user_type="admin")


@pytest.fixture
def admin_headers(admin: dict[str, Any]) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token(admin)}"}


@pytest.fixture
def business(fake: FakeSupabase) -> dict[str, Any]:
    return fake.add_user("pizzapalace", "pizza-pass", business_name="Pizza Palace", call_rate=3.0)


@pytest.fixture
def business_headers(business: dict[str, Any]) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token(business)}"}
