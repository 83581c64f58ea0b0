from __future__ import annotations

import os

import httpx
from dotenv import load_dotenv

TABLES = ("app_users", "vapi_call", "orders")


def _check(client: httpx.Client, base: str, table: str) -> None:
    select = "id,username,user_type,business_name,is_active" if table == "app_users" else "*"
    r = client.get(f"{base}/rest/v1/{table}", params={"select": select, "limit": "5"})
    print(f"\n== {table}: status {r.status_code}")

    if r.status_code == 404 and "PGRST205" in r.text:
        print(f"  table public.{table} not found. Run supabase/schema.sql in the SQL Editor.")
        return
    if r.status_code >= 400:
        print("  raw:", r.text[:500])
        return

    rows = r.json() or []
    print(f"  {len(rows)} sample row(s)")
    for row in rows:
        if table == "app_users":
            print(f"  - {row.get('username')} [{row.get('user_type')}] {row.get('business_name') or ''} active={row.get('is_active')}")
        else:
            print(
                f"  - {row.get('id')} business_user_id={row.get('business_user_id')} "
                f"business_name={row.get('business_name')!r} status={row.get('status')}"
            )


def main() -> None:
    load_dotenv()
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")

    if not url or not key:
        raise SystemExit("Missing SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY env vars")

    headers = {
        "apikey": key,
        "Authorization": f"Bearer {key}",
        "Accept": "application/json",
    }
    with httpx.Client(headers=headers, timeout=20) as client:
        for table in TABLES:
            _check(client, url.rstrip("/"), table)


if __name__ == "__main__":
    main()
