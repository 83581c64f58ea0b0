from __future__ import annotations

import argparse
import getpass
import os
import sys

# Allow running as a script: `python scripts/create_admin.py`
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from vass.auth import hash_password
from vass.db import SupabaseError, get_user, insert_user
from vass.settings import require_secrets
from vass.types import UserType


def main() -> None:
    parser = argparse.ArgumentParser(description="Create an admin account in app_users")
    parser.add_argument("username")
    parser.add_argument("--password", help="prompted for when omitted")
    args = parser.parse_args()

    require_secrets()
    password = args.password or getpass.getpass("Password: ")
    if not password:
        raise SystemExit("Password must not be empty")

    if get_user(args.username) is not None:
        raise SystemExit(f"Username {args.username!r} already exists")

    try:
        user = insert_user(
            {
                "username": args.username,
                "password_hash": hash_password(password),
                "user_type": UserType.admin.value,
                "business_name": "",
                "is_active": True,
            }
        )
    except SupabaseError as e:
        raise SystemExit(str(e))

    print(f"Created admin {user.get('username')} ({user.get('id')})")


if __name__ == "__main__":
    main()
