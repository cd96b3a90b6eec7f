#!/usr/bin/env python3
"""Account bootstrap utility.

Creates a user directly in the database, typically the first admin on a
fresh deployment. Reads DATABASE_URL and JWT_SECRET_KEY like the API does.

Usage:
    python scripts/create_user.py --name "Ada" --email ada@example.com --admin
    python scripts/create_user.py --name "Ada" --email ada@example.com --password-stdin
"""

import argparse
import asyncio
import getpass
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))


async def _create(name: str, email: str, password: str, roles: list[str]) -> int:
    from app.core import session_scope
    from app.services.accounts import AccountService

    async with session_scope() as session:
        service = AccountService(session)
        if await service.find_active_by_email(email) is not None:
            print(f"ERROR: An active account already exists for {email}")
            return 1
        user = await service.create_user(name, email, password, roles)
        print(f"Created user {user.id} <{user.email}> roles={','.join(user.roles)}")
        return 0


def main():
    parser = argparse.ArgumentParser(description="Create a user account")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument("--email", required=True, help="Login email")
    parser.add_argument("--admin", action="store_true", help="Grant the admin role")
    parser.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from stdin instead of prompting",
    )
    args = parser.parse_args()

    if args.password_stdin:
        password = sys.stdin.readline().rstrip("\n")
    else:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Repeat password: "):
            print("ERROR: Passwords do not match.")
            sys.exit(1)

    if len(password) < 8:
        print("ERROR: Password must be at least 8 characters.")
        sys.exit(1)

    from app.services.roles import validate_roles

    roles = ["user", "admin"] if args.admin else ["user"]
    if not validate_roles(roles):
        print(f"ERROR: Invalid roles {roles}")
        sys.exit(1)

    sys.exit(asyncio.run(_create(args.name, args.email, password, roles)))


if __name__ == "__main__":
    main()
