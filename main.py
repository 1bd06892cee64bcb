#!/usr/bin/env python3
"""
tracker-auth -- operator commands for the credential store.

Usage:
  python main.py hash-password
  python main.py create-user alice --role DEVELOPER
  python main.py list-users

hash-password prints a bcrypt hash suitable for the SEED_USERS setting, e.g.
  SEED_USERS='[{"username": "admin", "password_hash": "$2b$12$...", "role": "DEVELOPER"}]'

Environment variables:
  DATABASE_URL  Credential store URL (defaults to auth/trackerauth_users.db).
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.passwords import hash_password
from auth.store import UserStore
from core.config import get_settings


def _prompt_password() -> str:
    """Read a password twice without echo. Exits on mismatch or empty input."""
    password = getpass.getpass("Password: ")
    if not password:
        sys.exit("  [!] Password must not be empty.")
    if getpass.getpass("Repeat password: ") != password:
        sys.exit("  [!] Passwords do not match.")
    return password


def _open_store() -> UserStore:
    return UserStore(get_settings().database_url)


def cmd_hash_password(args: argparse.Namespace) -> None:
    print(hash_password(_prompt_password()))


def cmd_create_user(args: argparse.Namespace) -> None:
    store = _open_store()
    try:
        user = User(username=args.username, role=args.role, hashed_password=hash_password(_prompt_password()))
        try:
            user_id = store.create_user(user)
        except IntegrityError:
            sys.exit(f"  [!] User '{args.username}' already exists.")
        print(f"Created user '{args.username}' (id={user_id}, role={args.role}).")
    finally:
        store.close()


def cmd_list_users(args: argparse.Namespace) -> None:
    store = _open_store()
    try:
        users = store.list_users()
    finally:
        store.close()
    if not users:
        print("No users.")
        return
    for user in users:
        state = "active" if user.is_active else "inactive"
        print(f"{user.username:<30} {user.role:<15} {state}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tracker-auth", description="Credential store administration.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_hash = sub.add_parser("hash-password", help="Print a bcrypt hash for SEED_USERS.")
    p_hash.set_defaults(func=cmd_hash_password)

    p_create = sub.add_parser("create-user", help="Add a user to the credential store.")
    p_create.add_argument("username")
    p_create.add_argument("--role", required=True, help="Role claim carried in issued tokens, e.g. DEVELOPER.")
    p_create.set_defaults(func=cmd_create_user)

    p_list = sub.add_parser("list-users", help="List users in the credential store.")
    p_list.set_defaults(func=cmd_list_users)
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
