#!/usr/bin/env python3
"""
SheetShelf -- administration CLI for the personal sheet-music library.

Usage:
  python main.py create-admin --username clara --name "Clara Schumann" --email clara@example.com
  python main.py lookup 1234
  python main.py lookup 1234 --json
  python main.py users

Environment variables:
  SECRET_KEY     Required unless DEBUG=true. Signs access tokens.
  DATABASE_URL   SQLAlchemy URL for the library database.
  CATALOG_URL    Base URL of the Open Opus catalog.

create-admin is how the first admin account is made: POST /api/v1/users
requires an admin token, and self-registration never grants admin.
"""

import argparse
import getpass
import json
import sys
from typing import Optional

from auth.store import UserStore
from core.catalog import CatalogClient
from core.config import get_settings
from core.errors import SheetShelfError
from library.directory import UserDirectory
from library.manager import LibraryManager
from library.store import LibraryStore


def _build_directory() -> tuple[UserDirectory, UserStore, LibraryStore]:
    settings = get_settings()
    users = UserStore(settings.database_url)
    library = LibraryStore(settings.database_url)
    catalog = CatalogClient(base_url=settings.catalog_url, timeout=settings.catalog_timeout)
    manager = LibraryManager(users, library, catalog, max_workers=settings.catalog_max_workers)
    return UserDirectory(users, manager), users, library


def _read_password(prompt: str = "Password: ") -> Optional[str]:
    first = getpass.getpass(prompt)
    second = getpass.getpass("Repeat password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    if len(first) < 5:
        print("  [!] Password must be at least 5 characters.")
        return None
    return first


def cmd_create_admin(args: argparse.Namespace) -> int:
    password = args.password or _read_password()
    if password is None:
        return 1
    directory, users, library = _build_directory()
    try:
        user, token = directory.register(
            username=args.username,
            name=args.name,
            email=args.email,
            password=password,
            is_admin=True,
        )
    except SheetShelfError as e:
        print(f"  [!] {e.message}")
        return 1
    finally:
        users.close()
        library.close()
    print(f"  Admin '{user.username}' created.")
    if args.show_token:
        print(f"  Token: {token}")
    return 0


def cmd_users(args: argparse.Namespace) -> int:
    directory, users, library = _build_directory()
    try:
        for user in directory.list_users():
            flag = " (admin)" if user.is_admin else ""
            works = library.count_entries(user.username)
            print(f"  {user.username:<20} {user.email:<30} {works:>4} works  {user.name}{flag}")
    finally:
        users.close()
        library.close()
    return 0


def cmd_lookup(args: argparse.Namespace) -> int:
    settings = get_settings()
    catalog = CatalogClient(base_url=settings.catalog_url, timeout=settings.catalog_timeout)
    print(f"  Fetching work {args.external_id}...", end=" ", flush=True, file=sys.stderr)
    detail = catalog.work_detail(args.external_id)
    if detail is None:
        print(f"\n  [!] No catalog record for {args.external_id}.", file=sys.stderr)
        return 1
    print("done.", file=sys.stderr)
    if args.json:
        print(json.dumps(detail, indent=2))
    else:
        print(f"  {detail.get('title') or '(untitled)'} - {detail.get('composer') or '(unknown composer)'}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sheetshelf",
        description="Administration tools for the SheetShelf library.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --username clara --name Clara --email clara@example.com
  python main.py lookup 1234 --json
        """,
    )
    sub = parser.add_subparsers(dest="command")

    p_admin = sub.add_parser("create-admin", help="Create an admin account")
    p_admin.add_argument("--username", required=True)
    p_admin.add_argument("--name", required=True)
    p_admin.add_argument("--email", required=True)
    p_admin.add_argument(
        "--password",
        help="Password (prompted for when omitted; avoid passing it on a shared shell)",
    )
    p_admin.add_argument("--show-token", action="store_true", help="Print an access token for the new admin")
    p_admin.set_defaults(func=cmd_create_admin)

    p_users = sub.add_parser("users", help="List user accounts")
    p_users.set_defaults(func=cmd_users)

    p_lookup = sub.add_parser("lookup", help="Look a work up in the Open Opus catalog")
    p_lookup.add_argument("external_id", metavar="WORK-ID")
    p_lookup.add_argument("--json", action="store_true", help="Output structured JSON")
    p_lookup.set_defaults(func=cmd_lookup)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
