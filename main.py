#!/usr/bin/env python3
"""
SiteGate -- account pages and login-redirect resolution for FastAPI.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py createuser alice --email alice@example.com
  python main.py createuser root --admin
  python main.py urls
  python main.py check-redirects

Environment variables (see core/config.py for the full list):
  SECRET_KEY           Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL         SQLAlchemy URL of the user database.
  LOGIN_REDIRECT_URL   Route name or URL to land on after login (default: home).
  LOGOUT_REDIRECT_URL  Route name or URL after logout; empty renders a page.
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.forms import USERNAME_PATTERN, validate_password
from auth.models import User
from auth.redirects import RedirectResolutionError, resolve_url
from auth.store import UserStore
from auth.tokens import hash_password
from auth.urls import AUTH_URL_TABLE
from core.config import get_settings


def _read_password(username: str) -> Optional[str]:
    """Prompt twice for a password. Returns None if the entries differ."""
    first = getpass.getpass(f"Password for {username}: ")
    second = getpass.getpass("Password (again): ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def cmd_createuser(args: argparse.Namespace) -> int:
    if not USERNAME_PATTERN.match(args.username):
        print("  [!] Usernames may contain only letters, numbers, and @/./+/-/_ characters.")
        return 2

    password = args.password
    if password is None and not args.no_password:
        password = _read_password(args.username)
        if password is None:
            return 2

    hashed: Optional[str] = None
    if password is not None:
        problems = validate_password(password, args.username)
        if problems:
            for message in problems:
                print(f"  [!] {message}")
            return 2
        hashed = hash_password(password)

    store = UserStore(db_url=args.database_url)
    try:
        user_id = store.create_user(
            User(
                username=args.username,
                email=args.email,
                role="admin" if args.admin else "user",
                hashed_password=hashed,
            )
        )
    except IntegrityError:
        print(f"  [!] A user named '{args.username}' already exists.")
        return 1
    finally:
        store.close()

    print(f"  Created {'admin' if args.admin else 'user'} '{args.username}' (id {user_id}).")
    return 0


def cmd_urls(args: argparse.Namespace) -> int:
    width = max(len(route.full_path) for route in AUTH_URL_TABLE)
    for route in AUTH_URL_TABLE:
        print(f"  {route.full_path:<{width}}  {route.name:<24} {','.join(route.methods)}")
    return 0


def cmd_check_redirects(args: argparse.Namespace) -> int:
    """Resolve each configured redirect target against the assembled app."""
    from asgi import app

    settings = get_settings()
    targets = [
        ("LOGIN_URL", settings.login_url),
        ("LOGIN_REDIRECT_URL", settings.login_redirect_url),
        ("LOGOUT_REDIRECT_URL", settings.logout_redirect_url),
    ]
    status = 0
    for setting_name, target in targets:
        if not target:
            print(f"  {setting_name:<20} (empty) -> render logged-out page")
            continue
        try:
            print(f"  {setting_name:<20} {target!r} -> {resolve_url(target, app)}")
        except RedirectResolutionError as exc:
            print(f"  [!] {setting_name:<16} {target!r}: {exc}")
            status = 1
    return status


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitegate",
        description="Account pages and login-redirect resolution.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py createuser alice --email alice@example.com
  python main.py urls
  LOGIN_REDIRECT_URL=/dashboard/ python main.py check-redirects
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p_create = sub.add_parser("createuser", help="Create a user account")
    p_create.add_argument("username")
    p_create.add_argument("--email", default="", help="Email address used for password reset")
    p_create.add_argument("--admin", action="store_true", help="Give the account the admin role")
    p_create.add_argument(
        "--password",
        default=None,
        help="Password (prompted for when omitted; avoid on shared machines)",
    )
    p_create.add_argument(
        "--no-password",
        action="store_true",
        help="Create the account with an unusable password",
    )
    p_create.add_argument(
        "--database-url",
        default=None,
        metavar="URL",
        help="SQLAlchemy URL of the user database (default: DATABASE_URL setting)",
    )
    p_create.set_defaults(func=cmd_createuser)

    p_urls = sub.add_parser("urls", help="Print the authentication URL table")
    p_urls.set_defaults(func=cmd_urls)

    p_check = sub.add_parser("check-redirects", help="Resolve the configured redirect targets")
    p_check.set_defaults(func=cmd_check_redirects)

    p_serve = sub.add_parser("serve", help="Run the web server with uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
