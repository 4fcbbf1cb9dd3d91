#!/usr/bin/env python3
"""
TaskGuard -- multi-tenant task tracking with role-based authorization.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py create-user alice --role ADMIN
  python main.py create-user bob --role USER --role MANAGER

Environment variables (see core/config.py):
  SECRET_KEY     Token signing key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL. Defaults to a SQLite file next to this script.
  DEBUG          true for local development.
"""

import argparse
import getpass
import sys

from core.errors import ValidationConflict


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _create_user(args: argparse.Namespace) -> int:
    """Register an account from the terminal, e.g. the first ADMIN."""
    from auth.accounts import register_user
    from auth.store import UserStore

    password = getpass.getpass(f"Password for {args.username}: ")
    if not password:
        print("  [!] Password must not be empty.")
        return 1
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.")
        return 1
    if len(password.encode("utf-8")) > 72:
        print("  [!] Password must be at most 72 bytes.")
        return 1

    store = UserStore()
    try:
        user = register_user(store, args.username, password, args.role)
    except ValidationConflict as exc:
        print(f"  [!] {exc}")
        return 1
    finally:
        store.close()

    print(f"  Created user {user.username} (id {user.id}) with roles {', '.join(sorted(user.roles))}.")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="taskguard",
        description="Multi-tenant task tracker with role-based and ownership-based authorization.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py create-user admin --role ADMIN
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Register an account; the password is prompted for")
    create.add_argument("username", help="Login name for the new account")
    create.add_argument(
        "--role",
        action="append",
        metavar="ROLE",
        help="USER, MANAGER or ADMIN (ROLE_ prefix accepted). Repeat for several roles. Default: USER",
    )
    create.set_defaults(func=_create_user)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
