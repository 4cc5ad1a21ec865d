#!/usr/bin/env python3
"""
TaskTracker -- multi-user project and task tracking API.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload
  python main.py create-admin --username admin --email admin@example.com
  python main.py create-admin --username admin --email admin@example.com --password s3cret!

Environment variables (see core/config.py for the full list):
  SECRET_KEY     JWT signing key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL. Defaults to a SQLite file next to this script.
  DEBUG          true to auto-generate a throwaway SECRET_KEY for local runs.
"""

import argparse
import getpass
import sys
from typing import Optional


def _serve(host: str, port: int, reload: bool) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=host, port=port, reload=reload)
    return 0


def _create_admin(username: str, email: str, password: Optional[str]) -> int:
    """Register a user with the admin role. The HTTP API never grants it."""
    from auth.models import ROLE_ADMIN
    from auth.store import UserStore
    from core.errors import TrackerError, ValidationError

    if not password:
        password = getpass.getpass("Admin password: ")
        if password != getpass.getpass("Repeat password: "):
            print("  [!] Passwords do not match.")
            return 1

    store = UserStore()
    try:
        user = store.register_user(username, email, password, role=ROLE_ADMIN)
    except ValidationError as exc:
        for field, message in exc.fields.items():
            print(f"  [!] {field}: {message}")
        return 1
    except TrackerError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        store.close()

    print(f"  Admin '{user.username}' <{user.email}> created (id={user.id}).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tasktracker",
        description="Multi-user project and task tracking API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  SECRET_KEY=... python main.py serve --host 0.0.0.0
  python main.py create-admin --username admin --email admin@example.com
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")

    admin = sub.add_parser("create-admin", help="Register a user with the admin role")
    admin.add_argument("--username", required=True, help="3-30 characters")
    admin.add_argument("--email", required=True, help="Login email, must be unique")
    admin.add_argument(
        "--password",
        default=None,
        help="6-72 characters. Prompted for interactively when omitted.",
    )

    args = parser.parse_args(argv)

    if args.command == "serve":
        return _serve(args.host, args.port, args.reload)
    if args.command == "create-admin":
        return _create_admin(args.username, args.email, args.password)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
