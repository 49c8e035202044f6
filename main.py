#!/usr/bin/env python3
"""
Deltask -- Workspaces, boards, columns and cards with membership-based access.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py create-user ada@deltask.io --name "Ada Lovelace"
  python main.py create-user root@deltask.io --name Root --password s3cret-pass --admin
  python main.py users
  python main.py tree ada@deltask.io
  python main.py orphans

Environment variables:
  KANBAN_DB_URL / AUTH_DB_URL   SQLAlchemy URLs of the two databases.
  SECRET_KEY                    Required unless DEBUG=true.
  See core/config.py for the full list.
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings
from kanban.service import KanbanService
from kanban.store import KanbanStore


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _cmd_create_user(args: argparse.Namespace, user_store: UserStore) -> int:
    """Provision an account without going through POST /auth/register."""
    password = args.password or getpass.getpass("Password: ")
    if len(password) < 8:
        print("  [!] Password must be at least 8 characters.")
        return 1
    user = User(
        email=args.email,
        name=args.name or args.email.split("@")[0],
        role="admin" if args.admin else "user",
        hashed_password=hash_password(password),
    )
    try:
        user_id = user_store.create_user(user)
    except IntegrityError:
        print(f"  [!] A user with email '{args.email}' already exists.")
        return 1
    print(f"Created {user.role} {args.email} (id {user_id})")
    return 0


def _cmd_users(args: argparse.Namespace, user_store: UserStore) -> int:
    users = user_store.list_users()
    if not users:
        print("No users yet. Create one with: python main.py create-user EMAIL")
        return 0
    for user in users:
        state = "active" if user.is_active else "disabled"
        print(f"{user.email:<32} {user.role:<6} {state:<8} last login {user.last_login or 'never'}")
    return 0


def _cmd_tree(args: argparse.Namespace, user_store: UserStore, service: KanbanService) -> int:
    """Print every workspace the user belongs to, down to individual cards.

    Goes through KanbanService with the user as caller, so the output is
    exactly what that user is allowed to see.
    """
    user = user_store.get_by_email(args.email)
    if user is None:
        print(f"  [!] No user with email '{args.email}'.")
        return 1

    workspaces = service.list_workspaces_for_user(user.id)
    if not workspaces:
        print(f"{user.email} is not a member of any workspace.")
        return 0

    for ws in workspaces:
        role = service.access.role(user.id, ws.id).value
        print(f"{ws.name}  [{role}, {len(ws.members)} member(s)]")
        for board in service.list_boards(ws.id, user.id):
            print(f"  {board.title}")
            for column in service.list_columns(board.id, user.id):
                print(f"    {column.order:>3}  {column.title}")
                for card in service.list_cards(column.id, user.id):
                    tags = f"  #{' #'.join(card.tags)}" if card.tags else ""
                    print(f"           {card.order:>3}  {card.title}{tags}")
    return 0


def _cmd_orphans(args: argparse.Namespace, kanban_store: KanbanStore) -> int:
    """Report boards, columns and cards left behind by non-cascading deletes."""
    counts = kanban_store.count_orphans()
    for kind in ("boards", "columns", "cards"):
        print(f"  {kind:<8} {counts[kind]}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deltask",
        description="Deltask server and administration commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")

    create = sub.add_parser("create-user", help="Create a user account")
    create.add_argument("email")
    create.add_argument("--name", default=None, help="Display name (default: the part of EMAIL before @)")
    create.add_argument("--password", default=None, help="Prompted for when omitted")
    create.add_argument("--admin", action="store_true", help="Grant the admin role")

    sub.add_parser("users", help="List user accounts")

    tree = sub.add_parser("tree", help="Print a user's workspaces, boards, columns and cards")
    tree.add_argument("email")

    sub.add_parser("orphans", help="Count records whose parent was deleted")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0
    if args.command == "serve":
        return _cmd_serve(args)

    settings = get_settings()
    if args.command in ("create-user", "users"):
        user_store = UserStore(db_url=settings.auth_db_url)
        try:
            if args.command == "users":
                return _cmd_users(args, user_store)
            return _cmd_create_user(args, user_store)
        finally:
            user_store.close()

    kanban_store = KanbanStore(db_url=settings.kanban_db_url)
    try:
        if args.command == "orphans":
            return _cmd_orphans(args, kanban_store)
        user_store = UserStore(db_url=settings.auth_db_url)
        try:
            return _cmd_tree(args, user_store, KanbanService(kanban_store))
        finally:
            user_store.close()
    finally:
        kanban_store.close()


if __name__ == "__main__":
    sys.exit(main())
