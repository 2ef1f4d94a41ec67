#!/usr/bin/env python3
"""
sessionauth admin CLI -- maintenance tasks against the auth database.

Usage:
  python main.py register alice            (password read from the terminal)
  python main.py whoami <token>
  python main.py signout-all alice
  python main.py delete-user alice
  python main.py purge

All commands use the same settings as the web app (DATABASE_URL, Argon2
parameters, session lifetime) via core.config.get_settings().
"""

import argparse
import getpass
import logging
import sys

from auth.errors import StoreError
from auth.models import AuthFailure
from auth.service import AuthService, create_auth_service
from core.config import get_settings

logger = logging.getLogger("sessionauth.cli")


def _read_password() -> str:
    password = getpass.getpass("Password: ")
    if getpass.getpass("Repeat password: ") != password:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return password


def cmd_register(service: AuthService, args: argparse.Namespace) -> int:
    result = service.register(args.username, _read_password())
    if isinstance(result, AuthFailure):
        print(f"  [!] {result.message} ({result.kind.value})")
        return 1
    print(f"  Created user {result.user.username} (id {result.user.id}).")
    return 0


def cmd_whoami(service: AuthService, args: argparse.Namespace) -> int:
    result = service.me(args.token)
    if result.error is not None:
        print("  [!] Session store unavailable.")
        return 1
    if result.user is None:
        print("  No live session for that token.")
        return 1
    print(f"  {result.user.username} (id {result.user.id}), session expires {result.session.expires_at.isoformat()}")
    return 0


def cmd_signout_all(service: AuthService, args: argparse.Namespace) -> int:
    user = service.store.find_user_by_username(args.username)
    if user is None:
        print(f"  [!] No user named '{args.username}'.")
        return 1
    removed = service.engine.invalidate_user_sessions(user.id)
    print(f"  Ended {removed} session(s) for {user.username}.")
    return 0


def cmd_delete_user(service: AuthService, args: argparse.Namespace) -> int:
    user = service.store.find_user_by_username(args.username)
    if user is None:
        print(f"  [!] No user named '{args.username}'.")
        return 1
    service.store.delete_user(user.id)
    print(f"  Deleted {user.username} and all of their sessions.")
    return 0


def cmd_purge(service: AuthService, args: argparse.Namespace) -> int:
    removed = service.engine.purge_expired()
    print(f"  Purged {removed} expired session(s).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="sessionauth -- administer users and sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--database-url",
        default=None,
        metavar="URL",
        help="SQLAlchemy database URL (default: DATABASE_URL from the environment)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log engine activity to stderr",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("register", help="Create a user; prompts for the password")
    p.add_argument("username")
    p.set_defaults(func=cmd_register)

    p = sub.add_parser("whoami", help="Resolve a session token to its user")
    p.add_argument("token")
    p.set_defaults(func=cmd_whoami)

    p = sub.add_parser("signout-all", help="End every session of a user")
    p.add_argument("username")
    p.set_defaults(func=cmd_signout_all)

    p = sub.add_parser("delete-user", help="Delete a user and their sessions")
    p.add_argument("username")
    p.set_defaults(func=cmd_delete_user)

    p = sub.add_parser("purge", help="Delete every expired session now")
    p.set_defaults(func=cmd_purge)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)-5s %(name)s %(message)s",
    )

    settings = get_settings()
    try:
        service = create_auth_service(args.database_url or settings.database_url, settings.auth_config())
    except StoreError as e:
        print(f"  [!] Could not open the auth database: {e}")
        return 1

    try:
        return args.func(service, args)
    except StoreError as e:
        logger.debug("Store failure", exc_info=True)
        print(f"  [!] Database error: {e}")
        return 1
    finally:
        service.store.close()


if __name__ == "__main__":
    sys.exit(main())
