#!/usr/bin/env python3
"""
Job portal auth -- operational commands for the session core.

Usage:
  python main.py init-db
  python main.py purge-tokens
  python main.py create-admin --username admin --email admin@example.com

Environment variables (see core/config.py):
  DATABASE_URL          SQLAlchemy URL (default: SQLite file next to this script)
  ACCESS_SECRET_KEY     HS256 key for access tokens (>= 32 chars)
  REFRESH_SECRET_KEY    HS256 key for refresh tokens (>= 32 chars, must differ)
  DEBUG                 true to auto-generate missing keys for local use

purge-tokens is meant for cron. lookup() already ignores expired refresh
tokens, so running it late only costs disk space.
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from auth.errors import AuthError, InvalidInputError
from auth.ledger import RefreshTokenLedger
from auth.service import SessionService
from auth.store import UserStore
from core.config import get_settings
from core.database import Database

logger = logging.getLogger("jobportal.cli")


def _init_db(db: Database, args: argparse.Namespace) -> int:
    UserStore(db)
    RefreshTokenLedger(db)
    print("Schema ready.")
    return 0


def _purge_tokens(db: Database, args: argparse.Namespace) -> int:
    removed = RefreshTokenLedger(db).purge_expired()
    print(f"Purged {removed} expired refresh token(s).")
    return 0


def _read_new_password() -> str:
    password = getpass.getpass("Password: ")
    confirm = getpass.getpass("Confirm password: ")
    if password != confirm:
        raise InvalidInputError("Passwords do not match.")
    return password


def _create_admin(db: Database, args: argparse.Namespace) -> int:
    settings = get_settings()
    sessions = SessionService.from_settings(db, settings)
    admin = sessions.bootstrap_admin(args.username, args.email, _read_new_password())
    print(f"Admin '{admin.username}' created (id={admin.id}).")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobportal-auth",
        description="Operational commands for the job portal authentication core.",
    )
    sub = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    init = sub.add_parser("init-db", help="Create the users and refresh_tokens tables")
    init.set_defaults(handler=_init_db)

    purge = sub.add_parser("purge-tokens", help="Delete expired refresh tokens")
    purge.set_defaults(handler=_purge_tokens)

    admin = sub.add_parser("create-admin", help="Create the first admin account (prompts for a password)")
    admin.add_argument("--username", required=True)
    admin.add_argument("--email", required=True)
    admin.set_defaults(handler=_create_admin)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    with Database(settings.database_url) as db:
        try:
            return args.handler(db, args)
        except AuthError as exc:
            logger.debug("Command %s failed", args.command, exc_info=True)
            print(f"  [!] {exc.message}", file=sys.stderr)
            return 1


if __name__ == "__main__":
    sys.exit(main())
