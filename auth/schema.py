"""
auth/schema.py -- SQLAlchemy Core table definitions for auth entities.

Both tables share one MetaData so the refresh_tokens -> users foreign key
resolves. UserStore and RefreshTokenLedger each call create_schema() on
construction; create_all is idempotent.

Uniqueness lives in the database, not only in code:
  users.username, users.email   UNIQUE -- concurrent signups race on the index,
                                not on a read-then-write check.
  refresh_tokens.token_hash     UNIQUE -- no two records share a token.
"""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("email", String(254), nullable=False, unique=True),  # lower-cased before insert
    Column("password_hash", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default="candidate"),
    Column("profile", Text),  # JSON blob: first_name, last_name, phone
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

refresh_tokens = Table(
    "refresh_tokens",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("token_hash", String(64), nullable=False, unique=True),  # SHA-256 hex
    Column("expires_at", Integer, nullable=False, index=True),  # epoch seconds, UTC
    Column("created_at", String(32), nullable=False),
)


def create_schema(engine: Engine) -> None:
    metadata.create_all(engine)
