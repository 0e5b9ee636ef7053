"""
tests/conftest.py -- Shared fixtures for the session-core tests.

This module provides:
  - db:       an in-memory SQLite Database, fresh per test
  - users / ledger / hasher / issuer: the four collaborators, wired to db
  - sessions: a SessionService built from them
  - file_sessions: the same wiring over a SQLite file in tmp_path, for tests
    that hit the store from several threads

Design: plain sqlite:///:memory: is enough for single-threaded tests --
SQLAlchemy pins one connection per thread for in-memory SQLite, so the schema
created by the store is visible to every later query in the same test.
Thread tests need a real file: each worker gets its own connection, and
SQLite's file locking is what makes rotation atomic across them.

bcrypt runs at 4 rounds (the minimum) so hashing does not dominate runtime.

The DEBUG env var must be set before any core/auth import so get_settings()
auto-generates signing keys instead of raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from datetime import timedelta

# CRITICAL: Set DEBUG before any auth/core import.
os.environ.setdefault("DEBUG", "true")

import pytest

from auth.ledger import RefreshTokenLedger
from auth.passwords import PasswordHasher
from auth.service import SessionService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.database import Database

ACCESS_KEY = "a" * 32 + "-access-signing-key"
REFRESH_KEY = "r" * 32 + "-refresh-signing-key"


def make_issuer(
    access_ttl: timedelta = timedelta(minutes=30),
    refresh_ttl: timedelta = timedelta(days=7),
) -> TokenIssuer:
    return TokenIssuer(ACCESS_KEY, REFRESH_KEY, access_ttl=access_ttl, refresh_ttl=refresh_ttl)


def build_sessions(db: Database, issuer: TokenIssuer | None = None) -> SessionService:
    return SessionService(
        users=UserStore(db),
        ledger=RefreshTokenLedger(db),
        hasher=PasswordHasher(rounds=4),
        issuer=issuer or make_issuer(),
    )


@pytest.fixture
def db() -> Generator[Database, None, None]:
    database = Database("sqlite:///:memory:")
    yield database
    database.close()


@pytest.fixture
def users(db: Database) -> UserStore:
    return UserStore(db)


@pytest.fixture
def ledger(db: Database) -> RefreshTokenLedger:
    return RefreshTokenLedger(db)


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def issuer() -> TokenIssuer:
    return make_issuer()


@pytest.fixture
def sessions(users: UserStore, ledger: RefreshTokenLedger, hasher: PasswordHasher, issuer: TokenIssuer):
    return SessionService(users=users, ledger=ledger, hasher=hasher, issuer=issuer)


@pytest.fixture
def file_sessions(tmp_path) -> Generator[SessionService, None, None]:
    database = Database(f"sqlite:///{tmp_path / 'auth.db'}")
    yield build_sessions(database)
    database.close()
