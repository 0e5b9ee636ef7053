"""
core/database.py -- Explicitly constructed database handle.

There is no module-level engine. The process entry point builds one
Database, passes it to every store, and closes it on shutdown:

    db = Database(settings.database_url)
    users = UserStore(db)
    ...
    db.close()

Database is also a context manager, which is how the CLI and the tests use it.

SQLite specifics (set per connection because PRAGMAs are not inherited by new
connections from the pool):
  journal_mode=WAL   readers do not block behind a writer.
  foreign_keys=ON    SQLite ignores FOREIGN KEY clauses unless asked; the
                     refresh_tokens -> users cascade depends on it.

Layer rule: core/ is the kernel. This module may not import from auth/.
"""

from __future__ import annotations

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

logger = logging.getLogger("jobportal.db")


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the SQLAlchemy engine shared by UserStore and RefreshTokenLedger."""

    def __init__(self, url: str) -> None:
        self.url = url
        connect_args: dict = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(url, connect_args=connect_args)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        logger.info("Database engine created (dialect=%s)", self.engine.dialect.name)

    def close(self) -> None:
        self.engine.dispose()
        logger.info("Database engine disposed")

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
