"""
auth/ledger.py -- Refresh-token ledger: the persisted set of live sessions.

Pattern: Repository + Data Mapper, same as auth/store.py.

Storage:
  Only SHA-256(token) is persisted. A leaked database does not hand out
  usable refresh tokens. SHA-256 rather than bcrypt: refresh tokens carry
  256 bits of randomness, so a fast deterministic digest is safe and keeps
  lookup an indexed equality match.

Expiry:
  lookup() treats rows past expires_at as absent and deletes them on the way
  out (lazy purge). purge_expired() removes the rest in bulk; the CLI runs it
  from cron.

Atomic rotation:
  rotate() runs the conditional DELETE of the old token and the INSERT of the
  new one in a single transaction. The DELETE is the first statement, so the
  transaction takes the write lock before reading anything. Of two
  concurrent rotations of the same token, exactly one deletes a row; the
  other sees rowcount 0 and writes nothing. If the INSERT fails the DELETE is
  rolled back with it, so a crash can never leave both tokens valid.

Additive writes:
  store() only ever inserts. Concurrent logins of the same user produce one
  row each; nothing is replaced by user.

Owner check:
  Every insert is an INSERT ... SELECT guarded by EXISTS on the owning user.
  A user deleted concurrently yields UnknownOwnerError instead of a
  foreign-key failure. Any IntegrityError that still escapes is classified by
  re-reading the owner, never by parsing the driver message.

Layer rule: no imports from outside auth/ and core/.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone

from sqlalchemy import func, literal, select
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateTokenError, UnknownOwnerError
from auth.models import RefreshTokenRecord
from auth.schema import create_schema, refresh_tokens, users
from core.database import Database

logger = logging.getLogger("jobportal.auth.ledger")


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _epoch(moment: datetime) -> int:
    return int(moment.timestamp())


def _now_epoch() -> int:
    return _epoch(datetime.now(timezone.utc))


class RefreshTokenLedger:
    """Repository for RefreshTokenRecord entities."""

    def __init__(self, db: Database) -> None:
        self.engine = db.engine
        create_schema(self.engine)

    def store(self, user_id: int, token: str, expires_at: datetime) -> RefreshTokenRecord:
        """Record a newly issued refresh token.

        Raises DuplicateTokenError if the token is already recorded and
        UnknownOwnerError if user_id does not reference an existing user.
        """
        record = RefreshTokenRecord(user_id=user_id, token_hash=hash_token(token), expires_at=expires_at)
        try:
            with self.engine.begin() as conn:
                record.id = self._insert(conn, record)
        except IntegrityError as exc:
            raise self._classify_integrity_error(user_id) from exc
        return record

    def lookup(self, token: str) -> RefreshTokenRecord | None:
        """Return the live record for token, or None if unknown, revoked, or expired."""
        token_hash = hash_token(token)
        with self.engine.connect() as conn:
            row = conn.execute(refresh_tokens.select().where(refresh_tokens.c.token_hash == token_hash)).fetchone()
        if row is None:
            return None
        if row.expires_at <= _now_epoch():
            self._delete_hash(token_hash)
            return None
        return _row_to_record(row)

    def revoke(self, token: str) -> None:
        """Delete the record for token. Idempotent: unknown tokens are ignored."""
        self._delete_hash(hash_token(token))

    def revoke_all(self, user_id: int) -> int:
        """Delete every refresh token owned by user_id. Returns the number removed."""
        with self.engine.begin() as conn:
            result = conn.execute(refresh_tokens.delete().where(refresh_tokens.c.user_id == user_id))
        logger.info("Revoked %d refresh token(s) for user %s", result.rowcount, user_id)
        return result.rowcount

    def rotate(self, old_token: str, user_id: int, new_token: str, new_expires_at: datetime) -> bool:
        """Atomically replace old_token with new_token.

        Returns False, writing nothing, if old_token is no longer live for
        user_id (already rotated, revoked, or expired). Raises
        DuplicateTokenError if new_token collides and UnknownOwnerError if the
        user is gone; either way the whole transaction rolls back and the old
        token stays as it was.
        """
        new_record = RefreshTokenRecord(
            user_id=user_id, token_hash=hash_token(new_token), expires_at=new_expires_at
        )
        try:
            with self.engine.begin() as conn:
                deleted = conn.execute(
                    refresh_tokens.delete().where(
                        (refresh_tokens.c.token_hash == hash_token(old_token))
                        & (refresh_tokens.c.user_id == user_id)
                        & (refresh_tokens.c.expires_at > _now_epoch())
                    )
                )
                if deleted.rowcount != 1:
                    return False
                self._insert(conn, new_record)
        except IntegrityError as exc:
            raise self._classify_integrity_error(user_id) from exc
        return True

    def purge_expired(self) -> int:
        """Delete all expired records. Returns number of rows removed."""
        with self.engine.begin() as conn:
            result = conn.execute(refresh_tokens.delete().where(refresh_tokens.c.expires_at <= _now_epoch()))
        if result.rowcount:
            logger.info("Purged %d expired refresh token(s)", result.rowcount)
        return result.rowcount

    def count_active(self, user_id: int) -> int:
        """Number of live (unexpired) sessions for a user."""
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count())
                .select_from(refresh_tokens)
                .where((refresh_tokens.c.user_id == user_id) & (refresh_tokens.c.expires_at > _now_epoch()))
            ).scalar()
        return count or 0

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _insert(conn, record: RefreshTokenRecord) -> int:
        # INSERT ... SELECT ... WHERE EXISTS: the owner check and the write are
        # one statement, so no other transaction can delete the user between them.
        record.created_at = datetime.now(timezone.utc).isoformat()
        owner_exists = select(users.c.id).where(users.c.id == record.user_id).exists()
        source = select(
            literal(record.user_id),
            literal(record.token_hash),
            literal(_epoch(record.expires_at)),
            literal(record.created_at),
        ).where(owner_exists)
        result = conn.execute(
            refresh_tokens.insert().from_select(["user_id", "token_hash", "expires_at", "created_at"], source)
        )
        if result.rowcount != 1:
            raise UnknownOwnerError()
        return conn.execute(
            select(refresh_tokens.c.id).where(refresh_tokens.c.token_hash == record.token_hash)
        ).scalar_one()

    def _classify_integrity_error(self, user_id: int) -> Exception:
        # Decided from database state, not driver message text. With the owner
        # present, the only remaining constraint is UNIQUE(token_hash).
        with self.engine.connect() as conn:
            owner = conn.execute(select(users.c.id).where(users.c.id == user_id)).fetchone()
        if owner is None:
            return UnknownOwnerError()
        return DuplicateTokenError()

    def _delete_hash(self, token_hash: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(refresh_tokens.delete().where(refresh_tokens.c.token_hash == token_hash))


def _row_to_record(row) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=row.id,
        user_id=row.user_id,
        token_hash=row.token_hash,
        expires_at=datetime.fromtimestamp(row.expires_at, tz=timezone.utc),
        created_at=row.created_at,
    )
