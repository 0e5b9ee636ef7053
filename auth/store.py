"""
auth/store.py -- SQLAlchemy Core persistence layer for users (the credential store).

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. SessionService never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  UserStore never hashes and never sees a plaintext password. Callers hand
  it the output of PasswordHasher.hash().

Uniqueness:
  create_user() catches IntegrityError from the UNIQUE indexes and raises
  DuplicateUserError. That is the authoritative check -- two concurrent
  signups for the same email both pass any read-side pre-check, but only one
  insert succeeds.

Layer rule: no imports from outside auth/ and core/.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateUserError
from auth.models import Profile, Role, User
from auth.schema import create_schema, refresh_tokens, users
from core.database import Database


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(db)
        user_id = store.create_user(User(username="alice", email="alice@x.com", password_hash=h))
        user = store.get_by_email("alice@x.com")
    """

    def __init__(self, db: Database) -> None:
        self.engine = db.engine
        create_schema(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises DuplicateUserError if the username or email is already taken.
        """
        now = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    users.insert().values(
                        username=user.username,
                        email=normalize_email(user.email),
                        password_hash=user.password_hash,
                        role=Role(user.role).value,
                        profile=json.dumps(user.profile.to_dict()),
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError as exc:
            raise DuplicateUserError() from exc
        return result.inserted_primary_key[0]

    def replace_password_hash(self, user_id: int, password_hash: str) -> bool:
        """Replace the stored hash and delete every refresh token of the user.

        Both writes share one transaction, so the new password never coexists
        with sessions opened under the old one. Returns False if user_id was
        not found.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                users.update()
                .where(users.c.id == user_id)
                .values(password_hash=password_hash, updated_at=_now_iso())
            )
            conn.execute(refresh_tokens.delete().where(refresh_tokens.c.user_id == user_id))
        return result.rowcount > 0

    def update_role(self, user_id: int, role: Role) -> bool:
        return self._update(user_id, role=Role(role).value)

    def update_profile(self, user_id: int, profile: Profile) -> bool:
        return self._update(user_id, profile=json.dumps(profile.to_dict()))

    def delete_user(self, user_id: int) -> bool:
        """Delete a user. Refresh tokens go with it via ON DELETE CASCADE."""
        with self.engine.begin() as conn:
            result = conn.execute(users.delete().where(users.c.id == user_id))
        return result.rowcount > 0

    def _update(self, user_id: int, **fields) -> bool:
        fields["updated_at"] = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(users.update().where(users.c.id == user_id).values(**fields))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Case-insensitive email lookup. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username(self, username: str) -> User | None:
        """Exact (case-sensitive) username lookup. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def exists(self, email: str, username: str) -> bool:
        """Return True if either the email or the username is taken."""
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count())
                .select_from(users)
                .where((users.c.email == normalize_email(email)) | (users.c.username == username))
            ).scalar()
        return (count or 0) > 0

    def count_admins(self) -> int:
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count()).select_from(users).where(users.c.role == Role.admin.value)
            ).scalar()
        return count or 0


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    raw_profile = json.loads(row.profile) if row.profile else {}
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        role=Role(row.role),
        profile=Profile(
            first_name=raw_profile.get("first_name"),
            last_name=raw_profile.get("last_name"),
            phone=raw_profile.get("phone"),
        ),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
