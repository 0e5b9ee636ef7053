"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores do the
persistence work; SessionService does the business rules.

Layer rule: no imports from outside the standard library.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    candidate = "candidate"
    recruiter = "recruiter"
    admin = "admin"


@dataclass
class Profile:
    """Optional personal details. No invariants beyond type."""

    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None

    @property
    def full_name(self) -> str:
        """First and last name joined by a space; empty string if neither is set."""
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def to_dict(self) -> dict:
        return {"first_name": self.first_name, "last_name": self.last_name, "phone": self.phone}


@dataclass
class User:
    """A registered account.

    password_hash is always the output of PasswordHasher.hash(). Nothing in
    the auth package assigns a plaintext value to it.
    """

    username: str
    email: str  # stored lower-cased
    password_hash: str
    role: Role = Role.candidate
    profile: Profile = field(default_factory=Profile)
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class RefreshTokenRecord:
    """One live session. token_hash is SHA-256 of the raw token; the raw value is never stored."""

    user_id: int
    token_hash: str
    expires_at: datetime  # timezone-aware UTC
    id: int | None = None
    created_at: str | None = None
