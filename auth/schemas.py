"""
auth/schemas.py -- Pydantic v2 models for SessionService input and output.

These define the contract with the routing layer. They are intentionally
separate from the dataclasses in auth/models.py, which own the internal
domain representation. SessionService maps between the two.

Input models validate shape only. Password strength is not a schema concern
-- SessionService checks it and raises WeakPasswordError, which the routing
layer reports differently from a malformed request.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Profile, Role, User

# Deliberately loose: one "@", no whitespace, a dot in the domain. Deliverability
# is the email-verification flow's problem, not the validator's.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"


# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------


class ProfileIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32, pattern=r"^\+?[0-9 ()-]{3,32}$")

    def to_profile(self) -> Profile:
        return Profile(first_name=self.first_name, last_name=self.last_name, phone=self.phone)


class Registration(BaseModel):
    """Identity fields of a signup request (everything except the password)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: str = Field(max_length=254, pattern=EMAIL_PATTERN)
    role: Role = Role.candidate
    profile: ProfileIn = Field(default_factory=ProfileIn)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("profile", mode="before")
    @classmethod
    def default_profile(cls, value):
        return {} if value is None else value


# ---------------------------------------------------------------------------
# Output models
# ---------------------------------------------------------------------------


class ProfileOut(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    full_name: str = ""


class UserPublic(BaseModel):
    """A user as the outside world may see it. Never carries the password hash."""

    id: int
    username: str
    email: str
    role: Role
    profile: ProfileOut

    @classmethod
    def from_user(cls, user: User) -> UserPublic:
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            profile=ProfileOut(
                first_name=user.profile.first_name,
                last_name=user.profile.last_name,
                phone=user.profile.phone,
                full_name=user.profile.full_name,
            ),
        )


class TokenPair(BaseModel):
    access_token: str
    access_expires_at: datetime
    refresh_token: str
    refresh_expires_at: datetime
    token_type: str = "bearer"


class SignupResult(TokenPair):
    user: UserPublic
