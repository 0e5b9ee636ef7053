"""
auth/tokens.py -- JWT issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Two signing keys -- one for access tokens, one
       for refresh tokens [K2]. A refresh token presented as an access token
       (or the reverse) fails signature verification before any claim is read,
       and the `typ` claim is checked as a second guard.

  Access tokens carry sub (user id as string), role, typ, iat, exp. They are
       verified without a database lookup.

  Refresh tokens carry sub, typ, iat, exp and a 256-bit random jti, so two
       tokens minted for the same user in the same second still differ. They
       are also recorded in the RefreshTokenLedger; a valid signature alone is
       never enough to refresh.

  Errors: expiry and invalidity are distinct exceptions. TokenExpiredError is
       retryable (the client refreshes); TokenInvalidError is not.

Layer rule: no imports from outside auth/ and core/.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import TokenExpiredError, TokenInvalidError
from auth.models import Role
from core.config import Settings

_ALGORITHM = "HS256"
_ACCESS = "access"
_REFRESH = "refresh"


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime  # timezone-aware UTC


@dataclass(frozen=True)
class AccessClaims:
    user_id: int
    role: Role


class TokenIssuer:
    """Mints and verifies access and refresh tokens. Pure computation, no I/O.

    Usage:
        issuer = TokenIssuer.from_settings(get_settings())
        access = issuer.issue_access_token(user.id, user.role)
        claims = issuer.verify_access_token(access.token)
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=30),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh tokens must be signed with different keys.")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenIssuer:
        return cls(
            access_secret=settings.access_secret_key,
            refresh_secret=settings.refresh_secret_key,
            access_ttl=timedelta(seconds=settings.access_token_expire_seconds),
            refresh_ttl=timedelta(seconds=settings.refresh_token_expire_seconds),
        )

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_access_token(self, user_id: int, role: Role | str) -> IssuedToken:
        now = datetime.now(timezone.utc)
        expires_at = now + self.access_ttl
        payload = {
            "sub": str(user_id),
            "role": Role(role).value,
            "typ": _ACCESS,
            "iat": now,
            "exp": expires_at,
        }
        return IssuedToken(jwt.encode(payload, self._access_secret, algorithm=_ALGORITHM), expires_at)

    def issue_refresh_token(self, user_id: int) -> IssuedToken:
        now = datetime.now(timezone.utc)
        expires_at = now + self.refresh_ttl
        payload = {
            "sub": str(user_id),
            "typ": _REFRESH,
            "jti": secrets.token_urlsafe(32),
            "iat": now,
            "exp": expires_at,
        }
        return IssuedToken(jwt.encode(payload, self._refresh_secret, algorithm=_ALGORITHM), expires_at)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_access_token(self, token: str) -> AccessClaims:
        """Return the identity carried by an access token.

        Raises TokenExpiredError if the token is genuine but expired, and
        TokenInvalidError for anything else (bad signature, wrong key, wrong
        typ, malformed claims).
        """
        payload = self._decode(token, self._access_secret, _ACCESS)
        try:
            return AccessClaims(user_id=int(payload["sub"]), role=Role(payload["role"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenInvalidError() from exc

    def verify_refresh_token(self, token: str) -> int:
        """Return the user id a refresh token was issued to. Same errors as verify_access_token()."""
        payload = self._decode(token, self._refresh_secret, _REFRESH)
        try:
            return int(payload["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenInvalidError() from exc

    @staticmethod
    def _decode(token: str, secret: str, expected_typ: str) -> dict:
        if not token:
            raise TokenInvalidError()
        try:
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            # Subclass of JWTError -- must be caught first.
            raise TokenExpiredError() from exc
        except JWTError as exc:
            raise TokenInvalidError() from exc
        if payload.get("typ") != expected_typ:
            raise TokenInvalidError()
        return payload
