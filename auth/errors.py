"""
auth/errors.py -- Typed errors surfaced by the session core.

Every error carries a stable machine-readable `code` and a public `message`
that is safe to return to an untrusted client. The routing layer maps codes
to HTTP status codes; it never needs the exception's traceback.

Enumeration rule: InvalidCredentialsError has exactly one message. Callers
must not pass a custom one, so "no such user", "wrong password", and "token
revoked" are indistinguishable from outside.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all errors raised by the auth package."""

    code: str = "auth_error"
    default_message: str = "Authentication failed."
    retryable: bool = False

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Return the error envelope used by the API layer."""
        return {"error": {"code": self.code, "message": self.message}}


class InvalidInputError(AuthError):
    code = "invalid_input"
    default_message = "The request contains invalid data."


class WeakPasswordError(AuthError):
    code = "weak_password"
    default_message = "Password does not meet the minimum requirements."


class DuplicateUserError(AuthError):
    code = "duplicate_user"
    default_message = "An account with that email or username already exists."


class InvalidCredentialsError(AuthError):
    code = "invalid_credentials"
    default_message = "Invalid credentials."

    def __init__(self) -> None:
        super().__init__()


class TokenInvalidError(AuthError):
    code = "token_invalid"
    default_message = "Token is invalid."


class TokenExpiredError(AuthError):
    """The access token was genuine but is past its expiry. Refresh and retry."""

    code = "token_expired"
    default_message = "Token has expired."
    retryable = True


class DuplicateTokenError(AuthError):
    """A freshly minted refresh token collided with a stored one.

    With 256 bits of randomness per token this indicates a broken random
    source, not bad luck. The public message stays generic.
    """

    code = "internal_error"
    default_message = "The request could not be completed."


class PermissionDeniedError(AuthError):
    code = "forbidden"
    default_message = "You are not allowed to perform this action."


class UserNotFoundError(AuthError):
    code = "not_found"
    default_message = "User not found."


class UnknownOwnerError(AuthError):
    """A refresh token was written for a user id that no longer exists.

    Raised by the ledger when an account is deleted between reading the user
    and recording its session. SessionService maps it to
    InvalidCredentialsError; it is not meant to reach a client.
    """

    code = "not_found"
    default_message = "User not found."
