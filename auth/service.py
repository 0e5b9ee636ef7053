"""
auth/service.py -- Session lifecycle: signup, login, refresh, logout, change-password.

SessionService is the only component that mutates users or refresh tokens.
It takes plain Python values and returns pydantic models from auth/schemas.py,
or raises a typed AuthError from auth/errors.py.

Session state per refresh-token lineage:

    ISSUED -> ACTIVE -> REFRESHED (a new ACTIVE token; the old one is gone)
                     -> REVOKED   (logout, logout-all, password change, account deletion)
                     -> EXPIRED   (past expires_at; the ledger treats it as absent)

Security rules enforced here:
  [S1] Hashing is explicit. Only signup(), change_password() and
       bootstrap_admin() call PasswordHasher.hash(); stores never hash, so
       an unrelated update can never re-hash an existing hash.
  [S2] Enumeration: login() raises the same InvalidCredentialsError for an
       unknown email and a wrong password, and burns a bcrypt verification in
       both cases so timing matches.
  [S3] Rotation: refresh() replaces the presented token through
       RefreshTokenLedger.rotate(), which is atomic. A replayed or
       concurrently reused token fails with InvalidCredentialsError.
  [S4] Password change and account deletion revoke every session of the user.
  [S5] Roles change only through set_role() by an admin. Self-registration
       as admin is refused; the first admin comes from bootstrap_admin().

Logging: user ids only -- never emails, passwords, hashes, or token strings.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pydantic import ValidationError

from auth.errors import (
    AuthError,
    DuplicateTokenError,
    DuplicateUserError,
    InvalidCredentialsError,
    InvalidInputError,
    PermissionDeniedError,
    UnknownOwnerError,
    UserNotFoundError,
    WeakPasswordError,
)
from auth.ledger import RefreshTokenLedger
from auth.models import Profile, Role, User
from auth.passwords import PasswordHasher
from auth.schemas import ProfileIn, Registration, SignupResult, TokenPair, UserPublic
from auth.store import UserStore
from auth.tokens import AccessClaims, IssuedToken, TokenIssuer
from core.config import Settings
from core.database import Database

logger = logging.getLogger("jobportal.auth.service")

ProfileInput = Mapping | Profile | None


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    location = ".".join(str(part) for part in err.get("loc", ())) or "input"
    return f"{location}: {err.get('msg', 'invalid value')}"


class SessionService:
    """Orchestrates the credential store, hasher, issuer, and ledger.

    Usage:
        with Database(settings.database_url) as db:
            sessions = SessionService.from_settings(db, settings)
            result = sessions.signup("alice", "alice@x.com", "Passw0rd!")
            pair = sessions.refresh(result.refresh_token)
    """

    def __init__(
        self,
        users: UserStore,
        ledger: RefreshTokenLedger,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        min_password_length: int = 8,
    ) -> None:
        self.users = users
        self.ledger = ledger
        self.hasher = hasher
        self.issuer = issuer
        self.min_password_length = min_password_length

    @classmethod
    def from_settings(cls, db: Database, settings: Settings) -> SessionService:
        return cls(
            users=UserStore(db),
            ledger=RefreshTokenLedger(db),
            hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
            issuer=TokenIssuer.from_settings(settings),
            min_password_length=settings.min_password_length,
        )

    # ------------------------------------------------------------------
    # Core lifecycle
    # ------------------------------------------------------------------

    def signup(
        self,
        username: str,
        email: str,
        password: str,
        profile: ProfileInput = None,
        role: Role | str = Role.candidate,
    ) -> SignupResult:
        """Register a candidate or recruiter and open their first session.

        Raises InvalidInputError for a malformed username, email, or profile
        or a role of admin; WeakPasswordError if the password is too short;
        DuplicateUserError if the email or username is taken.
        """
        registration = self._validate_registration(username, email, role, profile)
        if registration.role is Role.admin:
            raise InvalidInputError("Admin accounts cannot be self-registered.")
        user = self._create_user(registration, password)
        logger.info("User %s signed up as %s", user.id, user.role.value)

        pair = self._open_session(user)
        return SignupResult(user=UserPublic.from_user(user), **pair.model_dump())

    def login(self, email: str, password: str) -> TokenPair:
        """Open a new session. Existing sessions on other devices stay valid [S2]."""
        user = self.users.get_by_email(email) if email else None
        if user is None:
            self.hasher.verify_dummy(password)
            logger.warning("Login failed: unknown account")
            raise InvalidCredentialsError()
        if not self.hasher.verify(password, user.password_hash):
            logger.warning("Login failed for user %s: wrong password", user.id)
            raise InvalidCredentialsError()
        logger.info("User %s logged in", user.id)
        return self._open_session(user)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new access token and a new refresh token [S3].

        The presented token is consumed. Every failure mode -- bad signature,
        expired, never issued, already rotated, revoked, owner deleted, or a
        lost race with a concurrent refresh -- raises InvalidCredentialsError.
        """
        try:
            claimed_user_id = self.issuer.verify_refresh_token(refresh_token)
        except AuthError as exc:
            logger.warning("Refresh rejected: %s", exc.code)
            raise InvalidCredentialsError() from exc

        record = self.ledger.lookup(refresh_token)
        if record is None or record.user_id != claimed_user_id:
            logger.warning("Refresh rejected for user %s: token not live", claimed_user_id)
            raise InvalidCredentialsError()

        user = self.users.get_by_id(record.user_id)
        if user is None:
            self.ledger.revoke(refresh_token)
            raise InvalidCredentialsError()

        new_refresh = self.issuer.issue_refresh_token(user.id)
        try:
            rotated = self.ledger.rotate(refresh_token, user.id, new_refresh.token, new_refresh.expires_at)
        except DuplicateTokenError:
            logger.critical("Refresh token collision while rotating for user %s", user.id, exc_info=True)
            raise
        except UnknownOwnerError as exc:
            logger.warning("Refresh rejected for user %s: account deleted", user.id)
            raise InvalidCredentialsError() from exc
        if not rotated:
            logger.warning("Refresh rejected for user %s: token already consumed", user.id)
            raise InvalidCredentialsError()

        access = self.issuer.issue_access_token(user.id, user.role)
        logger.info("Rotated refresh token for user %s", user.id)
        return _pair(access, new_refresh)

    def logout(self, refresh_token: str) -> None:
        """Revoke one session. Idempotent: unknown or already revoked tokens are ignored."""
        if not refresh_token:
            return
        self.ledger.revoke(refresh_token)
        logger.info("Session logged out")

    def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        """Re-hash the password and revoke every session of the user [S4]."""
        user = self.users.get_by_id(user_id)
        if user is None or not self.hasher.verify(old_password, user.password_hash):
            logger.warning("Password change rejected for user %s", user_id)
            raise InvalidCredentialsError()
        self._check_password_policy(new_password)
        self.users.replace_password_hash(user.id, self.hasher.hash(new_password))
        logger.info("User %s changed password; all sessions revoked", user.id)

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    def logout_all(self, user_id: int) -> int:
        """Revoke every session of a user. Returns the number of sessions closed."""
        count = self.ledger.revoke_all(user_id)
        logger.info("User %s logged out of all sessions", user_id)
        return count

    def delete_account(self, user_id: int, password: str) -> None:
        """Delete the account after re-confirming the password [S4]."""
        user = self.users.get_by_id(user_id)
        if user is None or not self.hasher.verify(password, user.password_hash):
            raise InvalidCredentialsError()
        self.ledger.revoke_all(user.id)
        self.users.delete_user(user.id)
        logger.info("User %s deleted their account", user.id)

    def set_role(self, actor_id: int, user_id: int, role: Role | str) -> UserPublic:
        """Change a user's role. Admin only [S5].

        An admin cannot change their own role, so the last admin can never
        demote themself out of the system.
        """
        actor = self.users.get_by_id(actor_id)
        if actor is None or actor.role is not Role.admin:
            raise PermissionDeniedError()
        if actor_id == user_id:
            raise PermissionDeniedError("Admins cannot change their own role.")
        try:
            new_role = Role(role)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown role: {role!r}") from exc
        if not self.users.update_role(user_id, new_role):
            raise UserNotFoundError()
        logger.info("Admin %s set role of user %s to %s", actor_id, user_id, new_role.value)
        return self.get_user(user_id)

    def bootstrap_admin(self, username: str, email: str, password: str) -> UserPublic:
        """Create the first admin account. Refused once any admin exists.

        The admin-count check is not atomic. It guards an operator command that
        runs once at install time, not a public endpoint.
        """
        if self.users.count_admins() > 0:
            raise PermissionDeniedError("An admin account already exists.")
        registration = self._validate_registration(username, email, Role.admin, None)
        user = self._create_user(registration, password)
        logger.info("Bootstrapped admin user %s", user.id)
        return UserPublic.from_user(user)

    def get_user(self, user_id: int) -> UserPublic:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return UserPublic.from_user(user)

    def update_profile(self, user_id: int, profile: ProfileInput) -> UserPublic:
        try:
            validated = ProfileIn.model_validate(_profile_mapping(profile))
        except ValidationError as exc:
            raise InvalidInputError(_first_error(exc)) from exc
        if not self.users.update_profile(user_id, validated.to_profile()):
            raise UserNotFoundError()
        return self.get_user(user_id)

    # ------------------------------------------------------------------
    # Authorization and maintenance
    # ------------------------------------------------------------------

    def authenticate(self, access_token: str) -> AccessClaims:
        """Verify an access token for a protected request. No database lookup.

        Raises TokenExpiredError (client should refresh) or TokenInvalidError.
        """
        return self.issuer.verify_access_token(access_token)

    def purge_expired_tokens(self) -> int:
        return self.ledger.purge_expired()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate_registration(self, username, email, role, profile: ProfileInput) -> Registration:
        try:
            return Registration.model_validate(
                {"username": username, "email": email, "role": role, "profile": _profile_mapping(profile)}
            )
        except ValidationError as exc:
            raise InvalidInputError(_first_error(exc)) from exc

    def _check_password_policy(self, password: str) -> None:
        if not password or len(password) < self.min_password_length:
            raise WeakPasswordError(f"Password must be at least {self.min_password_length} characters.")

    def _create_user(self, registration: Registration, password: str) -> User:
        # Policy is checked before hashing; hashing completes before any write.
        self._check_password_policy(password)
        if self.users.exists(registration.email, registration.username):
            raise DuplicateUserError()
        user = User(
            username=registration.username,
            email=registration.email,
            password_hash=self.hasher.hash(password),
            role=registration.role,
            profile=registration.profile.to_profile(),
        )
        user.id = self.users.create_user(user)
        return user

    def _open_session(self, user: User) -> TokenPair:
        access = self.issuer.issue_access_token(user.id, user.role)
        refresh = self.issuer.issue_refresh_token(user.id)
        try:
            self.ledger.store(user.id, refresh.token, refresh.expires_at)
        except DuplicateTokenError:
            logger.critical("Refresh token collision while opening session for user %s", user.id, exc_info=True)
            raise
        except UnknownOwnerError as exc:
            # Account deleted after it was read; indistinguishable from bad credentials [S2].
            logger.warning("Session not opened for user %s: account deleted", user.id)
            raise InvalidCredentialsError() from exc
        return _pair(access, refresh)


def _profile_mapping(profile: ProfileInput) -> dict:
    if profile is None:
        return {}
    if isinstance(profile, Profile):
        return profile.to_dict()
    return dict(profile)


def _pair(access: IssuedToken, refresh: IssuedToken) -> TokenPair:
    return TokenPair(
        access_token=access.token,
        access_expires_at=access.expires_at,
        refresh_token=refresh.token,
        refresh_expires_at=refresh.expires_at,
    )
