"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_secret_key -> ACCESS_SECRET_KEY). Type coercion and range
      checks are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode (DEBUG=true) generates missing signing keys with a
      warning; production mode refuses to start without them.

Security notes:
  [K1] Signing keys shorter than 32 chars are rejected outright. HS256 relies
       on key entropy -- a short key makes offline forgery practical.

  [K2] ACCESS_SECRET_KEY and REFRESH_SECRET_KEY must differ. A refresh token
       must never verify as an access token (and vice versa), and leaking one
       key must not let an attacker mint the other kind of token.

Layer rule: core/ is the kernel. This module may not import from auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("jobportal.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'jobportal_auth.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    access_secret_key: str = ""
    refresh_secret_key: str = ""
    access_token_expire_seconds: int = Field(default=30 * 60, gt=0)
    refresh_token_expire_seconds: int = Field(default=7 * 24 * 60 * 60, gt=0)

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    # bcrypt accepts 4..31; each step doubles the cost.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    min_password_length: int = Field(default=8, ge=1)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_keys(self) -> "Settings":
        """Enforce the signing-key policy [K1][K2].

        Dev mode (DEBUG=true): auto-generate any missing key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if either key is missing.
        """
        for field_name in ("access_secret_key", "refresh_secret_key"):
            value = getattr(self, field_name)
            env_name = field_name.upper()
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{env_name} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                value = secrets.token_hex(32)
                setattr(self, field_name, value)
                logger.warning("Using auto-generated %s. Sessions will not persist across restarts.", env_name)
            if len(value) < 32:
                raise ValueError(f"{env_name} must be at least 32 characters.")
        if self.access_secret_key == self.refresh_secret_key:
            raise ValueError("ACCESS_SECRET_KEY and REFRESH_SECRET_KEY must be different.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
