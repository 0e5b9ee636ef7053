"""Unit tests for core/config.py -- signing-key policy and defaults.

Covers:
- DEBUG mode generates distinct keys
- production mode refuses to start without keys
- short and identical keys are rejected
- defaults: 30-minute access tokens, 7-day refresh tokens, 8-char passwords
"""

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD_ACCESS = "A" * 40
GOOD_REFRESH = "R" * 40


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DEBUG", "ACCESS_SECRET_KEY", "REFRESH_SECRET_KEY", "BCRYPT_ROUNDS"):
        monkeypatch.delenv(name, raising=False)


class TestSecretKeys:
    def test_debug_generates_distinct_keys(self) -> None:
        settings = Settings(debug=True, _env_file=None)
        assert len(settings.access_secret_key) >= 32
        assert len(settings.refresh_secret_key) >= 32
        assert settings.access_secret_key != settings.refresh_secret_key

    def test_production_requires_keys(self) -> None:
        with pytest.raises(ValidationError, match="ACCESS_SECRET_KEY is required"):
            Settings(debug=False, _env_file=None)

    def test_production_requires_refresh_key(self) -> None:
        with pytest.raises(ValidationError, match="REFRESH_SECRET_KEY is required"):
            Settings(debug=False, access_secret_key=GOOD_ACCESS, _env_file=None)

    def test_short_key_rejected(self) -> None:
        with pytest.raises(ValidationError, match="at least 32"):
            Settings(access_secret_key="short", refresh_secret_key=GOOD_REFRESH, _env_file=None)

    def test_identical_keys_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must be different"):
            Settings(access_secret_key=GOOD_ACCESS, refresh_secret_key=GOOD_ACCESS, _env_file=None)

    def test_keys_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ACCESS_SECRET_KEY", GOOD_ACCESS)
        monkeypatch.setenv("REFRESH_SECRET_KEY", GOOD_REFRESH)
        settings = Settings(_env_file=None)
        assert settings.access_secret_key == GOOD_ACCESS
        assert settings.refresh_secret_key == GOOD_REFRESH


class TestDefaults:
    def test_token_lifetimes(self) -> None:
        settings = Settings(debug=True, _env_file=None)
        assert settings.access_token_expire_seconds == 30 * 60
        assert settings.refresh_token_expire_seconds == 7 * 24 * 60 * 60

    def test_password_policy(self) -> None:
        settings = Settings(debug=True, _env_file=None)
        assert settings.min_password_length == 8
        assert settings.bcrypt_rounds == 12

    def test_bcrypt_rounds_range(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BCRYPT_ROUNDS", "3")
        with pytest.raises(ValidationError):
            Settings(debug=True, _env_file=None)
