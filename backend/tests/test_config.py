"""Tests for configuration validation.

Settings are constructed directly so the module-level settings instance the
application was built with stays untouched.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from app.core.config import Settings

VALID_SECRET = "s" * 32


def _settings(**overrides) -> Settings:
    values = {"jwt_secret_key": VALID_SECRET, "_env_file": None}
    values.update(overrides)
    return Settings(**values)


class TestJwtSecretKeyValidation:
    def test_valid_secret_accepted(self):
        assert _settings().jwt_secret_key == VALID_SECRET

    def test_short_secret_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            _settings(jwt_secret_key="too-short")
        assert "32" in str(exc_info.value)

    def test_missing_secret_rejected_outside_debug(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None, debug=False)
        assert "JWT_SECRET_KEY" in str(exc_info.value)

    def test_missing_secret_generated_in_debug(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
        config = Settings(_env_file=None, debug=True)
        assert len(config.jwt_secret_key) == 64


class TestTokenLifetimes:
    def test_defaults(self):
        config = _settings()
        assert config.access_token_ttl == timedelta(minutes=15)
        assert config.refresh_token_ttl == timedelta(days=7)

    def test_custom_lifetimes(self):
        config = _settings(jwt_access_expires_in="5m", jwt_refresh_expires_in="30d")
        assert config.access_token_ttl == timedelta(minutes=5)
        assert config.refresh_token_ttl == timedelta(days=30)

    def test_invalid_lifetime_rejected(self):
        with pytest.raises(ValidationError):
            _settings(jwt_access_expires_in="forever")

    def test_zero_lifetime_rejected(self):
        with pytest.raises(ValidationError):
            _settings(jwt_refresh_expires_in="0s")

    def test_lifetimes_from_environment(self, monkeypatch):
        monkeypatch.setenv("JWT_ACCESS_EXPIRES_IN", "10m")
        assert _settings().access_token_ttl == timedelta(minutes=10)


class TestDerivedSettings:
    def test_cookies_secure_only_in_production(self):
        assert _settings(environment="development").secure_cookies is False
        assert _settings(environment="production").secure_cookies is True

    def test_cors_origins_list(self):
        config = _settings(cors_origins="http://a.example, http://b.example,")
        assert config.cors_origins_list == ["http://a.example", "http://b.example"]

    def test_invalid_blacklist_backend_rejected(self):
        with pytest.raises(ValidationError):
            _settings(token_blacklist_backend="redis")


class TestSecurityConfigurationWarnings:
    def test_safe_defaults_have_no_warnings(self):
        assert _settings(environment="development").check_security_configuration() == []

    def test_long_access_token_warns(self):
        warnings = _settings(jwt_access_expires_in="2h").check_security_configuration()
        assert any("Access token lifetime" in w for w in warnings)

    def test_access_longer_than_refresh_warns(self):
        warnings = _settings(
            jwt_access_expires_in="30m", jwt_refresh_expires_in="10m"
        ).check_security_configuration()
        assert any("shorter than refresh" in w for w in warnings)

    def test_production_memory_blacklist_warns(self):
        warnings = _settings(environment="production").check_security_configuration()
        assert any("TOKEN_BLACKLIST_BACKEND" in w for w in warnings)

    def test_production_wildcard_cors_warns(self):
        warnings = _settings(
            environment="production",
            cors_origins="*",
            token_blacklist_backend="database",
        ).check_security_configuration()
        assert warnings == ["CORS allows any origin while credentials are enabled"]
