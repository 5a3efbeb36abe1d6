import logging
from datetime import timedelta

import pytest

from nasuha_connect.core.config import Settings, parse_duration, validate_runtime_settings

STRONG_SECRET = "x" * 40


def _settings(**overrides) -> Settings:
    values = dict(app_env="test", jwt_secret=STRONG_SECRET, jwt_expires_in="7d")
    values.update(overrides)
    return Settings(**values)


def test_parse_duration_units():
    assert parse_duration("45s") == timedelta(seconds=45)
    assert parse_duration("30m") == timedelta(minutes=30)
    assert parse_duration("12h") == timedelta(hours=12)
    assert parse_duration("7d") == timedelta(days=7)
    assert parse_duration("2w") == timedelta(weeks=2)
    assert parse_duration("90") == timedelta(seconds=90)


@pytest.mark.parametrize("value", ["", "7x", "-1d", "0h", "d"])
def test_parse_duration_rejects_bad_values(value):
    with pytest.raises(ValueError):
        parse_duration(value)


def test_valid_settings_pass():
    settings = _settings()
    validate_runtime_settings(settings)
    assert settings.token_lifetime == timedelta(days=7)


def test_missing_secret_fails_startup():
    with pytest.raises(RuntimeError, match="JWT_SECRET is required"):
        validate_runtime_settings(_settings(jwt_secret=""))


def test_short_secret_fails_startup():
    with pytest.raises(RuntimeError, match="at least 32"):
        validate_runtime_settings(_settings(jwt_secret="short-secret"))


def test_bad_env_and_duration_fail_startup():
    with pytest.raises(RuntimeError, match="APP_ENV"):
        validate_runtime_settings(_settings(app_env="staging"))
    with pytest.raises(RuntimeError, match="JWT_EXPIRES_IN"):
        validate_runtime_settings(_settings(jwt_expires_in="soon"))


def test_production_warns_on_risky_flags(caplog):
    caplog.set_level(logging.WARNING, logger="config")
    validate_runtime_settings(_settings(app_env="production", rate_limit_enabled=False, auto_create_db=True))
    messages = [rec.getMessage() for rec in caplog.records]
    assert any("RATE_LIMIT_ENABLED" in msg for msg in messages)
    assert any("AUTO_CREATE_DB" in msg for msg in messages)


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("JWT_EXPIRES_IN", "12h")
    monkeypatch.setenv("LOGIN_RATE_LIMIT", "9")
    settings = Settings(jwt_secret=STRONG_SECRET)
    assert settings.token_lifetime == timedelta(hours=12)
    assert settings.login_rate_limit == 9
