# tests/unit/config/test_settings.py
from __future__ import annotations

import pytest
from pydantic import ValidationError

from merge_proxy.config.settings import Environment, Settings


def test_settings_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/2")
    monkeypatch.setenv("RETENTION_SECONDS", "120")
    monkeypatch.setenv("PROMOTION_TIMEOUT_S", "5")
    monkeypatch.setenv("PROMOTION_BUDGET_S", "8")
    monkeypatch.setenv("UPSTREAM_ACCEPT_ERROR_BODIES", "true")

    s = Settings(_env_file=None)

    assert s.environment == Environment.TEST
    assert s.redis_url == "redis://cache:6379/2"
    assert s.retention_seconds == 120
    assert s.promotion_timeout_s == 5.0
    assert s.upstream_accept_error_bodies is True


def test_defaults_keep_timeout_inside_budget() -> None:
    s = Settings(_env_file=None)
    assert s.promotion_timeout_s < s.promotion_budget_s
    assert s.upstream_lookup_field == "license"
    assert s.result_media_type == "text/html"


def test_timeout_not_below_budget_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, PROMOTION_TIMEOUT_S=10, PROMOTION_BUDGET_S=10)


def test_cors_origins_are_parsed() -> None:
    s = Settings(_env_file=None, ALLOWED_ORIGINS=" https://a.test, https://b.test ,")
    assert s.cors_allow_origins == ["https://a.test", "https://b.test"]


def test_wildcard_cors_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, ENVIRONMENT="production", ALLOWED_ORIGINS="*")


def test_settings_forbid_extra_fields() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, unexpected_field="boom")
