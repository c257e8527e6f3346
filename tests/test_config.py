from __future__ import annotations

import pytest

from relay.config import Settings, load_settings

_VARS = (
    "PORT",
    "APP_VERSION",
    "RELAY_KEY_TTL_SECONDS",
    "RELAY_SWEEP_INTERVAL_SECONDS",
    "RELAY_UPSTREAM_TIMEOUT",
    "RELAY_RATE_LIMIT_MAX",
    "RELAY_STRICT_PROPERTIES",
    "RELAY_MARKETPLACE_URL",
    "RELAY_UPLOAD_URL",
    "RELAY_ASSET_DELIVERY_URL",
    "RELAY_RATE_LIMIT_WINDOW_SECONDS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    assert load_settings() == Settings()
    s = Settings()
    assert s.port == 10000
    assert s.key_ttl_seconds == 1800
    assert s.sweep_interval_seconds == 300
    assert s.rate_limit_max == 100
    assert s.strict_properties is False


def test_overrides(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("RELAY_KEY_TTL_SECONDS", "60")
    monkeypatch.setenv("RELAY_UPSTREAM_TIMEOUT", "2.5")
    monkeypatch.setenv("RELAY_RATE_LIMIT_MAX", "0")
    monkeypatch.setenv("RELAY_STRICT_PROPERTIES", "yes")
    monkeypatch.setenv("RELAY_MARKETPLACE_URL", "https://example.test/lib/")
    s = load_settings()
    assert s.port == 8080
    assert s.key_ttl_seconds == 60
    assert s.upstream_timeout == 2.5
    assert s.rate_limit_max == 0
    assert s.strict_properties is True
    assert s.marketplace_url == "https://example.test/lib/"


@pytest.mark.parametrize(
    "name, value",
    [
        ("PORT", "http"),
        ("PORT", "0"),
        ("RELAY_KEY_TTL_SECONDS", "-5"),
        ("RELAY_UPSTREAM_TIMEOUT", "0"),
        ("RELAY_STRICT_PROPERTIES", "maybe"),
    ],
)
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        load_settings()
