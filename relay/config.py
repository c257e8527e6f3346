"""Runtime settings read from the environment.

Every knob has a default matching the production deployment, so an empty
environment yields a working relay. Invalid values fail fast at startup.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

__all__ = ["Settings", "load_settings"]

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _int_from_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        val = int(raw, 10)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer") from e
    if val < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return val


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        val = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number") from e
    if val <= 0:
        raise ValueError(f"{name} must be > 0")
    return val


def _bool_from_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    val = raw.strip().lower()
    if val in _TRUTHY:
        return True
    if val in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean")


@dataclass(frozen=True)
class Settings:
    port: int = 10000
    version: str = "1.0.0"
    key_ttl_seconds: int = 1800
    sweep_interval_seconds: float = 300.0
    upstream_timeout: float = 30.0
    upload_url: str = "https://data.roblox.com/Data/Upload.ashx"
    asset_delivery_url: str = "https://assetdelivery.roblox.com/v1/asset/"
    marketplace_url: str = "https://www.roblox.com/library/"
    rate_limit_max: int = 100
    rate_limit_window_seconds: float = 900.0
    strict_properties: bool = False


def load_settings() -> Settings:
    """Build `Settings` from the current environment."""
    d = Settings()
    return Settings(
        port=_int_from_env("PORT", d.port, minimum=1),
        version=os.getenv("APP_VERSION", d.version),
        key_ttl_seconds=_int_from_env("RELAY_KEY_TTL_SECONDS", d.key_ttl_seconds, minimum=1),
        sweep_interval_seconds=_float_from_env(
            "RELAY_SWEEP_INTERVAL_SECONDS", d.sweep_interval_seconds
        ),
        upstream_timeout=_float_from_env("RELAY_UPSTREAM_TIMEOUT", d.upstream_timeout),
        upload_url=os.getenv("RELAY_UPLOAD_URL", d.upload_url),
        asset_delivery_url=os.getenv("RELAY_ASSET_DELIVERY_URL", d.asset_delivery_url),
        marketplace_url=os.getenv("RELAY_MARKETPLACE_URL", d.marketplace_url),
        rate_limit_max=_int_from_env("RELAY_RATE_LIMIT_MAX", d.rate_limit_max),
        rate_limit_window_seconds=_float_from_env(
            "RELAY_RATE_LIMIT_WINDOW_SECONDS", d.rate_limit_window_seconds
        ),
        strict_properties=_bool_from_env("RELAY_STRICT_PROPERTIES", d.strict_properties),
    )
