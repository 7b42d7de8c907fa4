"""
Shared configuration management for the cache proxy.
"""

import math
import re
from typing import Any, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Any) -> float:
    """
    Parse a duration into seconds.

    Numbers are taken as seconds. Strings may be plain numbers or Go-style
    durations such as ``90s``, ``15m``, ``24h`` or ``1h30m``.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return _finite(float(value), value)
    if not isinstance(value, str):
        raise ValueError(f"invalid duration: {value!r}")

    text = value.strip()
    if not text:
        raise ValueError("empty duration")
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        return _finite(seconds, value)

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text) or position == 0:
        raise ValueError(f"invalid duration: {value!r}")
    return _finite(total, value)


def _finite(seconds: float, value: Any) -> float:
    if not math.isfinite(seconds):
        raise ValueError(f"invalid duration: {value!r}")
    return seconds


def parse_listen_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``:port``) into a bindable host and port."""
    host, sep, port_text = address.strip().rpartition(":")
    if not sep:
        raise ValueError(f"listen address must be host:port, got {address!r}")
    host = host.strip("[]") or "0.0.0.0"
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port in listen address {address!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range in listen address {address!r}")
    return host, port


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="PROXY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class ProxyConfig(BaseConfig):
    """Settings for the caching reverse proxy."""

    upstream_base_url: str = Field(default="http://localhost:8080")
    ttl: float = Field(default=24 * 3600.0)
    listen_address: str = Field(default=":8000")
    snapshot_path: str = Field(default="./cache.json")

    save_timeout: float = Field(default=5.0)
    upstream_timeout: float = Field(default=10.0)

    single_flight: bool = Field(default=False)
    sweep_interval: Optional[float] = Field(default=None)
    metrics_port: Optional[int] = Field(default=None)

    @field_validator("upstream_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("ttl", "save_timeout", "upstream_timeout", mode="before")
    @classmethod
    def _parse_required_duration(cls, value: Any) -> float:
        seconds = parse_duration(value)
        if seconds <= 0:
            raise ValueError("duration must be positive")
        return seconds

    @field_validator("sweep_interval", mode="before")
    @classmethod
    def _parse_optional_duration(cls, value: Any) -> Optional[float]:
        if value is None or value == "":
            return None
        seconds = parse_duration(value)
        if seconds <= 0:
            raise ValueError("sweep interval must be positive")
        return seconds

    @field_validator("listen_address")
    @classmethod
    def _validate_listen_address(cls, value: str) -> str:
        parse_listen_address(value)
        return value

    @property
    def host(self) -> str:
        return parse_listen_address(self.listen_address)[0]

    @property
    def port(self) -> int:
        return parse_listen_address(self.listen_address)[1]


def get_config(**overrides: Any) -> ProxyConfig:
    """Load proxy configuration from the environment, applying explicit overrides."""
    values = {key: value for key, value in overrides.items() if value is not None}
    return ProxyConfig(**values)
