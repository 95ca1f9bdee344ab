"""Client configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any

from .retry import RetryPolicy


DEFAULT_BASE_URL = "https://devserver-logger.elasticdash.com"


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


def _env_bool(name: str, default: bool = False) -> bool:
    return os.environ.get(name, str(default)).lower() in ("1", "true", "yes")


def _default_base_url() -> str:
    # ELASTICDASH_BASEURL is the legacy spelling
    return (
        os.environ.get("ELASTICDASH_BASE_URL")
        or os.environ.get("ELASTICDASH_BASEURL")
        or DEFAULT_BASE_URL
    )


@dataclass
class DispatchConfig:
    """Telemetry dispatch configuration."""
    # Batching
    max_batch_size: int = 15
    flush_interval_seconds: float = field(
        default_factory=lambda: _env_float("ELASTICDASH_FLUSH_INTERVAL", 1.0)
    )

    # Delivery
    max_retries: int = 3
    backoff_base_seconds: float = 0.5
    backoff_max_seconds: float = 10.0
    request_timeout_seconds: float = 5.0

    # Upper bound on shutdown() before undelivered events are reported
    shutdown_timeout_seconds: float = 10.0

    def __post_init__(self):
        if self.max_batch_size < 1:
            raise ValueError("max_batch_size must be >= 1")
        if self.flush_interval_seconds <= 0:
            raise ValueError("flush_interval_seconds must be > 0")

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            backoff_base_seconds=self.backoff_base_seconds,
            backoff_max_seconds=self.backoff_max_seconds,
            timeout_seconds=self.request_timeout_seconds,
        )


@dataclass
class CacheConfig:
    """Prompt cache configuration."""
    default_ttl_seconds: float = 60.0
    # How long a stale entry is kept before retrying a failed refresh
    stale_grace_seconds: float = 5.0

    fetch_max_retries: int = 2
    fetch_backoff_base_seconds: float = 0.5
    fetch_timeout_seconds: float | None = None  # None = client timeout

    def retry_policy(self, default_timeout: float) -> RetryPolicy:
        timeout = self.fetch_timeout_seconds
        return RetryPolicy(
            max_retries=self.fetch_max_retries,
            backoff_base_seconds=self.fetch_backoff_base_seconds,
            timeout_seconds=timeout if timeout is not None else default_timeout,
        )


# Millisecond-based names accepted by from_dict: name -> (section, field, scale)
_MS_ALIASES: dict[str, tuple[str, str, float]] = {
    "maxBatchSize": ("dispatch", "max_batch_size", 1),
    "flushIntervalMs": ("dispatch", "flush_interval_seconds", 0.001),
    "maxRetries": ("dispatch", "max_retries", 1),
    "backoffBaseMs": ("dispatch", "backoff_base_seconds", 0.001),
    "defaultTtlMs": ("cache", "default_ttl_seconds", 0.001),
    "staleGraceMs": ("cache", "stale_grace_seconds", 0.001),
}


@dataclass
class ClientConfig:
    """
    Configuration for the ElasticDash client.

    Can be set via:
    - Constructor arguments
    - Environment variables (ELASTICDASH_*)
    - Config file (YAML or JSON)
    """
    public_key: str | None = field(
        default_factory=lambda: os.environ.get("ELASTICDASH_PUBLIC_KEY")
    )
    secret_key: str | None = field(
        default_factory=lambda: os.environ.get("ELASTICDASH_SECRET_KEY")
    )
    base_url: str = field(default_factory=_default_base_url)

    # Request timeout (seconds)
    timeout: float = field(
        default_factory=lambda: _env_float("ELASTICDASH_TIMEOUT", 5)
    )

    additional_headers: dict[str, str] = field(default_factory=dict)

    # Tag for all scores sent by this client
    environment: str | None = field(
        default_factory=lambda: os.environ.get("ELASTICDASH_TRACING_ENVIRONMENT")
    )

    debug: bool = field(default_factory=lambda: _env_bool("ELASTICDASH_DEBUG"))
    log_level: str = field(
        default_factory=lambda: os.environ.get("ELASTICDASH_LOG_LEVEL", "WARNING")
    )

    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    @classmethod
    def from_dict(cls, data: dict) -> ClientConfig:
        """Create config from dictionary."""
        data = dict(data)
        sections: dict[str, dict[str, Any]] = {
            "dispatch": dict(data.pop("dispatch", {}) or {}),
            "cache": dict(data.pop("cache", {}) or {}),
        }

        for alias, (section, name, scale) in _MS_ALIASES.items():
            if alias in data:
                value = data.pop(alias)
                sections[section][name] = value * scale if scale != 1 else value

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

        return cls(
            dispatch=DispatchConfig(**sections["dispatch"]),
            cache=CacheConfig(**sections["cache"]),
            **data,
        )

    @classmethod
    def from_yaml(cls, path: str) -> ClientConfig:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> ClientConfig:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)
