"""
Configuration for the DID resolver.

Settings are loaded from environment variables with defaults suitable for
development. Aliases are accepted where the same value is commonly configured
under more than one name.
"""

from typing import Literal, Optional

from pydantic import AliasChoices, Field, RedisDsn, field_validator, model_validator
from pydantic_settings import BaseSettings

from social.graze.did.cache import DEFAULT_MAX_TTL, DEFAULT_STALE_TTL
from social.graze.did.methods import DEFAULT_PLC_DIRECTORY, DEFAULT_TIMEOUT_MS


class Settings(BaseSettings):
    """
    Resolver settings.

    Settings are organized into the following categories:
    - Resolution (directory, timeout)
    - Caching (backend, TTLs, negative caching)
    - Monitoring and error reporting
    """

    debug: bool = False
    """
    Enable debug logging of outgoing requests.
    Set with DEBUG=true environment variable.
    """

    plc_directory: str = Field(
        DEFAULT_PLC_DIRECTORY,
        validation_alias=AliasChoices("plc_directory", "plc_url"),
    )
    """
    Base URL of the PLC directory used for did:plc resolution.
    Set with PLC_DIRECTORY or PLC_URL environment variables.
    """

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    """
    Budget in milliseconds for each document fetch.
    Set with TIMEOUT_MS environment variable.
    """

    cache_backend: Literal["memory", "redis", "none"] = "memory"
    """
    Where resolved documents are cached.
    Set with CACHE_BACKEND environment variable.
    """

    cache_stale_ttl: int = DEFAULT_STALE_TTL
    """
    Seconds after which a cached document is served but revalidated in the background.
    Set with CACHE_STALE_TTL environment variable.
    """

    cache_max_ttl: int = DEFAULT_MAX_TTL
    """
    Seconds after which a cached document is no longer served.
    Set with CACHE_MAX_TTL environment variable.
    """

    cache_not_found: bool = True
    """
    Cache "no document" outcomes as tombstones instead of clearing the entry.
    Set with CACHE_NOT_FOUND environment variable.
    """

    redis_dsn: Optional[RedisDsn] = Field(
        None,
        validation_alias=AliasChoices("redis_dsn", "redis_url"),
    )
    """
    Redis connection string, required when CACHE_BACKEND=redis.
    Set with REDIS_DSN or REDIS_URL environment variables.
    """

    redis_key_prefix: str = "did:doc:"
    """Prefix of the Redis keys holding cached documents."""

    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    metrics_backend: Literal["telegraf", "none"] = "none"
    """
    Metrics backend.
    Set with METRICS_BACKEND environment variable.
    """

    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    """
    StatsD/Telegraf host for metrics collection.
    Set with TELEGRAF_HOST environment variable.
    """

    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    """
    StatsD/Telegraf port for metrics collection.
    Set with TELEGRAF_PORT environment variable.
    """

    statsd_prefix: str = "did"
    """Prefix for all StatsD metrics from this service."""

    @field_validator("plc_directory")
    @classmethod
    def validate_plc_directory(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError("plc_directory must be an http(s) URL")
        return v

    @field_validator("timeout_ms", "cache_stale_ttl", "cache_max_ttl")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @model_validator(mode="after")
    def validate_cache(self) -> "Settings":
        if self.cache_stale_ttl > self.cache_max_ttl:
            raise ValueError("cache_stale_ttl must not be greater than cache_max_ttl")
        if self.cache_backend == "redis" and self.redis_dsn is None:
            raise ValueError("redis_dsn is required when cache_backend is redis")
        return self
