"""
Aizu Python SDK - Configuration

This module contains the configuration class, defaults and limits for the
event pipeline. Durations given in milliseconds follow the collection API's
conventions.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import httpx

from aizu.exceptions import ConfigurationError


PUBLISHABLE_KEY_PREFIX = "pk_"

API_KEY_ENV_VAR = "AIZU_PUBLISHABLE_KEY"
API_URL_ENV_VAR = "AIZU_API_URL"


@dataclass
class AizuConfig:
    """
    Configuration for the Aizu pipeline.

    Attributes:
        api_key: Publishable key, must start with ``pk_``
        api_url: Absolute base URL of the collection API
        auto_track_pageviews: Consumed by host instrumentation, not the pipeline
        auto_track_clicks: Consumed by host instrumentation, not the pipeline
        debug: Enable debug logging
        session_timeout: Session inactivity window in milliseconds
        batch_size: Number of queued events that triggers a send
        flush_interval: Period of the background flush in milliseconds
        enable_batching: Queue events instead of sending each one
        timeout: HTTP request timeout in seconds
        max_retries: Retries after the first failed attempt
        retry_base_delay: First retry delay in milliseconds
        retry_max_delay: Upper bound for a retry delay in milliseconds
    """
    api_key: str
    api_url: str
    auto_track_pageviews: bool = True
    auto_track_clicks: bool = False
    debug: bool = False
    session_timeout: int = 30 * 60 * 1000
    batch_size: int = 20
    flush_interval: int = 1000
    enable_batching: bool = True
    timeout: float = 10.0
    max_retries: int = 3
    retry_base_delay: int = 1000
    retry_max_delay: int = 30000

    @classmethod
    def from_env(cls, **overrides) -> "AizuConfig":
        """Build a configuration from AIZU_* environment variables.

        Explicit keyword arguments take precedence over the environment.
        """
        overrides.setdefault("api_key", os.environ.get(API_KEY_ENV_VAR, ""))
        overrides.setdefault("api_url", os.environ.get(API_URL_ENV_VAR, ""))
        return cls(**overrides)

    def validate(self) -> None:
        """
        Check the configuration eagerly.

        Raises:
            ConfigurationError: On the first invalid field
        """
        if not self.api_key:
            raise ConfigurationError("Aizu API key is required.")
        if not self.api_key.startswith(PUBLISHABLE_KEY_PREFIX):
            raise ConfigurationError(
                'Invalid API key format. Publishable keys should start with "pk_".'
            )

        if not self.api_url:
            raise ConfigurationError("Aizu API URL is required.")
        if not _is_absolute_url(self.api_url):
            raise ConfigurationError("Invalid API URL format.")

        for name in ("session_timeout", "batch_size", "flush_interval"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be a positive integer.")
        for name in ("max_retries", "retry_base_delay", "retry_max_delay"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative.")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive.")

    @property
    def base_url(self) -> str:
        return self.api_url.rstrip("/")


def _is_absolute_url(value: str) -> bool:
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError):
        return False
    return url.scheme in ("http", "https") and bool(url.host)


# Endpoints
class Endpoints:
    """API endpoint paths."""

    SETTINGS = "/v1/settings"
    EVENTS = "/v1/events"


# Sanitization and batching limits
class Limits:
    """Pipeline limits and constraints."""

    # Properties
    MAX_CUSTOM_PROPERTIES = 100
    MAX_STRING_LENGTH = 1000
    MAX_URL_LENGTH = 2048

    # Batches
    MAX_EVENTS_PER_REQUEST = 1000

    # Pageviews for the same URL inside this window are dropped
    PAGEVIEW_DEDUP_SECONDS = 3.0

