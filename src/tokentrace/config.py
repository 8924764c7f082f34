# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""TokenTrace SDK configuration.

Configuration is read from TOKENTRACE_* environment variables or passed
explicitly. Values are validated once, when the config object is built.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


class ConfigError(ValueError):
    """Raised when a TokenTraceConfig holds an unusable value."""


def _env(key: str, default: str = "") -> str:
    """Read an environment variable with a default."""
    return os.environ.get(key, default)


def _env_bool(key: str, default: bool = True) -> bool:
    """Read a boolean environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int = 0) -> int:
    """Read an integer environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _env_float(key: str, default: float = 0.0) -> float:
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        return default


@dataclass(frozen=True)
class TokenTraceConfig:
    """Immutable SDK configuration.

    Attributes:
        endpoint: Base URL of the ingest server. Batches go to
            ``{endpoint}/v1/ingest/batch`` and ``{endpoint}/v1/traces/batch``.
        project_key: Project API key. Used as the signing secret and sent as
            the X-Project-Key header.
        secret: Legacy signing secret, only used when project_key is empty.
        source: Event source tag (``api``, ``ios`` or ``android``).
        environment: Deployment environment tagged on error events.
        release: Release identifier tagged on error events.
        max_buffer_size: Pending error events that trigger an immediate flush.
        flush_interval_ms: Milliseconds between periodic flushes.
        timeout_s: HTTP request timeout in seconds.
        log_level: Python logging level name for the ``tokentrace`` logger.
        debug: Enable verbose stderr logging for SDK internals.
    """

    endpoint: str = "http://localhost:5332"
    project_key: str = ""
    secret: str = ""
    source: str = "api"
    environment: str = "production"
    release: str = ""
    max_buffer_size: int = 20
    flush_interval_ms: int = 5000
    timeout_s: float = 10.0
    log_level: str = "INFO"
    debug: bool = False

    def __post_init__(self) -> None:
        if not self.endpoint:
            raise ConfigError("endpoint must not be empty")
        if self.max_buffer_size <= 0:
            raise ConfigError(f"max_buffer_size must be positive, got {self.max_buffer_size}")
        if self.flush_interval_ms <= 0:
            raise ConfigError(
                f"flush_interval_ms must be positive, got {self.flush_interval_ms}"
            )
        if self.timeout_s <= 0:
            raise ConfigError(f"timeout_s must be positive, got {self.timeout_s}")
        # Normalized once so endpoint paths can be appended verbatim
        object.__setattr__(self, "endpoint", self.endpoint.rstrip("/"))

    @property
    def signing_secret(self) -> str:
        """The secret batches are signed with: project key, else legacy secret."""
        return self.project_key or self.secret

    @property
    def flush_interval_s(self) -> float:
        return self.flush_interval_ms / 1000.0

    @classmethod
    def from_env(cls) -> TokenTraceConfig:
        """Create a config by reading TOKENTRACE_* environment variables.

        Environment Variables:
            TOKENTRACE_ENDPOINT: Default "http://localhost:5332".
            TOKENTRACE_PROJECT_KEY: Project API key.
            TOKENTRACE_SECRET: Legacy signing secret.
            TOKENTRACE_SOURCE: Default "api".
            TOKENTRACE_ENVIRONMENT: Default "production".
            TOKENTRACE_RELEASE: Default "".
            TOKENTRACE_MAX_BUFFER_SIZE: Default 20.
            TOKENTRACE_FLUSH_INTERVAL: Default 5000 (milliseconds).
            TOKENTRACE_TIMEOUT: Default 10 (seconds).
            TOKENTRACE_LOG_LEVEL: Default "INFO".
            TOKENTRACE_DEBUG: Default "false".
        """
        return cls(
            endpoint=_env("TOKENTRACE_ENDPOINT", "http://localhost:5332"),
            project_key=_env("TOKENTRACE_PROJECT_KEY", ""),
            secret=_env("TOKENTRACE_SECRET", ""),
            source=_env("TOKENTRACE_SOURCE", "api"),
            environment=_env("TOKENTRACE_ENVIRONMENT", "production"),
            release=_env("TOKENTRACE_RELEASE", ""),
            max_buffer_size=_env_int("TOKENTRACE_MAX_BUFFER_SIZE", 20),
            flush_interval_ms=_env_int("TOKENTRACE_FLUSH_INTERVAL", 5000),
            timeout_s=_env_float("TOKENTRACE_TIMEOUT", 10.0),
            log_level=_env("TOKENTRACE_LOG_LEVEL", "INFO"),
            debug=_env_bool("TOKENTRACE_DEBUG", False),
        )


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_config: TokenTraceConfig | None = None


def get_config() -> TokenTraceConfig:
    """Return the global TokenTraceConfig singleton (lazy-initialized from env)."""
    global _config
    if _config is None:
        _config = TokenTraceConfig.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config singleton. Primarily useful for testing."""
    global _config
    _config = None
