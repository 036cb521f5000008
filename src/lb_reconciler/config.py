"""Configuration management with validation.

Configuration is validated at load time so that a bad value fails the
command immediately rather than midway through a lifecycle call.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_CREATE_TIMEOUT_SECONDS = 1200
DEFAULT_DELETE_TIMEOUT_SECONDS = 1200
MIN_TIMEOUT_SECONDS = 1
MAX_TIMEOUT_SECONDS = 24 * 3600

DEFAULT_POLL_INTERVAL_SECONDS = 10
MIN_POLL_INTERVAL_SECONDS = 1
MAX_POLL_INTERVAL_SECONDS = 300

DEFAULT_STATE_DIR = ".lbstate"
DEFAULT_LOG_LEVEL = "INFO"

MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max spec file
MAX_STATE_FILE_SIZE_BYTES = 1024 * 1024

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Config:
    """Configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    # Required fields
    endpoint: str

    # Timing
    create_timeout_seconds: int = DEFAULT_CREATE_TIMEOUT_SECONDS
    delete_timeout_seconds: int = DEFAULT_DELETE_TIMEOUT_SECONDS
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS

    # Paths
    state_dir: Path = field(default_factory=lambda: Path(DEFAULT_STATE_DIR))

    # Logging
    log_level: str = DEFAULT_LOG_LEVEL
    json_logs: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.endpoint:
            errors.append("LB_ENDPOINT is required")
        else:
            parsed = urlparse(self.endpoint)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append(f"LB_ENDPOINT must be an http(s) URL: {self.endpoint}")

        for name, value in (
            ("LB_CREATE_TIMEOUT", self.create_timeout_seconds),
            ("LB_DELETE_TIMEOUT", self.delete_timeout_seconds),
        ):
            if not (MIN_TIMEOUT_SECONDS <= value <= MAX_TIMEOUT_SECONDS):
                errors.append(
                    f"{name} must be between {MIN_TIMEOUT_SECONDS} "
                    f"and {MAX_TIMEOUT_SECONDS} seconds"
                )

        if not (
            MIN_POLL_INTERVAL_SECONDS <= self.poll_interval_seconds <= MAX_POLL_INTERVAL_SECONDS
        ):
            errors.append(
                f"LB_POLL_INTERVAL must be between {MIN_POLL_INTERVAL_SECONDS} "
                f"and {MAX_POLL_INTERVAL_SECONDS} seconds"
            )

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"LB_LOG_LEVEL must be one of {list(VALID_LOG_LEVELS)}: {self.log_level}")

        if self.state_dir.exists() and not self.state_dir.is_dir():
            errors.append(f"LB_STATE_DIR is not a directory: {self.state_dir}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            LB_ENDPOINT: Base URL of the load balancing API (required)
            LB_CREATE_TIMEOUT: Seconds to wait for a create (default: 1200)
            LB_DELETE_TIMEOUT: Seconds to wait for a delete (default: 1200)
            LB_POLL_INTERVAL: Seconds between state polls (default: 10)
            LB_STATE_DIR: Directory for persisted field maps (default: .lbstate)
            LB_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL (default: INFO)
            LB_JSON_LOGS: If "true", log JSON lines to stdout (default: true)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            endpoint=os.environ.get("LB_ENDPOINT", ""),
            create_timeout_seconds=get_int("LB_CREATE_TIMEOUT", DEFAULT_CREATE_TIMEOUT_SECONDS),
            delete_timeout_seconds=get_int("LB_DELETE_TIMEOUT", DEFAULT_DELETE_TIMEOUT_SECONDS),
            poll_interval_seconds=get_int("LB_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS),
            state_dir=Path(os.environ.get("LB_STATE_DIR", DEFAULT_STATE_DIR)),
            log_level=os.environ.get("LB_LOG_LEVEL", DEFAULT_LOG_LEVEL),
            json_logs=get_bool("LB_JSON_LOGS", True),
        )
