"""Sync engine configuration.

All settings can be overridden via environment variables with the
FIELDSYNC_ prefix (see SyncConfig.from_env).
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List
from urllib.parse import urlsplit

from . import constants
from .core.errors import ConfigError


def _join(base: str, path: str) -> str:
    return base.rstrip("/") + "/" + path.lstrip("/")


@dataclass
class SyncConfig:
    """Offline sync engine configuration."""

    # Remote API
    api_base_url: str = constants.DEFAULT_API_BASE_URL
    records_path: str = constants.DEFAULT_RECORDS_PATH
    health_path: str = constants.DEFAULT_HEALTH_PATH  # empty -> TCP probe

    # Static shell
    app_base_url: str = constants.DEFAULT_APP_BASE_URL
    precache_paths: List[str] = field(
        default_factory=lambda: list(constants.DEFAULT_PRECACHE_PATHS)
    )
    shell_path: str = constants.DEFAULT_SHELL_PATH

    # Local storage
    data_dir: Path = constants.DEFAULT_DATA_DIR
    queue_max_bytes: int = constants.DEFAULT_QUEUE_MAX_BYTES
    cache_prefix: str = constants.DEFAULT_CACHE_PREFIX
    cache_version: str = constants.DEFAULT_CACHE_VERSION

    # Timing (seconds)
    request_timeout: float = constants.DEFAULT_REQUEST_TIMEOUT_S
    poll_interval: float = constants.DEFAULT_POLL_INTERVAL_S
    sync_interval: float = constants.DEFAULT_SYNC_INTERVAL_S

    # Replay
    stuck_after_attempts: int = constants.DEFAULT_STUCK_AFTER_ATTEMPTS

    tenant_id: str = "default"

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)

    @property
    def records_url(self) -> str:
        return _join(self.api_base_url, self.records_path)

    @property
    def health_url(self) -> str | None:
        if not self.health_path:
            return None
        return _join(self.api_base_url, self.health_path)

    @property
    def shell_url(self) -> str:
        return _join(self.app_base_url, self.shell_path)

    @property
    def precache_urls(self) -> list[str]:
        return [_join(self.app_base_url, p) for p in self.precache_paths]

    @property
    def queue_path(self) -> Path:
        return self.data_dir / constants.QUEUE_DB_NAME

    @property
    def cache_path(self) -> Path:
        return self.data_dir / constants.CACHE_DB_NAME

    @classmethod
    def from_env(cls, environ=None) -> "SyncConfig":
        """Load configuration from environment variables."""
        env = os.environ if environ is None else environ
        config = cls()

        # Remote API
        if "FIELDSYNC_API_BASE_URL" in env:
            config.api_base_url = env["FIELDSYNC_API_BASE_URL"]
        if "FIELDSYNC_RECORDS_PATH" in env:
            config.records_path = env["FIELDSYNC_RECORDS_PATH"]
        if "FIELDSYNC_HEALTH_PATH" in env:
            config.health_path = env["FIELDSYNC_HEALTH_PATH"]
        if "FIELDSYNC_APP_BASE_URL" in env:
            config.app_base_url = env["FIELDSYNC_APP_BASE_URL"]
        if "FIELDSYNC_PRECACHE_PATHS" in env:
            config.precache_paths = [
                p.strip() for p in env["FIELDSYNC_PRECACHE_PATHS"].split(",") if p.strip()
            ]

        # Local storage
        if "FIELDSYNC_DATA_DIR" in env:
            config.data_dir = Path(env["FIELDSYNC_DATA_DIR"]).expanduser()
        if "FIELDSYNC_QUEUE_MAX_BYTES" in env:
            config.queue_max_bytes = int(env["FIELDSYNC_QUEUE_MAX_BYTES"])
        if "FIELDSYNC_CACHE_VERSION" in env:
            config.cache_version = env["FIELDSYNC_CACHE_VERSION"]

        # Timing
        if "FIELDSYNC_REQUEST_TIMEOUT" in env:
            config.request_timeout = float(env["FIELDSYNC_REQUEST_TIMEOUT"])
        if "FIELDSYNC_POLL_INTERVAL" in env:
            config.poll_interval = float(env["FIELDSYNC_POLL_INTERVAL"])
        if "FIELDSYNC_SYNC_INTERVAL" in env:
            config.sync_interval = float(env["FIELDSYNC_SYNC_INTERVAL"])

        if "FIELDSYNC_STUCK_AFTER_ATTEMPTS" in env:
            config.stuck_after_attempts = int(env["FIELDSYNC_STUCK_AFTER_ATTEMPTS"])
        if "FIELDSYNC_TENANT_ID" in env:
            config.tenant_id = env["FIELDSYNC_TENANT_ID"]

        return config

    def validate(self) -> list[str]:
        """Validate configuration. Returns list of errors."""
        errors = []

        for name in ("api_base_url", "app_base_url"):
            parts = urlsplit(getattr(self, name))
            if parts.scheme not in ("http", "https") or not parts.netloc:
                errors.append(f"{name} must be an http(s) URL, got {getattr(self, name)!r}")

        if not self.records_path:
            errors.append("records_path must not be empty")

        if self.queue_max_bytes < 64 * 1024:
            errors.append(f"queue_max_bytes must be >= 65536, got {self.queue_max_bytes}")

        if not self.cache_version:
            errors.append("cache_version must not be empty")

        if self.request_timeout <= 0:
            errors.append(f"request_timeout must be > 0, got {self.request_timeout}")

        if self.poll_interval <= 0:
            errors.append(f"poll_interval must be > 0, got {self.poll_interval}")

        if self.sync_interval < 0:
            errors.append(f"sync_interval must be >= 0, got {self.sync_interval}")

        if self.stuck_after_attempts < 1:
            errors.append(f"stuck_after_attempts must be >= 1, got {self.stuck_after_attempts}")

        return errors

    def require_valid(self) -> "SyncConfig":
        """Raise ConfigError listing every problem, else return self."""
        errors = self.validate()
        if errors:
            raise ConfigError("; ".join(errors))
        return self
