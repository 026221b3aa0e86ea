"""
Monitor configuration.

Defaults live here as module constants. Environment variables (optionally
from a ``.env`` file) override them, and command-line flags override both.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_SERVER_URL = "http://localhost:8080"
DEFAULT_REFRESH_INTERVAL = 3
DEFAULT_DAEMON_STATS_PATH = "/tmp/trivia-gen-daemon.stats.json"
DEFAULT_TRIVIA_BASE_PATH = "~/trivial"
DEFAULT_WEB_FRONTEND_URL = "http://localhost:3000"
DEFAULT_TIMEOUT = 5.0

HEALTH_PATH = "/health"
VALIDATION_STATS_PATH = "/api/v1/admin/validate/stats"
API_KEY_HEADER = "X-Admin-API-Key"

ENV_PREFIX = "TRIVIA_MONITOR_"


class ConfigError(ValueError):
    """Invalid monitor configuration."""


@dataclass(frozen=True)
class MonitorConfig:
    server_url: str = DEFAULT_SERVER_URL
    api_key: str = ""
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL
    daemon_stats_path: str = DEFAULT_DAEMON_STATS_PATH
    trivia_base_path: str = DEFAULT_TRIVIA_BASE_PATH
    web_frontend_url: str = DEFAULT_WEB_FRONTEND_URL
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if self.refresh_interval < 1:
            raise ConfigError(f"refresh interval must be at least 1s, got {self.refresh_interval}")
        if not self.server_url.startswith(("http://", "https://")):
            raise ConfigError(f"server URL must start with http:// or https://: {self.server_url}")
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        # Normalise so path joins never produce a double slash
        object.__setattr__(self, "server_url", self.server_url.rstrip("/"))

    @property
    def health_url(self) -> str:
        return f"{self.server_url}{HEALTH_PATH}"

    @property
    def validation_stats_url(self) -> str:
        return f"{self.server_url}{VALIDATION_STATS_PATH}"

    @property
    def auth_headers(self) -> dict[str, str]:
        return {API_KEY_HEADER: self.api_key} if self.api_key else {}

    @property
    def server_host(self) -> str:
        return self.server_url.split("://", 1)[-1]

    @property
    def daemon_stats_file(self) -> Path:
        return Path(self.daemon_stats_path).expanduser()

    @property
    def trivia_base_dir(self) -> Path:
        return Path(self.trivia_base_path).expanduser()


def env_defaults(environ: dict[str, str] | None = None) -> dict:
    """Read overrides from ``TRIVIA_MONITOR_*`` environment variables."""
    env = os.environ if environ is None else environ
    mapping = {
        "SERVER": "server_url",
        "API_KEY": "api_key",
        "REFRESH": "refresh_interval",
        "DAEMON_STATS": "daemon_stats_path",
        "TRIVIA_PATH": "trivia_base_path",
        "WEB_URL": "web_frontend_url",
    }
    out: dict = {}
    for suffix, attr in mapping.items():
        value = env.get(ENV_PREFIX + suffix)
        if value is None or value == "":
            continue
        if attr == "refresh_interval":
            try:
                out[attr] = int(value)
            except ValueError:
                raise ConfigError(f"{ENV_PREFIX}{suffix} must be an integer: {value!r}") from None
        else:
            out[attr] = value
    return out
