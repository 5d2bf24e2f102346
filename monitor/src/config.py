"""
Monitor daemon configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files.

CHANGELOG:
- 2026-10-19: Default HEALTH_PATH to health.json in the working directory (STORY-012)
- 2026-10-19: Add DISPLAY_TIMEZONE and NORMAL_SCAN_ALL (STORY-006)
- 2026-10-19: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings


class MonitorSettings(BaseSettings):
    """Alert monitor configuration.

    Attributes:
        api_base_url: Base URL of the monitoring backend (http or https).
        reading_endpoints: Comma-separated endpoint paths tried in order
            when fetching readings.
        poll_interval_s: Seconds between evaluation passes.
        request_timeout_s: Per-request HTTP timeout in seconds.
        alert_limit: Number of most recent readings run through the rules.
        normal_scan_all: Whether the normal-operation scan looks at the
            whole batch (True) or only the capped working set.
        display_timezone: IANA zone used to render reading times in alerts.
        health_path: Path of the JSON health file (relative to the working
            directory unless absolute; containers set /data/health.json).
        log_level: Root logger level name.
    """

    api_base_url: str = "http://localhost:3001"
    reading_endpoints: str = "/power,/power/last7"
    poll_interval_s: float = 30.0
    request_timeout_s: float = 10.0
    alert_limit: int = 50
    normal_scan_all: bool = True
    display_timezone: str = "UTC"
    health_path: str = "health.json"
    log_level: str = "INFO"

    @field_validator("api_base_url")
    @classmethod
    def api_base_url_must_be_http(cls, v: str) -> str:
        """Validate that the backend URL has an http(s) scheme."""
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(f"API_BASE_URL must start with http:// or https:// (got: '{v}')")
        return v.rstrip("/")

    @field_validator("reading_endpoints")
    @classmethod
    def reading_endpoints_must_not_be_empty(cls, v: str) -> str:
        """Validate that at least one endpoint path is configured."""
        if not [p for p in v.split(",") if p.strip()]:
            raise ValueError("READING_ENDPOINTS must list at least one endpoint")
        return v

    @field_validator("poll_interval_s")
    @classmethod
    def poll_interval_must_be_positive(cls, v: float) -> float:
        if v < 1:
            raise ValueError("POLL_INTERVAL_S must be >= 1")
        return v

    @field_validator("request_timeout_s")
    @classmethod
    def request_timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("REQUEST_TIMEOUT_S must be > 0")
        return v

    @field_validator("alert_limit")
    @classmethod
    def alert_limit_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("ALERT_LIMIT must be >= 1")
        return v

    @field_validator("display_timezone")
    @classmethod
    def display_timezone_must_exist(cls, v: str) -> str:
        """Validate that the zone name resolves via zoneinfo."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"DISPLAY_TIMEZONE is not a known IANA zone: '{v}'") from exc
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL is not a logging level name: '{v}'")
        return level

    @property
    def endpoints(self) -> tuple[str, ...]:
        """Parsed endpoint paths, in priority order."""
        return tuple(p.strip() for p in self.reading_endpoints.split(",") if p.strip())

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.display_timezone)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
