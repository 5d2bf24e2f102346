"""
Shared test fixtures for monitor tests.

All monitor env vars are cleaned before each test to ensure isolation,
and the working directory is moved so no .env file is picked up.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import pytest

# All MonitorSettings environment variable names, used for cleanup.
_ALL_MONITOR_ENV_VARS = (
    "API_BASE_URL",
    "READING_ENDPOINTS",
    "POLL_INTERVAL_S",
    "REQUEST_TIMEOUT_S",
    "ALERT_LIMIT",
    "NORMAL_SCAN_ALL",
    "DISPLAY_TIMEZONE",
    "HEALTH_PATH",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_monitor_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all monitor env vars and isolate from .env files before each test."""
    for var in _ALL_MONITOR_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
