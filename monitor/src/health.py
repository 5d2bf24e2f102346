"""
Health file writer for the monitor daemon.

Writes a JSON health file at a configurable path with four fields:
- last_poll_ts: ISO timestamp of the most recent fetch attempt.
- last_evaluation_ts: ISO timestamp of the most recent published evaluation.
- last_fetch_ok: Whether the most recent fetch returned data.
- alert_counts: Per-kind counts of the most recent evaluation.

The file is rewritten on every state change, providing a simple liveness
signal that Docker HEALTHCHECK or monitoring can inspect.

CHANGELOG:
- 2026-10-19: Create missing parent directories on write (STORY-012)
- 2026-10-19: Track fetch outcome and alert counts (STORY-010)
- 2026-10-19: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from monitor.src.models import AlertCounts


class HealthWriter:
    """Writes monitor health status to a JSON file.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_poll_ts: str | None = None
        self._last_evaluation_ts: str | None = None
        self._last_fetch_ok: bool = False
        self._alert_counts: dict[str, int] = AlertCounts().model_dump()

    def record_poll(self, *, ok: bool) -> None:
        """Record a fetch attempt and its outcome, then write the file."""
        self._last_poll_ts = datetime.now(tz=UTC).isoformat()
        self._last_fetch_ok = ok
        self._write()

    def record_evaluation(self, counts: AlertCounts) -> None:
        """Record a published evaluation and its counts, then write the file."""
        self._last_evaluation_ts = datetime.now(tz=UTC).isoformat()
        self._alert_counts = counts.model_dump()
        self._write()

    def _write(self) -> None:
        data = {
            "last_poll_ts": self._last_poll_ts,
            "last_evaluation_ts": self._last_evaluation_ts,
            "last_fetch_ok": self._last_fetch_ok,
            "alert_counts": self._alert_counts,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data))
