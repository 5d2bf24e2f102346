"""
Unit tests for the monitor daemon main loop module.

Tests verify:
- One iteration fetches, evaluates and publishes on the feed.
- A failed fetch publishes nothing and marks the health file stale.
- An empty batch is still evaluated and published.
- Fetch and evaluation errors never escape the iteration.
- Shutdown event stops the loop promptly.
- Startup logs a config summary.
- JSON log formatter output.

CHANGELOG:
- 2026-10-19: Initial creation -- TDD tests written first (STORY-011)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from monitor.src import evaluator as evaluator_module
from monitor.src.config import MonitorSettings
from monitor.src.feed import AlertFeed
from monitor.src.health import HealthWriter
from monitor.src.main import _evaluate_once, _evaluation_loop, configure_logging, log_config_summary, run
from monitor.src.models import AlertKind

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=UTC)

_RAW = [
    {"created_at": (_NOW - timedelta(minutes=3)).isoformat(), "tegangan": 250, "arus": 1, "pf": 0.9},
    {"created_at": (_NOW - timedelta(minutes=8)).isoformat(), "tegangan": 225, "arus": 1, "pf": 0.9},
]


def _clock() -> datetime:
    return _NOW


def _make_client(return_value: object = _RAW) -> MagicMock:
    client = MagicMock()
    client.fetch_readings = AsyncMock(return_value=return_value)
    client.current_backoff = 1.0
    return client


def _settings(**overrides: object) -> MonitorSettings:
    values = {"poll_interval_s": 1.0}
    values.update(overrides)
    return MonitorSettings(**values)


# ---------------------------------------------------------------------------
# Single iteration
# ---------------------------------------------------------------------------


class TestEvaluateOnce:
    @pytest.mark.asyncio
    async def test_fetch_evaluate_publish(self) -> None:
        feed = AlertFeed()
        queue = feed.subscribe()

        result = await _evaluate_once(
            client=_make_client(),
            feed=feed,
            settings=_settings(),
            health=None,
            clock=_clock,
        )

        assert result is not None
        assert await queue.get() is result
        assert result.evaluated_at == _NOW
        assert result.reading_count == 2
        assert result.counts.critical == 1
        assert result.alerts[0].message.startswith("Overvoltage detected: 250.0V")
        assert any(a.kind is AlertKind.SUCCESS for a in result.alerts)

    @pytest.mark.asyncio
    async def test_settings_flow_into_evaluator(self) -> None:
        feed = AlertFeed()
        settings = _settings(alert_limit=1, normal_scan_all=False, display_timezone="Asia/Jakarta")

        with patch("monitor.src.main.evaluate", wraps=evaluator_module.evaluate) as spy:
            await _evaluate_once(client=_make_client(), feed=feed, settings=settings, health=None, clock=_clock)

        kwargs = spy.call_args.kwargs
        assert kwargs["now"] == _NOW
        assert kwargs["limit"] == 1
        assert kwargs["normal_scan_all"] is False
        assert str(kwargs["tz"]) == "Asia/Jakarta"

    @pytest.mark.asyncio
    async def test_failed_fetch_publishes_nothing(self, tmp_path: Path) -> None:
        feed = AlertFeed()
        queue = feed.subscribe()
        health = HealthWriter(tmp_path / "health.json")

        result = await _evaluate_once(
            client=_make_client(return_value=None),
            feed=feed,
            settings=_settings(),
            health=health,
            clock=_clock,
        )

        assert result is None
        assert queue.empty()
        data = json.loads((tmp_path / "health.json").read_text())
        assert data["last_fetch_ok"] is False
        assert data["last_evaluation_ts"] is None

    @pytest.mark.asyncio
    async def test_empty_batch_publishes_empty_result(self) -> None:
        feed = AlertFeed()

        result = await _evaluate_once(
            client=_make_client(return_value=[]),
            feed=feed,
            settings=_settings(),
            health=None,
            clock=_clock,
        )

        assert result is not None
        assert result.alerts == []
        assert feed.latest is result

    @pytest.mark.asyncio
    async def test_health_updated_after_evaluation(self, tmp_path: Path) -> None:
        health = HealthWriter(tmp_path / "health.json")

        await _evaluate_once(client=_make_client(), feed=AlertFeed(), settings=_settings(), health=health, clock=_clock)

        data = json.loads((tmp_path / "health.json").read_text())
        assert data["last_fetch_ok"] is True
        assert data["alert_counts"]["critical"] == 1

    @pytest.mark.asyncio
    async def test_fetch_exception_is_contained(self, caplog: pytest.LogCaptureFixture) -> None:
        client = _make_client()
        client.fetch_readings = AsyncMock(side_effect=RuntimeError("socket closed"))

        with caplog.at_level(logging.ERROR):
            result = await _evaluate_once(client=client, feed=AlertFeed(), settings=_settings(), health=None)

        assert result is None
        assert "Fetch cycle error" in caplog.text

    @pytest.mark.asyncio
    async def test_evaluation_exception_is_contained(self) -> None:
        feed = AlertFeed()

        with patch("monitor.src.main.evaluate", side_effect=RuntimeError("bug")):
            result = await _evaluate_once(client=_make_client(), feed=feed, settings=_settings(), health=None)

        assert result is None
        assert feed.latest is None


# ---------------------------------------------------------------------------
# Loop and shutdown
# ---------------------------------------------------------------------------


class TestEvaluationLoop:
    @pytest.mark.asyncio
    async def test_loop_runs_until_shutdown(self) -> None:
        client = _make_client()
        feed = AlertFeed()
        shutdown_event = asyncio.Event()

        async def _trigger_shutdown() -> None:
            await asyncio.sleep(0.05)
            shutdown_event.set()

        await asyncio.wait_for(
            asyncio.gather(
                _evaluation_loop(
                    client=client,
                    feed=feed,
                    settings=_settings(poll_interval_s=5),
                    shutdown_event=shutdown_event,
                    health=None,
                    clock=_clock,
                ),
                _trigger_shutdown(),
            ),
            timeout=2.0,
        )

        client.fetch_readings.assert_awaited_once()
        assert feed.latest is not None

    @pytest.mark.asyncio
    async def test_loop_not_started_when_already_shut_down(self) -> None:
        client = _make_client()
        shutdown_event = asyncio.Event()
        shutdown_event.set()

        await _evaluation_loop(
            client=client,
            feed=AlertFeed(),
            settings=_settings(),
            shutdown_event=shutdown_event,
            health=None,
        )

        client.fetch_readings.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_run_uses_supplied_components(self) -> None:
        client = _make_client()
        feed = AlertFeed()
        shutdown_event = asyncio.Event()

        async def _trigger_shutdown() -> None:
            await asyncio.sleep(0.05)
            shutdown_event.set()

        returned, _ = await asyncio.wait_for(
            asyncio.gather(
                run(_settings(poll_interval_s=5), client=client, feed=feed, shutdown_event=shutdown_event),
                _trigger_shutdown(),
            ),
            timeout=2.0,
        )

        assert returned is feed
        client.fetch_readings.assert_awaited()


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


class TestLogging:
    def test_config_summary_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO):
            log_config_summary(_settings(api_base_url="http://10.0.0.5:3001"))

        assert "api_base_url=http://10.0.0.5:3001" in caplog.text
        assert "alert_limit=50" in caplog.text

    def test_json_formatter(self, capsys: pytest.CaptureFixture[str]) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging("INFO")
            logging.getLogger("monitor.test").info("hello %s", "world")
            line = capsys.readouterr().err.strip().splitlines()[-1]
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

        entry = json.loads(line)
        assert entry["level"] == "INFO"
        assert entry["logger"] == "monitor.test"
        assert entry["msg"] == "hello world"
        assert "ts" in entry
