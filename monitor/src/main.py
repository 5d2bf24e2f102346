"""
Monitor daemon main loop for the PZEM alert engine.

Runs one asyncio loop: every ``poll_interval_s`` it fetches the latest
reading batch from the backend via the TelemetryClient, runs the alert
evaluator over it, and publishes the EvaluationResult on an AlertFeed.
Rendering and notification delivery are left to feed subscribers.

The loop is resilient: an exception in one iteration is logged and does
not stop the loop. When every endpoint fails, the next wait grows with
the client's backoff. SIGTERM/SIGINT set a shared asyncio.Event and the
loop exits after its current iteration.

Structured JSON logging is used for all events. A HealthWriter tracks the
last fetch attempt, the last published evaluation and its alert counts.

CHANGELOG:
- 2026-10-19: Wait for the client backoff after a failed fetch (STORY-011)
- 2026-10-19: Initial creation (STORY-011)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
import sys
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from monitor.src.evaluator import evaluate
from monitor.src.feed import AlertFeed
from monitor.src.health import HealthWriter
from monitor.src.models import EvaluationResult

if TYPE_CHECKING:
    from monitor.src.client import TelemetryClient
    from monitor.src.config import MonitorSettings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the monitor daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def log_config_summary(settings: MonitorSettings) -> None:
    """Log the effective configuration at startup."""
    logger.info(
        "Monitor starting with config: "
        "api_base_url=%s, reading_endpoints=%s, poll_interval_s=%s, "
        "request_timeout_s=%s, alert_limit=%s, normal_scan_all=%s, "
        "display_timezone=%s, health_path=%s",
        settings.api_base_url,
        ",".join(settings.endpoints),
        settings.poll_interval_s,
        settings.request_timeout_s,
        settings.alert_limit,
        settings.normal_scan_all,
        settings.display_timezone,
        settings.health_path,
    )


# ---------------------------------------------------------------------------
# Single iteration (easily testable)
# ---------------------------------------------------------------------------


async def _evaluate_once(
    *,
    client: TelemetryClient,
    feed: AlertFeed,
    settings: MonitorSettings,
    health: HealthWriter | None,
    clock: Clock = _utcnow,
) -> EvaluationResult | None:
    """Execute a single fetch-evaluate-publish cycle.

    Catches all exceptions so that the caller's loop is never broken. A
    failed fetch publishes nothing; an empty batch is evaluated and
    published (the "no data" result).

    Args:
        client: Backend telemetry client.
        feed: Feed the result is published on.
        settings: Evaluation settings (limit, scan scope, timezone).
        health: HealthWriter instance, or None to skip health writes.
        clock: Returns the evaluation time; injected by tests.

    Returns:
        The published result, or None when nothing was published.
    """
    try:
        raw = await client.fetch_readings()
    except Exception:
        logger.error("Fetch cycle error", exc_info=True)
        raw = None

    if health is not None:
        try:
            health.record_poll(ok=raw is not None)
        except OSError:
            logger.warning("Failed to write health file", exc_info=True)

    if raw is None:
        logger.warning("No readings fetched, skipping evaluation")
        return None

    try:
        result = evaluate(
            raw,
            now=clock(),
            limit=settings.alert_limit,
            normal_scan_all=settings.normal_scan_all,
            tz=settings.tz,
        )
        feed.publish(result)
    except Exception:
        logger.error("Evaluation cycle error", exc_info=True)
        return None

    logger.info(
        "Published %d alerts from %d readings (critical=%d, warning=%d, info=%d, resolved=%d)",
        len(result.alerts),
        result.reading_count,
        result.counts.critical,
        result.counts.warning,
        result.counts.info,
        result.counts.resolved,
    )

    if health is not None:
        try:
            health.record_evaluation(result.counts)
        except OSError:
            logger.warning("Failed to write health file", exc_info=True)

    return result


# ---------------------------------------------------------------------------
# Loop runner
# ---------------------------------------------------------------------------


async def _evaluation_loop(
    *,
    client: TelemetryClient,
    feed: AlertFeed,
    settings: MonitorSettings,
    shutdown_event: asyncio.Event,
    health: HealthWriter | None,
    clock: Clock = _utcnow,
) -> None:
    """Run evaluation passes until shutdown_event is set.

    Waits ``poll_interval_s`` between passes, or the client's backoff if
    that is longer and the last fetch failed.
    """
    logger.info("Evaluation loop started (interval=%ss)", settings.poll_interval_s)
    while not shutdown_event.is_set():
        result = await _evaluate_once(
            client=client,
            feed=feed,
            settings=settings,
            health=health,
            clock=clock,
        )
        delay = settings.poll_interval_s
        if result is None:
            delay = max(delay, client.current_backoff)
        # Use wait with timeout so we can check shutdown between sleeps
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(shutdown_event.wait(), timeout=delay)
    logger.info("Evaluation loop stopped")


async def run(
    settings: MonitorSettings,
    *,
    client: TelemetryClient | None = None,
    feed: AlertFeed | None = None,
    shutdown_event: asyncio.Event | None = None,
    health: HealthWriter | None = None,
) -> AlertFeed:
    """Build missing components and run the loop until shutdown.

    Returns:
        The feed results were published on.
    """
    from monitor.src.client import TelemetryClient

    if client is None:
        client = TelemetryClient(
            settings.api_base_url,
            endpoints=settings.endpoints,
            timeout_s=settings.request_timeout_s,
        )
    if feed is None:
        feed = AlertFeed()
    if shutdown_event is None:
        shutdown_event = asyncio.Event()

    await _evaluation_loop(
        client=client,
        feed=feed,
        settings=settings,
        shutdown_event=shutdown_event,
        health=health,
    )
    logger.info("Shutdown complete")
    return feed


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: load config, install signal handlers, run the loop."""
    from monitor.src.config import MonitorSettings

    settings = MonitorSettings()
    configure_logging(settings.log_level)
    log_config_summary(settings)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: _handle_signal(shutdown_event))

    await run(
        settings,
        shutdown_event=shutdown_event,
        health=HealthWriter(settings.health_path),
    )


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event."""
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the monitor daemon."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
