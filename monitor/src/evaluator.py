"""
Rule-based alert evaluation for PZEM telemetry readings.

Classifies a batch of raw readings into alerts using fixed thresholds,
appends the two batch-level summaries (normal operation and the latest
energy report), orders the list by severity and tallies it by kind.

Processing order for :func:`evaluate`:

1. Normalize every record into a :class:`~monitor.src.models.Reading`.
2. Sort newest first (this order also breaks severity ties).
3. Cap the rule working set to the ``limit`` most recent readings.
4. Apply the per-reading rules (voltage, current, power factor,
   frequency, power).
5. Emit "System operating normally" if any reading is fully in band.
6. Emit the energy report from the most recent reading.
7. Stable-sort by severity rank and count by kind.

Everything here is pure: the evaluation clock and display timezone are
parameters, so two calls with the same input give the same output.

CHANGELOG:
- 2026-10-19: Make normal-operation scan scope configurable (STORY-006)
- 2026-10-19: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, tzinfo
from typing import Any

from monitor.src.models import (
    Alert,
    AlertCategory,
    AlertCounts,
    AlertKind,
    EvaluationResult,
    Reading,
    Severity,
)
from monitor.src.normalizer import normalize

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

OVERVOLTAGE_V: float = 240.0
UNDERVOLTAGE_V: float = 200.0
OVERCURRENT_A: float = 5.0
LOW_POWER_FACTOR: float = 0.85
FREQUENCY_MIN_HZ: float = 49.5
FREQUENCY_MAX_HZ: float = 50.5
HIGH_POWER_W: float = 600.0

DEFAULT_LIMIT: int = 50
"""Reference cap on the number of readings run through the per-reading rules."""

SEVERITY_RANK: dict[Severity, int] = {
    Severity.HIGH: 0,
    Severity.MEDIUM: 1,
    Severity.LOW: 2,
}

NORMAL_MESSAGE = "System operating normally - All parameters within safe range"


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''} ago"


def relative_age(ts: datetime, now: datetime) -> str:
    """Render ``now - ts`` as "Just now", "N minutes ago", etc.

    Differences are floored; anything under one minute, including
    timestamps in the future, is "Just now".
    """
    seconds = (now - ts).total_seconds()
    minutes = int(seconds // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return _plural(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")
    return _plural(hours // 24, "day")


def format_time_of_day(ts: datetime, tz: tzinfo = UTC) -> str:
    """Render the wall-clock time of *ts* in *tz* as ``HH:MM:SS``."""
    return ts.astimezone(tz).strftime("%H:%M:%S")


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def is_normal(reading: Reading) -> bool:
    """True when every metric of *reading* is inside its safe band."""
    return (
        UNDERVOLTAGE_V <= reading.voltage <= OVERVOLTAGE_V
        and reading.current < OVERCURRENT_A
        and reading.power_factor >= LOW_POWER_FACTOR
        and FREQUENCY_MIN_HZ <= reading.frequency <= FREQUENCY_MAX_HZ
    )


def _reading_rules(reading: Reading, tz: tzinfo) -> list[tuple[Severity, AlertKind, AlertCategory, str]]:
    """Evaluate the per-reading rules, in fixed order.

    Returns (severity, kind, category, message) tuples; ids and ages are
    attached by the caller.
    """
    at = format_time_of_day(reading.timestamp, tz)
    hits: list[tuple[Severity, AlertKind, AlertCategory, str]] = []

    v = reading.voltage
    if v > OVERVOLTAGE_V:
        hits.append((
            Severity.HIGH,
            AlertKind.CRITICAL,
            AlertCategory.VOLTAGE,
            f"Overvoltage detected: {v:.1f}V at {at}",
        ))
    elif 0 < v < UNDERVOLTAGE_V:
        hits.append((
            Severity.HIGH,
            AlertKind.WARNING,
            AlertCategory.VOLTAGE,
            f"Undervoltage warning: {v:.1f}V at {at}",
        ))

    if reading.current > OVERCURRENT_A:
        hits.append((
            Severity.HIGH,
            AlertKind.CRITICAL,
            AlertCategory.CURRENT,
            f"Overcurrent detected on main line: {reading.current:.2f}A at {at}",
        ))

    pf = reading.power_factor
    if 0 < pf < LOW_POWER_FACTOR:
        hits.append((
            Severity.MEDIUM,
            AlertKind.WARNING,
            AlertCategory.POWER_FACTOR,
            f"Power factor dropped to {pf:.2f} at {at}",
        ))

    f = reading.frequency
    if f > 0 and (f < FREQUENCY_MIN_HZ or f > FREQUENCY_MAX_HZ):
        hits.append((
            Severity.MEDIUM,
            AlertKind.WARNING,
            AlertCategory.FREQUENCY,
            f"Frequency deviation: {f:.2f}Hz at {at}",
        ))

    if reading.active_power > HIGH_POWER_W:
        hits.append((
            Severity.LOW,
            AlertKind.INFO,
            AlertCategory.POWER,
            f"High power consumption: {reading.active_power:.0f}W at {at}",
        ))

    return hits


# ---------------------------------------------------------------------------
# Counting
# ---------------------------------------------------------------------------


def count_alerts(alerts: Iterable[Alert]) -> AlertCounts:
    """Tally *alerts* by kind; success alerts count as resolved."""
    tally = {kind: 0 for kind in AlertKind}
    for alert in alerts:
        tally[alert.kind] += 1
    return AlertCounts(
        critical=tally[AlertKind.CRITICAL],
        warning=tally[AlertKind.WARNING],
        info=tally[AlertKind.INFO],
        resolved=tally[AlertKind.SUCCESS],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_all(raw_readings: Any) -> list[Reading]:
    """Normalize a raw batch and sort it newest first.

    Non-sequence input yields an empty list; unusable records are
    skipped by the normalizer.
    """
    if not isinstance(raw_readings, (list, tuple)):
        if raw_readings is not None:
            logger.warning(
                "Expected a list of readings, got %s; treating as empty",
                type(raw_readings).__name__,
            )
        return []

    readings = [r for r in (normalize(item) for item in raw_readings) if r is not None]
    readings.sort(key=lambda r: r.timestamp, reverse=True)
    return readings


def evaluate(
    raw_readings: Any,
    *,
    now: datetime,
    limit: int | None = DEFAULT_LIMIT,
    normal_scan_all: bool = True,
    tz: tzinfo = UTC,
) -> EvaluationResult:
    """Classify a batch of readings into sorted alerts plus counts.

    Args:
        raw_readings: Sequence of raw backend records (mappings) or
            Readings. Anything that is not a list/tuple is treated as an
            empty batch.
        now: Evaluation clock used for relative ages.
        limit: Number of most recent readings run through the per-reading
            rules. ``None`` disables the cap.
        normal_scan_all: When True the normal-operation scan considers the
            whole batch; when False only the capped working set.
        tz: Timezone used to render reading times inside messages.

    Returns:
        A frozen :class:`EvaluationResult`.

    Raises:
        ValueError: If *limit* is given and smaller than 1.
    """
    if limit is not None and limit < 1:
        raise ValueError(f"limit must be >= 1 or None (got {limit})")

    readings = normalize_all(raw_readings)
    working: Sequence[Reading] = readings if limit is None else readings[:limit]

    alerts: list[Alert] = []

    def _emit(
        severity: Severity,
        kind: AlertKind,
        category: AlertCategory,
        message: str,
        reading: Reading,
    ) -> None:
        alerts.append(
            Alert(
                id=f"alert-{len(alerts) + 1}",
                severity=severity,
                category=category,
                kind=kind,
                message=message,
                relative_age=relative_age(reading.timestamp, now),
                reading_timestamp=reading.timestamp,
            )
        )

    for reading in working:
        for severity, kind, category, message in _reading_rules(reading, tz):
            _emit(severity, kind, category, message, reading)

    scan = readings if normal_scan_all else working
    latest_normal = next((r for r in scan if is_normal(r)), None)
    if latest_normal is not None:
        _emit(Severity.LOW, AlertKind.SUCCESS, AlertCategory.SYSTEM, NORMAL_MESSAGE, latest_normal)

    if readings:
        latest = readings[0]
        _emit(
            Severity.LOW,
            AlertKind.INFO,
            AlertCategory.REPORT,
            f"Daily energy report generated - Total: {latest.energy:.2f} kWh",
            latest,
        )

    alerts.sort(key=lambda a: SEVERITY_RANK[a.severity])

    logger.debug(
        "Evaluated %d readings (%d under rules) into %d alerts",
        len(readings),
        len(working),
        len(alerts),
    )

    return EvaluationResult(
        alerts=alerts,
        counts=count_alerts(alerts),
        evaluated_at=now,
        reading_count=len(readings),
    )
