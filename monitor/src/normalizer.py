"""
Pure normalizer that converts a raw backend record into a Reading.

The monitoring backend (and older firmware/database exports) label the
same quantity under different keys, e.g. ``tegangan`` or ``voltage`` for
voltage and ``pf`` or ``powerFactor`` for power factor. Numeric values
also arrive as JSON numbers or as decimal strings. This module coalesces
every accepted key into one canonical, typed Reading so the rule
evaluator never has to branch on field-name presence.

This is a pure function: no side effects, no I/O, no clock.

CHANGELOG:
- 2026-10-19: Reject integers beyond float range instead of raising (STORY-012)
- 2026-10-19: Accept epoch seconds/milliseconds timestamps (STORY-003)
- 2026-10-19: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from monitor.src.models import Reading

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Accepted keys per canonical field, in priority order.
# ---------------------------------------------------------------------------

TIMESTAMP_KEYS: tuple[str, ...] = ("timestamp", "created_at", "createdAt", "time", "ts")

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "voltage": ("voltage", "tegangan"),
    "current": ("current", "arus"),
    "active_power": ("activePower", "active_power", "power", "daya_watt", "daya"),
    "energy": ("energy", "energi_kwh", "energy_kwh", "energi"),
    "frequency": ("frequency", "frekuensi"),
    "power_factor": ("powerFactor", "power_factor", "pf"),
}
"""Maps Reading field name -> raw keys accepted for it."""

DEFAULTS: dict[str, float] = {
    "voltage": 220.0,
    "current": 0.0,
    "active_power": 0.0,
    "energy": 0.0,
    "frequency": 50.0,
    "power_factor": 0.95,
}
"""Substituted when no accepted key holds a numeric value."""

_EPOCH_MS_THRESHOLD = 1e11


# ---------------------------------------------------------------------------
# Value coercion helpers
# ---------------------------------------------------------------------------


def coerce_float(value: Any) -> float | None:
    """Return *value* as a finite float, or ``None`` if it is not numeric.

    Accepts ints, floats and strings holding a decimal number. Booleans,
    NaN and infinities are rejected.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            result = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(result):
        return None
    return result


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a timestamp into a timezone-aware datetime.

    Supports ``datetime`` instances, ISO-8601 strings (``Z`` suffix
    allowed) and epoch numbers; values above 1e11 are read as
    milliseconds. Naive results are assumed to be UTC.

    Returns:
        The parsed datetime, or ``None`` when *value* cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # JSON integers are unbounded; anything past float range is not a time
        try:
            epoch = float(value)
        except OverflowError:
            return None
        if not math.isfinite(epoch):
            return None
        seconds = epoch / 1000 if abs(epoch) > _EPOCH_MS_THRESHOLD else epoch
        try:
            parsed = datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _first_numeric(raw: Mapping[str, Any], keys: tuple[str, ...]) -> float | None:
    for key in keys:
        if key in raw:
            value = coerce_float(raw[key])
            if value is not None:
                return value
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize(raw: Any) -> Reading | None:
    """Convert one raw backend record into a canonical Reading.

    Each field takes the first accepted key that holds a numeric value;
    if none does, the documented default is used. A Reading instance is
    returned unchanged.

    Args:
        raw: A mapping as decoded from the backend's JSON.

    Returns:
        A :class:`Reading`, or ``None`` if *raw* is not a mapping or has
        no parseable timestamp.
    """
    if isinstance(raw, Reading):
        return raw
    if not isinstance(raw, Mapping):
        logger.warning("Skipping reading: expected a mapping, got %s", type(raw).__name__)
        return None

    ts = None
    for key in TIMESTAMP_KEYS:
        if key in raw:
            ts = parse_timestamp(raw[key])
            if ts is not None:
                break
    if ts is None:
        logger.warning("Skipping reading without a parseable timestamp (id=%s)", raw.get("id"))
        return None

    fields: dict[str, float] = {}
    for field_name, keys in FIELD_ALIASES.items():
        value = _first_numeric(raw, keys)
        fields[field_name] = DEFAULTS[field_name] if value is None else value

    return Reading(timestamp=ts, **fields)
