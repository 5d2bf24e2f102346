"""
Pydantic models for telemetry readings and derived alerts.

Defines the canonical Reading (one normalized PZEM sample), the Alert
produced by the rule evaluator, the per-kind AlertCounts tally, and the
EvaluationResult returned by a single evaluation pass.

Readings are treated as read-only input and results are frozen: an
evaluation pass creates fresh objects and never mutates them afterwards.

CHANGELOG:
- 2026-10-19: Naive Reading timestamps are read as UTC (STORY-012)
- 2026-10-19: Add reading_timestamp to Alert for re-rendering ages (STORY-006)
- 2026-10-19: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(StrEnum):
    """Alert severity; determines list ordering (High first)."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class AlertKind(StrEnum):
    """Alert kind; used for counting and iconography, not ordering."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


class AlertCategory(StrEnum):
    """Quantity or subsystem an alert refers to."""

    VOLTAGE = "voltage"
    CURRENT = "current"
    POWER_FACTOR = "power_factor"
    FREQUENCY = "frequency"
    POWER = "power"
    SYSTEM = "system"
    REPORT = "report"


class Reading(BaseModel):
    """A single normalized telemetry sample from the energy meter.

    All values are in engineering units. Missing or non-numeric source
    values have already been replaced with defaults by the normalizer.

    Attributes:
        timestamp: Timezone-aware time the sample was recorded.
        voltage: RMS voltage in volts.
        current: RMS current in amperes.
        active_power: Active power in watts.
        energy: Energy in kilowatt-hours (cumulative or interval,
            as defined by the backend).
        frequency: Line frequency in hertz.
        power_factor: Unitless power factor, nominally in [0, 1].
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    voltage: float = 220.0
    current: float = 0.0
    active_power: float = 0.0
    energy: float = 0.0
    frequency: float = 50.0
    power_factor: float = 0.95

    @field_validator("timestamp")
    @classmethod
    def timestamp_must_be_aware(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC, matching the normalizer."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class Alert(BaseModel):
    """A classified notification derived from one reading (or the batch).

    Attributes:
        id: Identifier unique within one evaluation pass (``alert-<n>``).
        severity: High, Medium or Low.
        category: Quantity the alert refers to.
        kind: critical, warning, info or success.
        message: Human-readable text with the measured value and the
            reading's time of day.
        relative_age: "time ago" text relative to the evaluation clock.
        reading_timestamp: Timestamp of the reading the alert came from.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    severity: Severity
    category: AlertCategory
    kind: AlertKind
    message: str
    relative_age: str
    reading_timestamp: datetime


class AlertCounts(BaseModel):
    """Number of alerts per kind; ``resolved`` tallies success alerts."""

    model_config = ConfigDict(frozen=True)

    critical: int = 0
    warning: int = 0
    info: int = 0
    resolved: int = 0

    @property
    def total(self) -> int:
        return self.critical + self.warning + self.info + self.resolved


class EvaluationResult(BaseModel):
    """Output of one evaluation pass.

    Attributes:
        alerts: Alerts sorted by severity (High, Medium, Low).
        counts: Per-kind tally of ``alerts``.
        evaluated_at: The injected clock value used for relative ages.
        reading_count: Number of readings that survived normalization.
    """

    model_config = ConfigDict(frozen=True)

    alerts: list[Alert] = Field(default_factory=list)
    counts: AlertCounts = Field(default_factory=AlertCounts)
    evaluated_at: datetime
    reading_count: int = 0
