"""
Per-sensor status classification for single metric values.

Maps one measured value of a given sensor (voltage, current, power,
energy, frequency, power factor) to a status level, a short label, and
the static rule/insight texts shown next to the metric.

Standalone helper for renderers and dashboards: the evaluation daemon
does not call it and EvaluationResult does not carry its output.

CHANGELOG:
- 2026-10-19: Document as a standalone renderer helper (STORY-012)
- 2026-10-19: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from monitor.src.evaluator import FREQUENCY_MAX_HZ, FREQUENCY_MIN_HZ, LOW_POWER_FACTOR, OVERCURRENT_A, OVERVOLTAGE_V


class Sensor(StrEnum):
    V = "V"
    I = "I"  # noqa: E741
    P = "P"
    E = "E"
    F = "F"
    PF = "PF"


class StatusLevel(StrEnum):
    GOOD = "good"
    CAUTION = "caution"
    BAD = "bad"
    NEUTRAL = "neutral"


NOMINAL_MIN_V: float = 210.0
LIGHT_LOAD_A: float = 0.5
POOR_POWER_FACTOR: float = 0.7
EXCELLENT_POWER_FACTOR: float = 0.95

RULES: dict[Sensor, str] = {
    Sensor.V: "Normal: 210-240 V | Under <210 | Over >240",
    Sensor.I: "Light <0.5 A | Moderate <5 A | Heavy >=5 A",
    Sensor.P: "|P_sensor - P_theory| <= 10%",
    Sensor.E: "Energy = sum(P x time) / 1000",
    Sensor.F: "Normal: 49.5-50.5 Hz",
    Sensor.PF: "Good >=0.85 | Poor <0.70",
}

INSIGHTS: dict[Sensor, str] = {
    Sensor.V: "Reflects grid supply quality and equipment safety.",
    Sensor.I: "Reflects the size of the active electrical load.",
    Sensor.P: "Validates the power sensor measurement.",
    Sensor.E: "Basis for cost estimates and energy efficiency.",
    Sensor.F: "Indicator of electrical system stability.",
    Sensor.PF: "Low PF means wasted energy and inductive load.",
}


class SensorStatus(BaseModel):
    """Classification of one metric value."""

    model_config = ConfigDict(frozen=True)

    sensor: Sensor
    value: float
    level: StatusLevel
    label: str
    rule: str
    insight: str


def _level_and_label(value: float, sensor: Sensor) -> tuple[StatusLevel, str]:
    if sensor is Sensor.V:
        if value < NOMINAL_MIN_V:
            return StatusLevel.BAD, "Under Voltage"
        if value > OVERVOLTAGE_V:
            return StatusLevel.CAUTION, "Over Voltage"
        return StatusLevel.GOOD, "Normal"
    if sensor is Sensor.I:
        if value < LIGHT_LOAD_A:
            return StatusLevel.GOOD, "Light Load"
        if value < OVERCURRENT_A:
            return StatusLevel.CAUTION, "Moderate Load"
        return StatusLevel.BAD, "Heavy Load"
    if sensor is Sensor.PF:
        if value >= LOW_POWER_FACTOR:
            return StatusLevel.GOOD, "Good"
        if value >= POOR_POWER_FACTOR:
            return StatusLevel.CAUTION, "Fair"
        return StatusLevel.BAD, "Poor"
    if sensor is Sensor.F:
        if FREQUENCY_MIN_HZ <= value <= FREQUENCY_MAX_HZ:
            return StatusLevel.GOOD, "Normal"
        return StatusLevel.BAD, "Unstable"
    if sensor is Sensor.P:
        return StatusLevel.NEUTRAL, "Active"
    return StatusLevel.NEUTRAL, "Cumulative"


def classify(value: float, sensor: Sensor | str) -> SensorStatus:
    """Classify a single metric value.

    Args:
        value: Measured value in the sensor's unit.
        sensor: A :class:`Sensor` or its string code (``"V"``, ``"PF"``, ...).

    Raises:
        ValueError: If *sensor* is not a known sensor code.
    """
    sensor = Sensor(sensor)
    level, label = _level_and_label(value, sensor)
    return SensorStatus(
        sensor=sensor,
        value=value,
        level=level,
        label=label,
        rule=RULES[sensor],
        insight=INSIGHTS[sensor],
    )


def power_factor_grade(pf: float) -> str:
    """Grade an average power factor as Excellent, Good or Fair."""
    if pf >= EXCELLENT_POWER_FACTOR:
        return "Excellent"
    if pf >= LOW_POWER_FACTOR:
        return "Good"
    return "Fair"
