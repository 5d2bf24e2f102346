"""
Energy-usage recommendations derived from the latest power, energy and
voltage values.

Standalone helper for renderers and dashboards: the evaluation daemon
does not call it and EvaluationResult does not carry its output.

CHANGELOG:
- 2026-10-19: Document as a standalone renderer helper (STORY-012)
- 2026-10-19: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from monitor.src.evaluator import OVERVOLTAGE_V
from monitor.src.status import NOMINAL_MIN_V, StatusLevel

DEFAULT_CAPACITY_W: float = 5000.0
DEFAULT_PEAK_THRESHOLD_W: float = 4000.0
OPTIMAL_EFFICIENCY_RATIO: float = 0.6


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    label: str
    value: float
    unit: str
    status: str
    level: StatusLevel
    rule: str
    insight: str


def recommend(
    power_w: float,
    energy_kwh: float,
    voltage_v: float,
    *,
    capacity_w: float = DEFAULT_CAPACITY_W,
    peak_threshold_w: float = DEFAULT_PEAK_THRESHOLD_W,
) -> list[Recommendation]:
    """Build the efficiency, consumption, peak-load and voltage items.

    Args:
        power_w: Latest active power in watts.
        energy_kwh: Energy consumed in the period, in kWh.
        voltage_v: Latest voltage in volts.
        capacity_w: Installed capacity the efficiency ratio is taken against.
        peak_threshold_w: Power above which the peak load is flagged.

    Raises:
        ValueError: If *capacity_w* is not positive.
    """
    if capacity_w <= 0:
        raise ValueError(f"capacity_w must be > 0 (got {capacity_w})")

    ratio = power_w / capacity_w
    optimal = ratio > OPTIMAL_EFFICIENCY_RATIO
    peak_high = power_w > peak_threshold_w
    voltage_abnormal = voltage_v < NOMINAL_MIN_V or voltage_v > OVERVOLTAGE_V

    return [
        Recommendation(
            type="efficiency",
            label="Energy Efficiency",
            value=round(ratio * 100),
            unit="%",
            status="Optimal" if optimal else "Suboptimal",
            level=StatusLevel.GOOD if optimal else StatusLevel.CAUTION,
            rule=">60%: Optimal, <=60%: Suboptimal",
            insight="Energy use relative to maximum capacity.",
        ),
        Recommendation(
            type="consumption",
            label="Daily Consumption",
            value=round(energy_kwh, 2),
            unit="kWh",
            status="Actual",
            level=StatusLevel.NEUTRAL,
            rule="Daily consumption compared with the historical average",
            insight="Basis for cost analysis and daily efficiency review.",
        ),
        Recommendation(
            type="peak_load",
            label="Peak Load Forecast",
            value=power_w,
            unit="W",
            status="High" if peak_high else "Normal",
            level=StatusLevel.BAD if peak_high else StatusLevel.GOOD,
            rule=f"<={peak_threshold_w:.0f} W: Normal, >{peak_threshold_w:.0f} W: High",
            insight="Anticipates peak load to avoid overload.",
        ),
        Recommendation(
            type="voltage_quality",
            label="Voltage Quality",
            value=voltage_v,
            unit="V",
            status="Abnormal" if voltage_abnormal else "Normal",
            level=StatusLevel.BAD if voltage_abnormal else StatusLevel.GOOD,
            rule="210-240 V: Normal, <210 V: Under Voltage, >240 V: Over Voltage",
            insight="Supply quality check for equipment safety.",
        ),
    ]
