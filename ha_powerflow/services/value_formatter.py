# ha_powerflow/services/value_formatter.py

from __future__ import annotations

import math
from typing import Any, Optional

from ha_powerflow.models.entity import EntityReading, UnitKind
from ha_powerflow.models.snapshot import FETCH_FAILED, UNAVAILABLE

__all__ = [
    "UNAVAILABLE",
    "FETCH_FAILED",
    "format_value",
    "format_reading",
    "parse_display_value",
    "format_flow_watts",
    "format_battery_flow",
]


def _to_number(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        if isinstance(raw, (int, float)):
            value = float(raw)
        else:
            value = float(str(raw).strip())
    except (ValueError, OverflowError):
        return None
    if not math.isfinite(value):
        return None
    return value


def _format_power(watts: float) -> str:
    text = f"{watts:.0f}"
    # Single-character readings get a pad so the unit lines up in the menu bar.
    if len(text) == 1:
        return f"{text} W"
    return f"{text}W"


def format_value(raw: Any, unit: UnitKind) -> str:
    """Render a raw sensor state for display; never raises."""
    value = _to_number(raw)
    if value is None:
        return UNAVAILABLE

    if unit is UnitKind.POWER:
        return _format_power(value)
    if unit is UnitKind.PERCENTAGE:
        return f"{value:.0f}%"
    if unit is UnitKind.CURRENCY:
        return f"${value:.3f}/kWh"
    return UNAVAILABLE


def format_reading(reading: EntityReading, unit: UnitKind) -> str:
    if not reading.ok:
        return FETCH_FAILED
    return format_value(reading.state, unit)


def parse_display_value(text: Optional[str]) -> Optional[float]:
    """Recover the number from a formatted string like '1250W', '85%' or '$0.123/kWh'."""
    if text is None:
        return None
    cleaned = str(text).strip()
    if not cleaned or cleaned in (UNAVAILABLE, FETCH_FAILED):
        return None

    scale = 1.0
    cleaned = cleaned.replace("$", "").replace("/kWh", "")
    if cleaned.endswith("kW"):
        scale = 1000.0
        cleaned = cleaned[:-2]
    cleaned = cleaned.replace("W", "").replace("%", "").strip()

    value = _to_number(cleaned)
    if value is None:
        return None
    return value * scale


def format_flow_watts(watts: float) -> str:
    if watts == 0:
        return "0W"
    if abs(watts) < 1000:
        return f"{watts:.0f}W"
    return f"{watts / 1000:.1f}kW"


def format_battery_flow(watts: float) -> str:
    prefix = "↑" if watts > 0 else "↓"
    return f"{prefix} {format_flow_watts(abs(watts))}"
