import pytest

from ha_powerflow.models.entity import EntityReading, UnitKind
from ha_powerflow.services.ha_api_client import NotFound
from ha_powerflow.services.value_formatter import (
    FETCH_FAILED,
    UNAVAILABLE,
    format_battery_flow,
    format_flow_watts,
    format_reading,
    format_value,
    parse_display_value,
)


def test_power_formatting_pads_single_digit():
    assert format_value("5", UnitKind.POWER) == "5 W"
    assert format_value("250", UnitKind.POWER) == "250W"
    assert format_value("4.6", UnitKind.POWER) == "5 W"
    assert format_value("-5", UnitKind.POWER) == "-5W"
    assert format_value(1250.4, UnitKind.POWER) == "1250W"


def test_percentage_and_currency():
    assert format_value("85.4", UnitKind.PERCENTAGE) == "85%"
    assert format_value("100", UnitKind.PERCENTAGE) == "100%"
    assert format_value("0.123", UnitKind.CURRENCY) == "$0.123/kWh"
    assert format_value("0.1", UnitKind.CURRENCY) == "$0.100/kWh"


@pytest.mark.parametrize("raw", ["abc", "unavailable", "unknown", "", "  ", None, "nan", "inf", True])
@pytest.mark.parametrize("unit", list(UnitKind))
def test_non_numeric_inputs_yield_sentinel(raw, unit):
    assert format_value(raw, unit) == UNAVAILABLE


def test_oversized_integer_yields_sentinel():
    assert format_value(10 ** 400, UnitKind.POWER) == UNAVAILABLE
    assert format_value(-(10 ** 400), UnitKind.PERCENTAGE) == UNAVAILABLE


def test_failed_reading_uses_fetch_failed_sentinel():
    failed = EntityReading.failed("sensor.grid_power", NotFound("gone"))
    assert format_reading(failed, UnitKind.POWER) == FETCH_FAILED
    assert failed.error == "Entity not found"
    assert failed.error_kind == "NotFound"

    ok = EntityReading(entity_id="sensor.grid_power", state="-300")
    assert format_reading(ok, UnitKind.POWER) == "-300W"


def test_parse_display_value_strips_units():
    assert parse_display_value("1250W") == 1250.0
    assert parse_display_value("5 W") == 5.0
    assert parse_display_value("-300W") == -300.0
    assert parse_display_value("85%") == 85.0
    assert parse_display_value("$0.123/kWh") == pytest.approx(0.123)
    assert parse_display_value("1.5kW") == 1500.0
    assert parse_display_value(UNAVAILABLE) is None
    assert parse_display_value(FETCH_FAILED) is None
    assert parse_display_value("---%") is None
    assert parse_display_value(None) is None


def test_flow_label_formatting():
    assert format_flow_watts(0) == "0W"
    assert format_flow_watts(800) == "800W"
    assert format_flow_watts(1500) == "1.5kW"
    assert format_battery_flow(100) == "↑ 100W"
    assert format_battery_flow(-2500) == "↓ 2.5kW"
