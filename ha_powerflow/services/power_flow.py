# ha_powerflow/services/power_flow.py

from __future__ import annotations

from typing import List, Mapping, Union

from ha_powerflow.models.entity import EntityKind
from ha_powerflow.models.power_flow import FlowEdge, FlowEdgeState, PowerFlowState
from ha_powerflow.models.snapshot import ValueSnapshot
from ha_powerflow.services.value_formatter import parse_display_value


# Export readings below this are treated as meter noise.
MIN_SIGNIFICANT_WATTS = 50.0

SnapshotLike = Union[ValueSnapshot, Mapping[EntityKind, str]]


def _values(snapshot: SnapshotLike) -> Mapping[EntityKind, str]:
    if isinstance(snapshot, ValueSnapshot):
        return snapshot.values
    return snapshot


def _number(values: Mapping[EntityKind, str], kind: EntityKind) -> float:
    # Sentinels and garbage count as zero so the graph always renders.
    parsed = parse_display_value(values.get(kind))
    return parsed if parsed is not None else 0.0


def derive(snapshot: SnapshotLike) -> PowerFlowState:
    """Compute the directional power-flow graph for a snapshot.

    Solar, home and battery figures come from the formatted display strings.
    Grid is signed (+ import, - export); net battery power is charging minus
    discharging (+ charging, - discharging).
    """
    values = _values(snapshot)

    solar = _number(values, EntityKind.SOLAR)
    grid = _number(values, EntityKind.GRID_USAGE)
    home = _number(values, EntityKind.HOME_POWER)
    soc = _number(values, EntityKind.BATTERY_SOC)
    charging = _number(values, EntityKind.BATTERY_CHARGING)
    discharging = _number(values, EntityKind.BATTERY_DISCHARGING)
    battery = charging - discharging

    edges: List[FlowEdgeState] = []

    if solar > 0 and home > 0 and solar >= home:
        edges.append(FlowEdgeState(FlowEdge.SOLAR_TO_HOME, min(solar, home)))

    if battery > 0:
        edges.append(FlowEdgeState(FlowEdge.SOLAR_TO_BATTERY, battery))

    if grid < 0 and abs(grid) >= MIN_SIGNIFICANT_WATTS:
        edges.append(FlowEdgeState(FlowEdge.SOLAR_TO_GRID, abs(grid)))

    if grid > 0 and home > solar:
        edges.append(FlowEdgeState(FlowEdge.GRID_TO_HOME, grid))

    if battery > 0 and solar < battery:
        edges.append(FlowEdgeState(FlowEdge.GRID_TO_BATTERY, battery - solar))

    if battery < 0:
        edges.append(FlowEdgeState(FlowEdge.BATTERY_TO_HOME, abs(battery)))

    if grid < 0 and abs(grid) > solar and (abs(grid) - solar) >= MIN_SIGNIFICANT_WATTS:
        edges.append(FlowEdgeState(FlowEdge.BATTERY_TO_GRID, abs(grid) - solar))

    return PowerFlowState(
        solar_watts=solar,
        grid_watts=grid,
        battery_net_watts=battery,
        battery_soc_percent=soc,
        home_watts=home,
        edges=tuple(edges),
    )
