# ha_powerflow/services/output_formatter.py

from __future__ import annotations

import json
from typing import Iterable, Optional

from ha_powerflow.models.entity import EntityKind
from ha_powerflow.models.power_flow import PowerFlowState
from ha_powerflow.models.snapshot import ConnectionStatus, ValueSnapshot
from ha_powerflow.services.value_formatter import format_battery_flow, format_flow_watts


def status_line(snapshot: ValueSnapshot, displayed: Iterable[EntityKind]) -> str:
    """Compact one-line summary of the selected entities (menu bar title)."""
    parts = [f"{kind.display_name} {snapshot.value(kind)}" for kind in displayed]
    return "  ".join(parts) if parts else snapshot.status.label


def _entity_line(snapshot: ValueSnapshot, kind: EntityKind) -> str:
    if snapshot.status is ConnectionStatus.DISCONNECTED:
        return f"{kind.display_name}: Not configured"
    reason = snapshot.errors.get(kind)
    if reason and snapshot.status is ConnectionStatus.ERROR:
        return f"{kind.display_name}: {reason}"
    value = snapshot.value(kind)
    if reason:
        return f"{kind.display_name}: {value} ({reason})"
    return f"{kind.display_name}: {value}"


def _flow_lines(flow: Optional[PowerFlowState]) -> list[str]:
    if flow is None:
        return []
    battery = f"{flow.battery_soc_percent:.0f}%"
    if flow.battery_net_watts != 0:
        battery += f" {format_battery_flow(flow.battery_net_watts)}"
    lines = [
        f"Flow: solar={format_flow_watts(flow.solar_watts)} "
        f"{flow.grid_label.lower()}={format_flow_watts(abs(flow.grid_watts))} "
        f"home={format_flow_watts(flow.home_watts)} battery={battery} ({flow.battery_band})"
    ]
    for state in flow.edges:
        lines.append(f"  {state.edge.label} {format_flow_watts(state.watts)}")
    return lines


def emit_human(
    snapshot: ValueSnapshot,
    flow: Optional[PowerFlowState] = None,
    *,
    displayed: Iterable[EntityKind] = (),
) -> None:
    displayed = list(displayed)
    if displayed:
        print(status_line(snapshot, displayed))
    for kind in EntityKind:
        if not kind.displayable:
            continue
        print(_entity_line(snapshot, kind))
    print(f"Status: {snapshot.status.label}")
    for line in _flow_lines(flow):
        print(line)


def emit_json(snapshot: ValueSnapshot, flow: Optional[PowerFlowState] = None) -> None:
    result = snapshot.as_dict()
    if flow is not None:
        result["power_flow"] = flow.as_dict()
    print(json.dumps(result, indent=2))
