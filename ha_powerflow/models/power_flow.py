# ha_powerflow/models/power_flow.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Tuple


class FlowEdge(Enum):
    SOLAR_TO_HOME = ("solar", "home")
    SOLAR_TO_BATTERY = ("solar", "battery")
    SOLAR_TO_GRID = ("solar", "grid")
    GRID_TO_HOME = ("grid", "home")
    GRID_TO_BATTERY = ("grid", "battery")
    BATTERY_TO_HOME = ("battery", "home")
    BATTERY_TO_GRID = ("battery", "grid")

    @property
    def source(self) -> str:
        return self.value[0]

    @property
    def target(self) -> str:
        return self.value[1]

    @property
    def label(self) -> str:
        return f"{self.source.title()}→{self.target.title()}"


@dataclass(frozen=True)
class FlowEdgeState:
    edge: FlowEdge
    watts: float

    @property
    def intensity(self) -> int:
        """Number of animated markers to draw along the edge (1-5)."""
        return min(5, max(1, int(self.watts / 500)))

    @property
    def animation_seconds(self) -> float:
        return max(0.5, min(3.0, 4.0 - (self.watts / 1000)))


@dataclass(frozen=True)
class PowerFlowState:
    solar_watts: float
    grid_watts: float            # + import, - export
    battery_net_watts: float     # + charging, - discharging
    battery_soc_percent: float
    home_watts: float
    edges: Tuple[FlowEdgeState, ...] = field(default_factory=tuple)

    @property
    def active_edges(self) -> Tuple[FlowEdge, ...]:
        return tuple(state.edge for state in self.edges)

    def is_active(self, edge: FlowEdge) -> bool:
        return any(state.edge is edge for state in self.edges)

    def magnitude(self, edge: FlowEdge) -> float:
        for state in self.edges:
            if state.edge is edge:
                return state.watts
        return 0.0

    @property
    def grid_label(self) -> str:
        return "Grid"

    @property
    def battery_band(self) -> str:
        soc = self.battery_soc_percent
        if soc > 80:
            return "green"
        if soc > 50:
            return "yellow"
        if soc > 20:
            return "orange"
        return "red"

    def as_dict(self) -> dict[str, Any]:
        return {
            "solar_w": self.solar_watts,
            "grid_w": self.grid_watts,
            "battery_net_w": self.battery_net_watts,
            "battery_soc_pct": self.battery_soc_percent,
            "home_w": self.home_watts,
            "edges": [
                {
                    "source": state.edge.source,
                    "target": state.edge.target,
                    "watts": state.watts,
                    "intensity": state.intensity,
                }
                for state in self.edges
            ],
        }
