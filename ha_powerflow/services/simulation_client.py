# ha_powerflow/services/simulation_client.py

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ha_powerflow.models.entity import EntityReading
from ha_powerflow.services.ha_api_client import NotFound, TransportError


_RESERVED_KEYS = {"scenario", "fail"}


class SimulationClient:
    """Provide Home Assistant-like entity states backed by config data."""

    def __init__(self, scenario: str | None, cfg: Dict[str, Any] | None, log) -> None:
        self.scenario = scenario
        self.cfg_root: Dict[str, Any] = cfg or {}
        self.scenario_cfg: Dict[str, str] = (
            self.cfg_root.get(scenario, {}) if scenario else {}
        )
        if scenario and not self.scenario_cfg:
            log.warning("Simulation scenario '%s' not found; using root values only", scenario)
        self.log = log

    # ----------------------------------------------------------
    @staticmethod
    def parse_list(raw: Optional[str]) -> List[str]:
        if not raw:
            return []
        return [item.strip() for item in raw.split(",") if item.strip()]

    def _get_value(self, key: str) -> Optional[str]:
        if key in self.scenario_cfg:
            return self.scenario_cfg[key]
        value = self.cfg_root.get(key)
        if isinstance(value, str):
            return value
        return None

    # ----------------------------------------------------------
    def ensure_configured(self) -> None:
        return None

    def test_connection(self) -> bool:
        return True

    def fetch(self, entity_id: str) -> EntityReading:
        if entity_id in self.parse_list(self._get_value("fail")):
            raise TransportError(f"[SIM] simulated transport failure for {entity_id}")
        if entity_id in _RESERVED_KEYS:
            raise NotFound(f"[SIM] unknown entity {entity_id}")

        state = self._get_value(entity_id)
        if state is None:
            raise NotFound(f"[SIM] unknown entity {entity_id}")

        self.log.debug("[SIM] %s: state=%s", entity_id, state)
        return EntityReading(
            entity_id=entity_id,
            state=state.strip(),
            attributes={"source": "simulation"},
        )
