# ha_powerflow/models/entity.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class UnitKind(Enum):
    POWER = "power"
    PERCENTAGE = "percentage"
    CURRENCY = "currency"


@dataclass(frozen=True)
class _KindInfo:
    key: str
    display_name: str
    unit: UnitKind
    default_entity_id: str
    displayable: bool = True


class EntityKind(Enum):
    SOLAR = _KindInfo("solar", "Solar", UnitKind.POWER, "sensor.solar_power")
    BATTERY_SOC = _KindInfo("battery_soc", "Battery", UnitKind.PERCENTAGE, "sensor.battery_soc")
    BATTERY_CHARGING = _KindInfo(
        "battery_charging", "Battery Charging", UnitKind.POWER,
        "sensor.battery_charging_power", displayable=False,
    )
    BATTERY_DISCHARGING = _KindInfo(
        "battery_discharging", "Battery Discharging", UnitKind.POWER,
        "sensor.battery_discharging_power", displayable=False,
    )
    GRID_USAGE = _KindInfo("grid", "Grid", UnitKind.POWER, "sensor.grid_power")
    HOME_POWER = _KindInfo("home", "Home", UnitKind.POWER, "sensor.home_power")
    PURCHASE_PRICE = _KindInfo("purchase_price", "Purchase Price", UnitKind.CURRENCY, "sensor.electricity_price")
    FEED_IN_TARIFF = _KindInfo("feed_in_tariff", "Feed-in Tariff", UnitKind.CURRENCY, "sensor.feed_in_tariff")

    @property
    def key(self) -> str:
        return self.value.key

    @property
    def display_name(self) -> str:
        return self.value.display_name

    @property
    def unit(self) -> UnitKind:
        return self.value.unit

    @property
    def default_entity_id(self) -> str:
        return self.value.default_entity_id

    @property
    def displayable(self) -> bool:
        """Charging/discharging sub-readings only feed the net battery figure."""
        return self.value.displayable

    @classmethod
    def from_key(cls, key: str) -> "EntityKind":
        norm = key.strip().lower().replace("-", "_")
        for kind in cls:
            if kind.key == norm or kind.name.lower() == norm:
                return kind
        raise ValueError(f"Unknown entity kind '{key}'")


@dataclass(frozen=True)
class EntityConfig:
    kind: EntityKind
    entity_id: str

    @property
    def unit(self) -> UnitKind:
        return self.kind.unit

    @property
    def is_configured(self) -> bool:
        return bool(self.entity_id and self.entity_id.strip())


@dataclass
class EntityReading:
    entity_id: str
    state: str | None
    ok: bool = True
    error: str | None = None        # user-facing reason when ok is False
    error_kind: str | None = None   # exception class name
    attributes: Dict[str, Any] = field(default_factory=dict)
    last_updated: str | None = None

    @classmethod
    def failed(cls, entity_id: str, exc: BaseException) -> "EntityReading":
        reason = getattr(exc, "user_message", None) or str(exc) or type(exc).__name__
        return cls(
            entity_id=entity_id,
            state=None,
            ok=False,
            error=reason,
            error_kind=type(exc).__name__,
        )
