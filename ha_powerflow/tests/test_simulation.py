import logging

import pytest

from ha_powerflow.config import CoordinatorSettings, HomeAssistantConfig
from ha_powerflow.models.entity import EntityKind
from ha_powerflow.models.power_flow import FlowEdge
from ha_powerflow.models.snapshot import ConnectionStatus
from ha_powerflow.services.ha_api_client import NotFound, TransportError
from ha_powerflow.services.refresh_coordinator import RefreshCoordinator
from ha_powerflow.services.simulation_client import SimulationClient


LOG = logging.getLogger("simulation-tests")


def _sample_simulation_config():
    return {
        "sensor.solar_power": "1200",
        "sensor.home_power": "800",
        "sensor.grid_power": "-300",
        "sensor.battery_soc": "85.4",
        "sensor.battery_charging_power": "100",
        "sensor.battery_discharging_power": "0",
        "fail": "sensor.feed_in_tariff",
        "evening": {
            "sensor.solar_power": "0",
            "sensor.battery_charging_power": "0",
            "sensor.battery_discharging_power": "900",
            "sensor.grid_power": "100",
        },
    }


def test_simulation_client_merges_root_and_scenario():
    client = SimulationClient("evening", _sample_simulation_config(), LOG)

    assert client.fetch("sensor.solar_power").state == "0"
    # root fills in when the scenario omits a key
    assert client.fetch("sensor.home_power").state == "800"

    with pytest.raises(TransportError):
        client.fetch("sensor.feed_in_tariff")
    with pytest.raises(NotFound):
        client.fetch("sensor.electricity_price")
    with pytest.raises(NotFound):
        client.fetch("fail")


def test_simulated_tick_through_coordinator():
    cfg = _sample_simulation_config()
    settings = CoordinatorSettings(
        connection=HomeAssistantConfig(),
        entities={kind: kind.default_entity_id for kind in EntityKind},
    )
    coord = RefreshCoordinator(
        settings,
        LOG,
        client_factory=lambda _cfg: SimulationClient(None, cfg, LOG),
    )

    snap = coord.run_tick()

    assert snap.status is ConnectionStatus.CONNECTED
    assert snap.attempted == 8
    assert snap.succeeded == 6
    assert snap.value(EntityKind.BATTERY_SOC) == "85%"
    assert snap.value(EntityKind.FEED_IN_TARIFF) == "N/A"
    assert snap.value(EntityKind.PURCHASE_PRICE) == "N/A"

    flow = coord.power_flow
    assert flow.is_active(FlowEdge.SOLAR_TO_HOME)
    assert flow.is_active(FlowEdge.SOLAR_TO_BATTERY)
    assert flow.is_active(FlowEdge.SOLAR_TO_GRID)
    assert not flow.is_active(FlowEdge.GRID_TO_HOME)


def test_evening_scenario_discharges_battery():
    client = SimulationClient("evening", _sample_simulation_config(), LOG)
    settings = CoordinatorSettings(
        connection=HomeAssistantConfig(),
        entities={kind: kind.default_entity_id for kind in EntityKind},
    )
    coord = RefreshCoordinator(settings, LOG, client_factory=lambda _cfg: client)
    coord.run_tick()

    flow = coord.power_flow
    assert flow.battery_net_watts == -900
    assert flow.is_active(FlowEdge.BATTERY_TO_HOME)
    assert flow.is_active(FlowEdge.GRID_TO_HOME)
    assert not flow.is_active(FlowEdge.SOLAR_TO_HOME)
