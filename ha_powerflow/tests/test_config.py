import pytest

from ha_powerflow.config import Config, CoordinatorSettings, HomeAssistantConfig
from ha_powerflow.models.entity import EntityKind

CONF = """
[homeassistant]
url = http://homeassistant.local:8123/
token = abc.def.ghi
timeout = 7

[entities]
solar = sensor.pv_power
battery-soc = sensor.powerwall_charge
feed_in_tariff =

[refresh]
interval = 5   # below the minimum
display = solar, grid

[logging]
console_level = DEBUG
debug_modules = ha_powerflow.refresh, urllib3
structured_enabled = true
structured_path = /tmp/ticks.jsonl

[simulation]
scenario = evening
sensor.pv_power = 1200
fail = sensor.grid_power

[simulation:evening]
sensor.pv_power = 0
"""


def test_full_config(tmp_path):
    conf_path = tmp_path / "ha.conf"
    conf_path.write_text(CONF)
    cfg = Config.load(str(conf_path))

    assert cfg.homeassistant.base_url == "http://homeassistant.local:8123"
    assert cfg.homeassistant.token == "abc.def.ghi"
    assert cfg.homeassistant.timeout == 7.0

    assert cfg.entities[EntityKind.SOLAR] == "sensor.pv_power"
    assert cfg.entities[EntityKind.BATTERY_SOC] == "sensor.powerwall_charge"
    assert cfg.entities[EntityKind.GRID_USAGE] == "sensor.grid_power"
    assert cfg.entities[EntityKind.FEED_IN_TARIFF] == ""

    kinds = [c.kind for c in cfg.entity_configs()]
    assert EntityKind.FEED_IN_TARIFF not in kinds
    assert len(kinds) == len(EntityKind) - 1

    assert cfg.refresh.interval == 10
    assert cfg.refresh.display == [EntityKind.SOLAR, EntityKind.GRID_USAGE]

    assert cfg.logging.console_level == "DEBUG"
    assert cfg.logging.debug_modules == ["ha_powerflow.refresh", "urllib3"]
    assert cfg.logging.structured_enabled is True

    sim = cfg.simulation.as_mapping()
    assert cfg.simulation.scenario == "evening"
    assert sim["sensor.pv_power"] == "1200"
    assert sim["evening"]["sensor.pv_power"] == "0"

    settings = cfg.coordinator_settings()
    assert settings.is_valid
    assert settings.interval == 10


def test_minimal_config_uses_defaults(tmp_path):
    conf_path = tmp_path / "ha.conf"
    conf_path.write_text("[homeassistant]\nurl = http://ha:8123\n")
    cfg = Config.load(str(conf_path))

    assert cfg.entities[EntityKind.SOLAR] == "sensor.solar_power"
    assert cfg.refresh.interval == 30
    assert cfg.refresh.display == [EntityKind.SOLAR, EntityKind.BATTERY_SOC]
    # no token -> the refresh engine stays idle
    assert not cfg.coordinator_settings().is_valid


@pytest.mark.parametrize(
    "base_url, token, valid",
    [
        ("http://ha.local:8123", "TOKEN", True),
        ("https://ha.example.com", "TOKEN", True),
        ("homeassistant.local:8123", "TOKEN", False),
        ("ftp://ha.local", "TOKEN", False),
        ("http://", "TOKEN", False),
        ("http://ha.local:8123", "   ", False),
        ("http://ha.local:8123", None, False),
    ],
)
def test_settings_validity_matches_connection_rules(base_url, token, valid):
    conn = HomeAssistantConfig(base_url=base_url, token=token)
    settings = CoordinatorSettings(connection=conn, entities={EntityKind.SOLAR: "sensor.solar_power"})

    assert conn.is_complete is valid
    assert settings.is_valid is valid


def test_unknown_entity_key_rejected(tmp_path):
    conf_path = tmp_path / "ha.conf"
    conf_path.write_text("[entities]\nwind = sensor.wind\n")
    with pytest.raises(ValueError):
        Config.load(str(conf_path))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config.load(str(tmp_path / "nope.conf"))
