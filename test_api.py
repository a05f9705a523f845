#!/usr/bin/env python3
"""Quick helper to inspect the configured Home Assistant entities."""

from ha_powerflow.config import Config
from ha_powerflow.services.ha_api_client import HomeAssistantClient, HomeAssistantError
from ha_powerflow.services.value_formatter import format_value
from ha_powerflow.logging import ConsoleLog


def main() -> None:
    log = ConsoleLog(level="DEBUG").setup()
    cfg = Config.load("ha_powerflow.conf")
    client = HomeAssistantClient(cfg.homeassistant, log)

    print("Configured?", client.configured)
    try:
        print("API reachable?", client.test_connection())
    except HomeAssistantError as exc:
        print("API reachable? no:", exc.user_message)
        return

    print("Entities:")
    for entity in cfg.entity_configs():
        try:
            reading = client.fetch(entity.entity_id)
        except HomeAssistantError as exc:
            print(f" - {entity.kind.display_name:<20} {entity.entity_id}: {exc.user_message} ({exc})")
            continue
        unit = reading.attributes.get("unit_of_measurement", "")
        print(
            f" - {entity.kind.display_name:<20} {entity.entity_id}: "
            f"raw={reading.state!r}{unit} display={format_value(reading.state, entity.unit)}"
        )


if __name__ == "__main__":
    main()
