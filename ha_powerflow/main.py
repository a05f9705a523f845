# ha_powerflow/main.py

import logging
import sys
import threading

from .cli import build_parser
from .config import Config
from .logging import ConsoleLog, StructuredLog, RunLogEntry

from .models.snapshot import ValueSnapshot
from .services.ha_api_client import HomeAssistantClient, HomeAssistantError
from .services.output_formatter import emit_human, emit_json
from .services.power_flow import derive
from .services.refresh_coordinator import RefreshCoordinator
from .services.simulation_client import SimulationClient


def build_run_entry(snapshot: ValueSnapshot) -> RunLogEntry:
    data = snapshot.as_dict()
    return RunLogEntry(
        timestamp=data["timestamp"],
        generation=snapshot.generation,
        status=snapshot.status.value,
        attempted=snapshot.attempted,
        succeeded=snapshot.succeeded,
        values=data["values"],
        errors=data["errors"] or None,
        power_flow=derive(snapshot).as_dict(),
    )


def make_printer(args, displayed, structured_logger):
    """Observer that renders each published snapshot and records it."""

    def _on_snapshot(snapshot: ValueSnapshot) -> None:
        flow = derive(snapshot)
        if not args.quiet:
            if args.json:
                emit_json(snapshot, flow)
            else:
                emit_human(snapshot, flow, displayed=displayed)
        if structured_logger.enabled:
            structured_logger.write(build_run_entry(snapshot))

    return _on_snapshot


def run_test_connection(client, log) -> int:
    try:
        ok = client.test_connection()
    except HomeAssistantError as exc:
        log.error("Connection test failed: %s", exc.user_message)
        log.debug("Connection test detail: %s", exc)
        return 1
    if ok:
        log.info("Connection test succeeded")
        return 0
    log.error("Connection test failed: unexpected response")
    return 1


def run_watch(coordinator: RefreshCoordinator, count, log) -> None:
    done = threading.Event()
    published = 0

    def _count(_snapshot: ValueSnapshot) -> None:
        nonlocal published
        published += 1
        if count is not None and published >= count:
            done.set()

    unsubscribe = coordinator.subscribe(_count)
    if not coordinator.start():
        log.error("Nothing to watch: configuration incomplete")
        unsubscribe()
        return
    try:
        while not done.wait(1.0):
            pass
    except KeyboardInterrupt:
        log.info("Interrupted; stopping refresh")
    finally:
        unsubscribe()
        coordinator.stop(wait=True)


def main():
    parser = build_parser()
    args = parser.parse_args()

    try:
        app_cfg = Config.load(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"ha-powerflow: {exc}", file=sys.stderr)
        sys.exit(2)

    console_logger = ConsoleLog(
        level="DEBUG" if args.debug else app_cfg.logging.console_level,
        quiet=args.quiet or app_cfg.logging.console_quiet,
        debug_modules=app_cfg.logging.debug_modules,
    )
    log = console_logger.setup()
    structured_logger = StructuredLog(
        app_cfg.logging.structured_path,
        app_cfg.logging.structured_enabled,
    )
    if args.debug:
        logging.getLogger("urllib3").setLevel(logging.INFO)

    settings = app_cfg.coordinator_settings()

    if args.command == "test-connection":
        client = HomeAssistantClient(app_cfg.homeassistant, log)
        sys.exit(run_test_connection(client, log))

    if args.command == "simulate":
        sim_cfg = app_cfg.simulation
        scenario = getattr(args, "scenario", None) or sim_cfg.scenario
        sim_root = sim_cfg.as_mapping()

        def client_factory(_cfg):
            return SimulationClient(scenario, sim_root, log)
    else:
        def client_factory(cfg):
            return HomeAssistantClient(cfg, log)

    coordinator = RefreshCoordinator(settings, log, client_factory=client_factory)
    coordinator.subscribe(make_printer(args, settings.display, structured_logger))

    if args.command in {"once", "simulate"}:
        coordinator.run_tick()
    elif args.command == "watch":
        run_watch(coordinator, args.count, log)
    else:
        raise ValueError(f"Unsupported command: {args.command}")


if __name__ == "__main__":
    main()
