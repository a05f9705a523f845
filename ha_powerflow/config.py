# ha_powerflow/config.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import configparser
from urllib.parse import urlsplit

from ha_powerflow.models.entity import EntityConfig, EntityKind


DEFAULT_INTERVAL = 30.0
MIN_INTERVAL = 10.0
MAX_INTERVAL = 300.0

DEFAULT_DISPLAY = (EntityKind.SOLAR, EntityKind.BATTERY_SOC)


def valid_base_url(url: str | None) -> bool:
    if not url:
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def clamp_interval(seconds: float | None) -> float:
    if seconds is None or seconds <= 0:
        return DEFAULT_INTERVAL
    return max(MIN_INTERVAL, min(MAX_INTERVAL, float(seconds)))


@dataclass
class HomeAssistantConfig:
    base_url: str | None = None
    token: str | None = None
    timeout: float = 10.0

    @property
    def is_complete(self) -> bool:
        return valid_base_url(self.base_url) and bool((self.token or "").strip())


@dataclass
class RefreshConfig:
    interval: float = DEFAULT_INTERVAL
    display: list[EntityKind] = field(default_factory=lambda: list(DEFAULT_DISPLAY))

    def __post_init__(self):
        self.interval = clamp_interval(self.interval)


@dataclass
class SimulationConfig:
    scenario: str | None = None
    settings: dict[str, str] = field(default_factory=dict)
    scenarios: dict[str, dict[str, str]] = field(default_factory=dict)

    def as_mapping(self) -> dict[str, dict[str, str] | str]:
        root: dict[str, dict[str, str] | str] = dict(self.settings)
        for name, values in self.scenarios.items():
            root[name] = dict(values)
        return root


@dataclass
class LoggingConfig:
    console_level: str = "INFO"
    console_quiet: bool = False
    debug_modules: list[str] = field(default_factory=list)
    structured_enabled: bool = False
    structured_path: str | None = None


@dataclass
class CoordinatorSettings:
    """Everything the refresh engine reads; replaced wholesale on reconfigure."""

    connection: HomeAssistantConfig
    entities: dict[EntityKind, str] = field(default_factory=dict)
    interval: float = DEFAULT_INTERVAL
    display: list[EntityKind] = field(default_factory=lambda: list(DEFAULT_DISPLAY))

    def __post_init__(self):
        self.interval = clamp_interval(self.interval)

    def entity_configs(self) -> list[EntityConfig]:
        configs = []
        for kind in EntityKind:
            entity_id = (self.entities.get(kind) or "").strip()
            cfg = EntityConfig(kind=kind, entity_id=entity_id)
            if cfg.is_configured:
                configs.append(cfg)
        return configs

    @property
    def is_valid(self) -> bool:
        return self.connection.is_complete and bool(self.entity_configs())


@dataclass
class AppConfig:
    homeassistant: HomeAssistantConfig
    entities: dict[EntityKind, str]
    refresh: RefreshConfig
    logging: LoggingConfig
    simulation: SimulationConfig

    def entity_configs(self) -> list[EntityConfig]:
        return self.coordinator_settings().entity_configs()

    def coordinator_settings(self) -> CoordinatorSettings:
        return CoordinatorSettings(
            connection=self.homeassistant,
            entities=dict(self.entities),
            interval=self.refresh.interval,
            display=list(self.refresh.display),
        )


class Config:
    def __init__(self, path: str):
        self.path = Path(path)
        self.parser = configparser.ConfigParser(inline_comment_prefixes=("#", ";"))
        # entity ids are case-sensitive in [simulation] sections
        self.parser.optionxform = str
        read = self.parser.read(self.path)
        if not read:
            raise FileNotFoundError(f"Config file not found: {self.path}")

    @classmethod
    def load(cls, path: str) -> AppConfig:
        cfg = cls(path)

        p = cfg.parser

        def _as_bool(value: str) -> bool:
            return value.strip().lower() == "true"

        def _maybe_str(raw: str | None) -> str | None:
            if raw is None:
                return None
            raw = raw.strip()
            return raw or None

        def _kinds(raw: str) -> list[EntityKind]:
            return [EntityKind.from_key(x) for x in raw.split(",") if x.strip()]

        # --- Home Assistant ---
        ha_kwargs = {}
        if "homeassistant" in p:
            ha_sec = p["homeassistant"]
            url = _maybe_str(ha_sec.get("url") or ha_sec.get("base_url"))
            if url is not None:
                ha_kwargs["base_url"] = url.rstrip("/")
            token = _maybe_str(ha_sec.get("token") or ha_sec.get("access_token"))
            if token is not None:
                ha_kwargs["token"] = token
            if "timeout" in ha_sec:
                ha_kwargs["timeout"] = float(ha_sec["timeout"])
        ha_cfg = HomeAssistantConfig(**ha_kwargs)

        # --- Entities ---
        entities = {kind: kind.default_entity_id for kind in EntityKind}
        if "entities" in p:
            for key, value in p["entities"].items():
                entities[EntityKind.from_key(key)] = value.strip()

        # --- Refresh ---
        refresh_kwargs = {}
        if "refresh" in p:
            refresh_sec = p["refresh"]
            if "interval" in refresh_sec:
                refresh_kwargs["interval"] = float(refresh_sec["interval"])
            if "display" in refresh_sec:
                refresh_kwargs["display"] = _kinds(refresh_sec["display"])
        refresh_cfg = RefreshConfig(**refresh_kwargs)

        # --- Logging ---
        logging_kwargs = {}
        if "logging" in p:
            logging_sec = p["logging"]
            if "console_level" in logging_sec:
                logging_kwargs["console_level"] = logging_sec["console_level"]
            if "console_quiet" in logging_sec:
                logging_kwargs["console_quiet"] = _as_bool(logging_sec["console_quiet"])
            if "debug_modules" in logging_sec:
                raw = logging_sec["debug_modules"]
                logging_kwargs["debug_modules"] = [x.strip() for x in raw.split(",") if x.strip()]
            if "structured_enabled" in logging_sec:
                logging_kwargs["structured_enabled"] = _as_bool(logging_sec["structured_enabled"])
            if "structured_path" in logging_sec:
                logging_kwargs["structured_path"] = logging_sec["structured_path"]
        logging_cfg = LoggingConfig(**logging_kwargs)

        # --- Simulation ---
        sim_scenario: str | None = None
        sim_settings: dict[str, str] = {}
        if "simulation" in p:
            sim_sec = p["simulation"]
            if "scenario" in sim_sec:
                sim_scenario = _maybe_str(sim_sec["scenario"])
            for key, value in sim_sec.items():
                if key == "scenario":
                    continue
                sim_settings[key] = value

        sim_scenarios: dict[str, dict[str, str]] = {}
        for section in p.sections():
            if not section.startswith("simulation:"):
                continue
            scenario_name = section.split(":", 1)[1].strip()
            if not scenario_name:
                continue
            sim_scenarios[scenario_name] = dict(p[section])

        simulation_cfg = SimulationConfig(
            scenario=sim_scenario,
            settings=sim_settings,
            scenarios=sim_scenarios,
        )

        return AppConfig(
            homeassistant=ha_cfg,
            entities=entities,
            refresh=refresh_cfg,
            logging=logging_cfg,
            simulation=simulation_cfg,
        )
