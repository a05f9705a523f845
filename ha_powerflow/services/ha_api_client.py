# ha_powerflow/services/ha_api_client.py

from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from ha_powerflow.config import HomeAssistantConfig, valid_base_url
from ha_powerflow.models.entity import EntityReading


class HomeAssistantError(Exception):
    """Base class for entity fetch failures."""

    user_message = "Error"


class ConfigurationError(HomeAssistantError):
    user_message = "Invalid URL"


class Unauthorized(HomeAssistantError):
    user_message = "Check access token"


class NotFound(HomeAssistantError):
    user_message = "Entity not found"


class MalformedResponse(HomeAssistantError):
    user_message = "Invalid response"


class TransportError(HomeAssistantError):
    user_message = "Connection failed"


class HomeAssistantClient:
    """Fetches single entity states from the Home Assistant REST API."""

    def __init__(self, cfg: HomeAssistantConfig, log, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.log = log
        self.session = session or requests.Session()
        self.base_url = (cfg.base_url or "").rstrip("/")

    # ------------------------------------------------------------------
    @property
    def configured(self) -> bool:
        return self.cfg.is_complete

    def ensure_configured(self) -> None:
        if not valid_base_url(self.base_url):
            raise ConfigurationError(f"Home Assistant URL is missing or malformed: {self.base_url!r}")
        if not (self.cfg.token or "").strip():
            raise ConfigurationError("Home Assistant access token is missing")

    # ------------------------------------------------------------------
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.cfg.token}",
            "Content-Type": "application/json",
        }

    def _get(self, path: str) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.get(url, headers=self._headers(), timeout=self.cfg.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Request to {path} failed: {exc}") from exc

    # ------------------------------------------------------------------
    def fetch(self, entity_id: str) -> EntityReading:
        """Return the current state of one entity, raising on any failure."""
        self.ensure_configured()
        if not entity_id or not entity_id.strip():
            raise ConfigurationError("Entity id is empty")

        entity_id = entity_id.strip()
        path = f"/api/states/{quote(entity_id, safe='.')}"
        resp = self._get(path)

        status = resp.status_code
        if status == 401:
            raise Unauthorized(f"Home Assistant rejected the access token ({entity_id})")
        if status == 404:
            raise NotFound(f"Unknown entity {entity_id}")
        if not 200 <= status < 300:
            raise MalformedResponse(f"Home Assistant returned HTTP {status} for {entity_id}")

        try:
            payload: Any = resp.json()
        except ValueError as exc:
            raise MalformedResponse(f"Non-JSON payload for {entity_id}") from exc

        if not isinstance(payload, dict):
            raise MalformedResponse(f"Unexpected payload type for {entity_id}: {type(payload).__name__}")

        state = payload.get("state")
        if state is None:
            raise MalformedResponse(f"Payload for {entity_id} has no state")

        attributes = payload.get("attributes")
        self.log.debug("Fetched %s: state=%r", entity_id, state)
        return EntityReading(
            entity_id=payload.get("entity_id") or entity_id,
            state=str(state),
            attributes=attributes if isinstance(attributes, dict) else {},
            last_updated=payload.get("last_updated"),
        )

    # ------------------------------------------------------------------
    def test_connection(self) -> bool:
        self.ensure_configured()
        resp = self._get("/api/")
        if resp.status_code != 200:
            self.log.warning("Home Assistant connection test returned HTTP %s", resp.status_code)
            return False
        return True
