# tests/fake_client.py

import threading

from ha_powerflow.models.entity import EntityReading
from ha_powerflow.services.ha_api_client import HomeAssistantError


class FakeEntityClient:
    """
    Generic fake client for tests.
    States map entity ids to a raw state string or to an exception
    instance, which is raised instead of returning a reading.
    """

    def __init__(self, states: dict, config_error: Exception | None = None):
        self.states = states
        self.config_error = config_error
        self.calls = []
        self._lock = threading.Lock()

    def ensure_configured(self):
        if self.config_error is not None:
            raise self.config_error

    def fetch(self, entity_id: str) -> EntityReading:
        with self._lock:
            self.calls.append(entity_id)
        value = self.states.get(entity_id)
        if isinstance(value, BaseException):
            raise value
        if value is None:
            raise HomeAssistantError(f"no fake state for {entity_id}")
        return EntityReading(entity_id=entity_id, state=value)


class BlockingEntityClient(FakeEntityClient):
    """Fake client whose fetches wait until ``release`` is set."""

    def __init__(self, states: dict):
        super().__init__(states)
        self.started = threading.Event()
        self.release = threading.Event()

    def fetch(self, entity_id: str) -> EntityReading:
        self.started.set()
        self.release.wait(5)
        return super().fetch(entity_id)
