# ha_powerflow/services/refresh_coordinator.py

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
import threading
from typing import Any, Callable, Dict, List, Optional

from ha_powerflow.config import CoordinatorSettings, HomeAssistantConfig
from ha_powerflow.models.entity import EntityConfig, EntityKind, EntityReading
from ha_powerflow.models.power_flow import PowerFlowState
from ha_powerflow.models.snapshot import ConnectionStatus, ValueSnapshot
from ha_powerflow.services.ha_api_client import (
    ConfigurationError,
    HomeAssistantClient,
    HomeAssistantError,
)
from ha_powerflow.services.power_flow import derive
from ha_powerflow.services.value_formatter import format_reading


Observer = Callable[[ValueSnapshot], Any]
Dispatch = Callable[[Observer, ValueSnapshot], Any]
ClientFactory = Callable[[HomeAssistantConfig], Any]


class RefreshState(Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    REFRESHING = "refreshing"


def _direct_dispatch(callback: Observer, snapshot: ValueSnapshot) -> None:
    callback(snapshot)


class _Schedule:
    """One run of the background timer; discarded on stop/reconfigure."""

    def __init__(self, generation: int, interval: float):
        self.generation = generation
        self.interval = interval
        self.stop_event = threading.Event()
        self.wake_event = threading.Event()
        self.thread: Optional[threading.Thread] = None


class RefreshCoordinator:
    """
    Periodically fetches every configured entity and publishes a
    ValueSnapshot plus ConnectionStatus.

    Ticks never overlap: a tick requested while another is in flight is
    queued (at most one) and runs as soon as the current tick finishes.
    Every reconfiguration bumps the generation; a tick started under an
    older generation drops its results instead of publishing them.
    """

    def __init__(
        self,
        settings: CoordinatorSettings,
        log,
        *,
        client_factory: ClientFactory | None = None,
        max_workers: int | None = None,
        dispatch: Dispatch | None = None,
    ):
        self.log = log
        self._client_factory = client_factory or (lambda cfg: HomeAssistantClient(cfg, log))
        self._max_workers = max_workers
        self._dispatch = dispatch or _direct_dispatch

        self._state_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._pending = False
        self._refreshing = False
        self._observers: List[Observer] = []
        self._schedule: Optional[_Schedule] = None

        self._generation = 0
        self._settings = settings
        self._client = self._client_factory(settings.connection)
        self._snapshot = ValueSnapshot.unavailable(ConnectionStatus.DISCONNECTED, self._generation)

    # ------------------------------------------------------------------
    # Presentation surface
    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> ValueSnapshot:
        with self._state_lock:
            return self._snapshot

    @property
    def status(self) -> ConnectionStatus:
        return self.snapshot.status

    @property
    def power_flow(self) -> PowerFlowState:
        return derive(self.snapshot)

    @property
    def settings(self) -> CoordinatorSettings:
        with self._state_lock:
            return self._settings

    @property
    def interval(self) -> float:
        return self.settings.interval

    @property
    def generation(self) -> int:
        with self._state_lock:
            return self._generation

    @property
    def state(self) -> RefreshState:
        with self._state_lock:
            if self._refreshing:
                return RefreshState.REFRESHING
            if self._schedule is not None:
                return RefreshState.SCHEDULED
            return RefreshState.IDLE

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        with self._state_lock:
            self._observers.append(callback)

        def _unsubscribe() -> None:
            with self._state_lock:
                if callback in self._observers:
                    self._observers.remove(callback)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def start(self) -> bool:
        """Enter the scheduled state; the first tick fires immediately."""
        with self._state_lock:
            if self._schedule is not None:
                return True
            if not self._settings.is_valid:
                self.log.info("Refresh not scheduled: configuration incomplete")
                return False
            schedule = _Schedule(self._generation, self._settings.interval)
            self._schedule = schedule

        thread = threading.Thread(
            target=self._run_schedule,
            args=(schedule,),
            daemon=True,
            name="ha-powerflow-refresh",
        )
        schedule.thread = thread
        thread.start()
        self.log.info("Refresh scheduled every %.0fs", schedule.interval)
        return True

    def stop(self, wait: bool = False, timeout: float | None = 5.0) -> None:
        with self._state_lock:
            schedule, self._schedule = self._schedule, None
        if schedule is None:
            return
        schedule.stop_event.set()
        schedule.wake_event.set()
        thread = schedule.thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self.log.debug("Refresh schedule (generation %d) stopped", schedule.generation)

    def _run_schedule(self, schedule: _Schedule) -> None:
        while not schedule.stop_event.is_set():
            self.run_tick()
            schedule.wake_event.wait(schedule.interval)
            schedule.wake_event.clear()

    def refresh_now(self, wait: bool = False) -> Optional[ValueSnapshot]:
        """Request an out-of-schedule tick.

        With a running schedule this only wakes the timer thread. When idle
        the tick runs on a helper thread, or inline if ``wait`` is true.
        """
        with self._state_lock:
            schedule = self._schedule
        if schedule is not None and not wait:
            schedule.wake_event.set()
            return None
        if wait:
            return self.run_tick()
        threading.Thread(target=self.run_tick, daemon=True, name="ha-powerflow-manual").start()
        return None

    def reconfigure(self, settings: CoordinatorSettings) -> None:
        """Apply new settings, reset all values and restart scheduling."""
        self.stop()
        with self._state_lock:
            self._generation += 1
            self._settings = settings
            self._client = self._client_factory(settings.connection)
            self._pending = False
            if settings.is_valid:
                status = self._snapshot.status
            else:
                status = ConnectionStatus.DISCONNECTED
            snapshot = ValueSnapshot.unavailable(status, self._generation)
            self._snapshot = snapshot
            observers = list(self._observers)
            generation = self._generation

        self.log.info("Configuration applied (generation %d)", generation)
        self._notify(observers, snapshot)

        if settings.is_valid:
            self.start()

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------
    def run_tick(self) -> Optional[ValueSnapshot]:
        """Run one refresh cycle and return the published snapshot.

        Returns None when the request was queued behind a running tick or
        the results were discarded because of a reconfiguration.
        """
        with self._state_lock:
            if not self._tick_lock.acquire(blocking=False):
                self._pending = True
                self.log.debug("Tick already in flight; queued one more")
                return None

        try:
            while True:
                result = self._tick()
                with self._state_lock:
                    if not self._pending:
                        self._tick_lock.release()
                        return result
                    self._pending = False
        except BaseException:
            with self._state_lock:
                self._pending = False
                if self._tick_lock.locked():
                    self._tick_lock.release()
            raise

    def _tick(self) -> Optional[ValueSnapshot]:
        with self._state_lock:
            generation = self._generation
            settings = self._settings
            client = self._client
            self._refreshing = True
        try:
            snapshot = self._collect(settings, client, generation)
        finally:
            with self._state_lock:
                self._refreshing = False

        if self._publish(snapshot):
            return snapshot
        return None

    def _collect(self, settings: CoordinatorSettings, client, generation: int) -> ValueSnapshot:
        configured = settings.entity_configs()
        if not configured:
            self.log.info("No entities configured; status disconnected")
            return ValueSnapshot.unavailable(ConnectionStatus.DISCONNECTED, generation)

        try:
            client.ensure_configured()
            readings = self._fetch_all(client, configured)
        except ConfigurationError as exc:
            self.log.warning("Refresh skipped, connection not configured: %s", exc)
            return ValueSnapshot.unavailable(ConnectionStatus.DISCONNECTED, generation)

        attempted = len(configured)
        succeeded = sum(1 for reading in readings.values() if reading.ok)
        errors = {kind: reading.error for kind, reading in readings.items() if not reading.ok}

        if succeeded == 0:
            self.log.warning("Refresh failed: 0/%d entities succeeded", attempted)
            return ValueSnapshot.unavailable(
                ConnectionStatus.ERROR,
                generation,
                attempted=attempted,
                succeeded=0,
                errors=errors,
            )

        values = {cfg.kind: format_reading(readings[cfg.kind], cfg.unit) for cfg in configured}
        if succeeded < attempted:
            self.log.info("Refresh partial: %d/%d entities succeeded", succeeded, attempted)
        else:
            self.log.debug("Refresh complete: %d/%d entities", succeeded, attempted)

        return ValueSnapshot(
            values=values,
            status=ConnectionStatus.CONNECTED,
            generation=generation,
            attempted=attempted,
            succeeded=succeeded,
            errors=errors,
        )

    def _fetch_one(self, client, cfg: EntityConfig) -> EntityReading:
        try:
            return client.fetch(cfg.entity_id)
        except ConfigurationError:
            raise
        except HomeAssistantError as exc:
            self.log.warning("%s (%s) fetch failed: %s", cfg.kind.display_name, cfg.entity_id, exc)
            return EntityReading.failed(cfg.entity_id, exc)
        except Exception as exc:
            self.log.exception("%s (%s) fetch raised unexpectedly", cfg.kind.display_name, cfg.entity_id)
            return EntityReading.failed(cfg.entity_id, exc)

    def _fetch_all(self, client, configured: List[EntityConfig]) -> Dict[EntityKind, EntityReading]:
        readings: Dict[EntityKind, EntityReading] = {}
        config_error: ConfigurationError | None = None
        workers = self._max_workers or len(configured)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ha-powerflow-fetch") as pool:
            futures = {pool.submit(self._fetch_one, client, cfg): cfg for cfg in configured}
            for future in as_completed(futures):
                cfg = futures[future]
                try:
                    readings[cfg.kind] = future.result()
                except ConfigurationError as exc:
                    config_error = exc

        if config_error is not None:
            raise config_error
        return readings

    # ------------------------------------------------------------------
    # Publication
    # ------------------------------------------------------------------
    def _publish(self, snapshot: ValueSnapshot) -> bool:
        with self._state_lock:
            if snapshot.generation != self._generation:
                self.log.debug(
                    "Discarding tick from generation %d (current %d)",
                    snapshot.generation,
                    self._generation,
                )
                return False
            self._snapshot = snapshot
            observers = list(self._observers)

        self._notify(observers, snapshot)
        return True

    def _notify(self, observers: List[Observer], snapshot: ValueSnapshot) -> None:
        for callback in observers:
            try:
                self._dispatch(callback, snapshot)
            except Exception:
                self.log.exception("Snapshot observer %r failed", callback)
