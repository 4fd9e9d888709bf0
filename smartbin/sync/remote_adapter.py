# smartbin/sync/remote_adapter.py
"""
Remote sync adapter.

Translates per-path push notifications from a RemoteStore into updates of one
canonical SensorState, and translates actuator commands into per-path writes.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from smartbin.logging_system import (
    EventCategory,
    EventSeverity,
    SmartBinLogger,
    get_logger,
)
from smartbin.state.listeners import ListenerRegistry
from smartbin.state.models import (
    Command,
    SensorState,
    apply_command,
    now_ms,
    push_history,
)
from smartbin.sync import paths
from smartbin.sync.normalise import normalise_value
from smartbin.sync.remote_store import RemoteStore

__all__ = ["RemoteSyncAdapter"]

LEVEL_RANGE = (0.0, 100.0)
PPM_RANGE = (0.0, 600.0)


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, value))


class RemoteSyncAdapter:
    """
    Keeps a SensorState in sync with a remote store.

    One subscription is opened per sensor/actuator path. Every accepted value
    refreshes the timestamp and re-notifies listeners with a full snapshot.
    Level and ppm updates also push into their 20-sample histories. Both are
    clamped to their domains (0-100 % and 0-600 ppm) on the way in, so a
    faulty sensor cannot push the snapshot out of range.

    The adapter never retries a failed subscription; it reports the failure
    through on_error and leaves the decision to its owner.

    Example:
        >>> adapter = RemoteSyncAdapter(store, on_error=arbiter_callback)
        >>> remove = adapter.add_listener(print)
        >>> adapter.start()
        >>> await adapter.send_command(Command.TOGGLE_FAN)
    """

    def __init__(
        self,
        store: RemoteStore,
        on_error: Callable[[str, Exception], None] | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialise adapter.

        Args:
            store: Remote store to mirror
            on_error: Called with (path, exception) when a subscription fails
            clock: Millisecond clock used for timestamps
        """
        if store is None:
            raise ValueError("store cannot be None")

        self.store = store
        self.on_error = on_error
        self.clock = clock

        self.state = SensorState(level=0, ppm=0, timestamp=self.clock())
        self._lid_sensor_reported = False

        self._listeners: ListenerRegistry[SensorState] = ListenerRegistry()
        self._unsubscribers: list[Callable[[], None]] = []
        self._active = False
        self._update_count = 0

        self.logger: SmartBinLogger = get_logger(__name__)

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self) -> None:
        """Open one subscription per sensor/actuator path.

        Idempotent. Stops early if a subscription failure closes the adapter.
        """
        if self._active:
            return

        self._active = True
        handlers: list[tuple[str, Callable[[Any], None]]] = [
            (paths.FILL_LEVEL, self._on_fill_level),
            (paths.AIR_QUALITY, self._on_air_quality),
            (paths.LID_STATUS, self._on_lid_status),
            (paths.LID_OPEN, self._on_lid_actuator),
            (paths.FAN_STATUS, self._on_fan_status),
            (paths.TEMPERATURE, self._on_temperature),
            (paths.HUMIDITY, self._on_humidity),
        ]

        for path, handler in handlers:
            try:
                unsubscribe = self.store.subscribe(
                    path, handler, self._error_handler(path)
                )
            except Exception as e:
                self._report_error(path, e)
                break

            if not self._active:
                # A failure during subscribe closed us
                unsubscribe()
                break
            self._unsubscribers.append(unsubscribe)

        if self._active:
            self.logger.info(
                f"Remote sync active on {len(self._unsubscribers)} paths"
            )

    def close(self) -> None:
        """Detach every subscription. Safe to call repeatedly."""
        was_active = self._active
        self._active = False

        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()

        if was_active:
            self.logger.info(
                f"Remote sync closed after {self._update_count} updates"
            )

    def _error_handler(self, path: str) -> Callable[[Exception], None]:
        def handle(error: Exception) -> None:
            self._report_error(path, error)

        return handle

    def _report_error(self, path: str, error: Exception) -> None:
        self.logger.log_event(
            EventSeverity.ERROR,
            EventCategory.SYNC,
            f"Subscription error on '{path}': {error}",
            path=path,
        )
        if self.on_error is not None:
            self.on_error(path, error)

    # ----------------------------------------------------------------
    # Path handlers
    # ----------------------------------------------------------------

    def _on_fill_level(self, raw: Any) -> None:
        if raw is None or not self._active:
            return
        level = _clamp(normalise_value(raw, 0.0), LEVEL_RANGE)
        self._apply(
            level=level,
            level_history=push_history(self.state.level_history, level),
        )

    def _on_air_quality(self, raw: Any) -> None:
        if raw is None or not self._active:
            return
        ppm = _clamp(normalise_value(raw, 0.0), PPM_RANGE)
        self._apply(
            ppm=ppm,
            ppm_history=push_history(self.state.ppm_history, ppm),
        )

    def _on_lid_status(self, raw: Any) -> None:
        if raw is None or not self._active:
            return
        self._lid_sensor_reported = True
        lid_open = normalise_value(raw, False)
        self.logger.debug(f"Lid sensor: {'open' if lid_open else 'closed'}")
        self._apply(lid_open=lid_open)

    def _on_lid_actuator(self, raw: Any) -> None:
        # Legacy path only stands in until the physical sensor reports
        if raw is None or not self._active or self._lid_sensor_reported:
            return
        self._apply(lid_open=normalise_value(raw, False))

    def _on_fan_status(self, raw: Any) -> None:
        if raw is None or not self._active:
            return
        self._apply(fan_on=normalise_value(raw, False))

    def _on_temperature(self, raw: Any) -> None:
        if raw is None or not self._active:
            return
        self._apply(temperature=normalise_value(raw, 22.0))

    def _on_humidity(self, raw: Any) -> None:
        if raw is None or not self._active:
            return
        self._apply(humidity=normalise_value(raw, 45.0))

    def _apply(self, **changes: Any) -> None:
        self.state = self.state.with_changes(timestamp=self.clock(), **changes)
        self._update_count += 1
        self._listeners.notify(self.state)

    # ----------------------------------------------------------------
    # State access
    # ----------------------------------------------------------------

    def get_snapshot(self) -> SensorState:
        return self.state

    def add_listener(self, callback: Callable[[SensorState], None]) -> Callable[[], None]:
        return self._listeners.add(callback)

    # ----------------------------------------------------------------
    # Outgoing writes
    # ----------------------------------------------------------------

    async def send_command(self, command: Command) -> None:
        """Write an actuator command.

        Toggles negate the locally cached value; there is no remote
        read-before-write, so a toggle may act on a stale cache.

        Raises:
            StoreError: If the store rejects the write
        """
        lid_open, fan_on = apply_command(
            command, self.state.lid_open, self.state.fan_on
        )
        if command.targets_lid:
            path, status = paths.LID_OPEN, lid_open
        else:
            path, status = paths.FAN_STATUS, fan_on

        await self.store.set(path, {"status": status, "timestamp": self.clock()})
        self.logger.info(f"Command {command.value} written to {path} (status={status})")

    async def write_level(self, level: float) -> None:
        """Raises StoreError if the store rejects the write."""
        await self.store.set(
            paths.FILL_LEVEL, {"value": level, "timestamp": self.clock()}
        )

    async def write_ppm(self, ppm: float) -> None:
        """Raises StoreError if the store rejects the write."""
        await self.store.set(
            paths.AIR_QUALITY, {"value": ppm, "timestamp": self.clock()}
        )
