# smartbin/persistence/repository.py
"""
Event log, alert list and threshold configuration storage.

Reads and writes go through the same remote store as telemetry. When no store
exists, or the arbiter has fallen back to simulation, reads return the fixed
mock datasets and writes are logged and reported as successful, so the UI
always has something to render.

No operation raises: store failures are logged and turned into a fallback
dataset, None or False.
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
from smartbin.persistence.mock_data import mock_alerts, mock_event_history
from smartbin.state.models import (
    Alert,
    Event,
    EventType,
    ThresholdConfig,
    now_ms,
)
from smartbin.sync import paths
from smartbin.sync.arbiter import FallbackArbiter
from smartbin.sync.remote_store import RemoteStore, StoreError

__all__ = ["TelemetryRepository", "DEFAULT_HISTORY_LIMIT"]

DEFAULT_HISTORY_LIMIT = 50

# Values written by seed_database()
SEED_SENSORS = {
    paths.FILL_LEVEL: 25,
    paths.AIR_QUALITY: 75,
    paths.TEMPERATURE: 22,
    paths.HUMIDITY: 45,
}
SEED_ACTUATORS = (paths.LID_OPEN, paths.FAN_STATUS)


class TelemetryRepository:
    """
    Durable (or mocked) storage for events, alerts and thresholds.

    Example:
        >>> repository = TelemetryRepository(store, arbiter)
        >>> await repository.log_event("toggleLid", EventType.COMMAND)
        >>> events = await repository.get_event_history(limit=10)
    """

    def __init__(
        self,
        store: RemoteStore | None,
        arbiter: FallbackArbiter,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialise repository.

        Args:
            store: Remote store, or None when none could be constructed
            arbiter: Source arbiter consulted on every operation
            clock: Millisecond clock used for timestamps
        """
        self.store = store
        self.arbiter = arbiter
        self.clock = clock
        self.logger: SmartBinLogger = get_logger(__name__)

    @property
    def is_live(self) -> bool:
        return self.store is not None and self.arbiter.is_live

    # ----------------------------------------------------------------
    # Events
    # ----------------------------------------------------------------

    async def log_event(
        self,
        event: str,
        event_type: EventType | str = EventType.INFO,
        value: float | None = None,
    ) -> str | None:
        """Append an event to the log.

        Returns:
            Generated event id, or None if simulated or the write failed
        """
        try:
            type_value = EventType(event_type).value
        except ValueError:
            self.logger.warning(f"Unknown event type '{event_type}', logging as info")
            type_value = EventType.INFO.value

        if not self.is_live:
            self.logger.info(f"Event (simulated): {type_value} - {event}")
            return None

        try:
            return await self.store.push(
                paths.EVENTS,
                {
                    "event": event,
                    "type": type_value,
                    "value": value,
                    "timestamp": self.clock(),
                },
            )
        except StoreError as e:
            self.logger.error(f"Failed to log event '{event}': {e}")
            return None

    async def get_event_history(self, limit: int = DEFAULT_HISTORY_LIMIT) -> list[Event]:
        """Return the most recent events, newest first."""
        if not self.is_live:
            return mock_event_history(self.clock())[:limit]

        try:
            data = await self.store.get(paths.EVENTS)
        except StoreError as e:
            self.logger.error(f"Failed to read event history: {e}")
            return mock_event_history(self.clock())[:limit]

        events = [
            Event.from_dict(event_id, record)
            for event_id, record in _children(data)
        ]
        events.sort(key=lambda event: event.timestamp, reverse=True)
        return events[:limit]

    # ----------------------------------------------------------------
    # Alerts
    # ----------------------------------------------------------------

    async def save_alert(self, alert: Alert) -> str | None:
        """Store an alert as unacknowledged with a fresh timestamp.

        Returns:
            Generated alert id, or None if simulated or the write failed
        """
        if not self.is_live:
            self.logger.info(f"Alert (simulated): {alert.type.value} - {alert.title}")
            return None

        record = alert.to_dict()
        record.pop("id")
        record["timestamp"] = self.clock()
        record["acknowledged"] = False

        try:
            return await self.store.push(paths.ALERTS, record)
        except StoreError as e:
            self.logger.error(f"Failed to save alert '{alert.title}': {e}")
            return None

    async def get_alerts(self) -> list[Alert]:
        """Return all alerts, newest first."""
        if not self.is_live:
            return mock_alerts(self.clock())

        try:
            data = await self.store.get(paths.ALERTS)
        except StoreError as e:
            self.logger.error(f"Failed to read alerts: {e}")
            return mock_alerts(self.clock())

        alerts = [
            Alert.from_dict(alert_id, record) for alert_id, record in _children(data)
        ]
        alerts.sort(key=lambda alert: alert.timestamp, reverse=True)
        return alerts

    async def clear_alerts(self) -> bool:
        """Delete every stored alert."""
        if not self.is_live:
            self.logger.info("Alerts cleared (simulated)")
            return True

        try:
            await self.store.set(paths.ALERTS, None)
        except StoreError as e:
            self.logger.error(f"Failed to clear alerts: {e}")
            return False

        self.logger.log_event(EventSeverity.NOTICE, EventCategory.STORAGE, "Alerts cleared")
        return True

    # ----------------------------------------------------------------
    # Threshold configuration
    # ----------------------------------------------------------------

    async def get_thresholds(self) -> ThresholdConfig | None:
        """Return stored thresholds, defaults if none are stored.

        Returns:
            ThresholdConfig, or None if the read failed
        """
        if not self.is_live:
            return ThresholdConfig()

        try:
            data = await self.store.get(paths.THRESHOLDS)
        except StoreError as e:
            self.logger.error(f"Failed to read thresholds: {e}")
            return None

        if not isinstance(data, dict):
            return ThresholdConfig()
        return ThresholdConfig.from_dict(data)

    async def save_thresholds(self, thresholds: ThresholdConfig) -> bool:
        """Persist thresholds after checking their ordering.

        Returns:
            False if the thresholds are invalid or the write failed
        """
        try:
            thresholds.validate()
        except ValueError as e:
            self.logger.warning(f"Rejected threshold configuration: {e}")
            return False

        if not self.is_live:
            self.logger.info(f"Thresholds saved (simulated): {thresholds.to_dict()}")
            return True

        try:
            await self.store.set(
                paths.THRESHOLDS, {**thresholds.to_dict(), "updatedAt": self.clock()}
            )
        except StoreError as e:
            self.logger.error(f"Failed to save thresholds: {e}")
            return False

        self.logger.log_event(
            EventSeverity.NOTICE,
            EventCategory.STORAGE,
            "Threshold configuration updated",
            **thresholds.to_dict(),
        )
        return True

    # ----------------------------------------------------------------
    # Seeding
    # ----------------------------------------------------------------

    async def seed_database(self) -> bool:
        """Write default sensor, actuator and config values to the store.

        Returns:
            False if there is no live store or any write failed
        """
        if not self.is_live:
            self.logger.warning("No live remote store available to seed")
            return False

        self.logger.info("Seeding remote store with defaults")
        timestamp = self.clock()
        try:
            for path, value in SEED_SENSORS.items():
                await self.store.set(path, {"value": value, "timestamp": timestamp})

            for path in SEED_ACTUATORS:
                await self.store.set(path, {"status": False, "timestamp": timestamp})

            await self.store.set(
                paths.THRESHOLDS,
                {**ThresholdConfig().to_dict(), "updatedAt": timestamp},
            )

            await self.store.push(
                paths.EVENTS,
                {
                    "event": "System initialised",
                    "type": EventType.SYSTEM.value,
                    "timestamp": timestamp,
                },
            )
        except StoreError as e:
            self.logger.error(f"Failed to seed remote store: {e}")
            return False

        self.logger.info("Remote store seeded")
        return True


def _children(data: Any) -> list[tuple[str, dict[str, Any]]]:
    """List (key, record) pairs of a pushed-list node, skipping malformed ones."""
    if not isinstance(data, dict):
        return []
    return [(key, record) for key, record in data.items() if isinstance(record, dict)]
