# smartbin/state/models.py
"""
Canonical data model for SmartBin telemetry.

SensorState is the immutable snapshot handed to every subscriber. Histories
are tuples so a snapshot can never be observed mid-update.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

__all__ = [
    "HISTORY_LENGTH",
    "SensorState",
    "Command",
    "apply_command",
    "push_history",
    "seed_history",
    "ThresholdConfig",
    "EventType",
    "Event",
    "AlertType",
    "Alert",
    "now_ms",
]

HISTORY_LENGTH = 20


def now_ms() -> int:
    """Wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def seed_history(value: float, length: int = HISTORY_LENGTH) -> tuple[float, ...]:
    """Build a full-length history filled with one value."""
    return (value,) * length


def push_history(history: tuple[float, ...], sample: float) -> tuple[float, ...]:
    """Append a sample and evict the oldest, keeping the length fixed."""
    return (*history[1:], sample)


# ----------------------------------------------------------------
# Sensor state
# ----------------------------------------------------------------


@dataclass(frozen=True)
class SensorState:
    """Snapshot of one bin's telemetry.

    Attributes:
        level: Fill percentage (0-100)
        ppm: Air quality in parts per million (0-600)
        lid_open: Lid position
        fan_on: Extraction fan state
        temperature: Degrees Celsius
        humidity: Relative humidity percent
        timestamp: Milliseconds since epoch of the last update
        ppm_history: Last 20 ppm samples, most recent last
        level_history: Last 20 level samples, most recent last
    """

    level: float = 0.0
    ppm: float = 0.0
    lid_open: bool = False
    fan_on: bool = False
    temperature: float = 22.0
    humidity: float = 45.0
    timestamp: int = field(default_factory=now_ms)
    ppm_history: tuple[float, ...] = field(default_factory=lambda: seed_history(0))
    level_history: tuple[float, ...] = field(default_factory=lambda: seed_history(0))

    def with_changes(self, **changes: Any) -> SensorState:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase shape consumed by the UI."""
        return {
            "level": self.level,
            "ppm": self.ppm,
            "lidOpen": self.lid_open,
            "fanOn": self.fan_on,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "timestamp": self.timestamp,
            "ppmHistory": list(self.ppm_history),
            "levelHistory": list(self.level_history),
        }


# ----------------------------------------------------------------
# Commands
# ----------------------------------------------------------------


class Command(Enum):
    """Actuator commands accepted from the UI."""

    OPEN_LID = "openLid"
    CLOSE_LID = "closeLid"
    TOGGLE_LID = "toggleLid"
    FAN_ON = "fanOn"
    FAN_OFF = "fanOff"
    TOGGLE_FAN = "toggleFan"

    @classmethod
    def parse(cls, tag: Command | str | None) -> Command | None:
        """Resolve a command tag, returning None if it is not recognised."""
        if isinstance(tag, Command):
            return tag
        try:
            return cls(tag)
        except ValueError:
            return None

    @property
    def targets_lid(self) -> bool:
        return self in (Command.OPEN_LID, Command.CLOSE_LID, Command.TOGGLE_LID)


def apply_command(command: Command, lid_open: bool, fan_on: bool) -> tuple[bool, bool]:
    """Compute the new (lid_open, fan_on) pair for a command."""
    if command is Command.OPEN_LID:
        return True, fan_on
    if command is Command.CLOSE_LID:
        return False, fan_on
    if command is Command.TOGGLE_LID:
        return not lid_open, fan_on
    if command is Command.FAN_ON:
        return lid_open, True
    if command is Command.FAN_OFF:
        return lid_open, False
    return lid_open, not fan_on


# ----------------------------------------------------------------
# Threshold configuration
# ----------------------------------------------------------------


@dataclass(frozen=True)
class ThresholdConfig:
    """Alert thresholds.

    Attributes:
        gas_warning: ppm above which air quality is poor
        gas_danger: ppm above which gas levels are dangerous
        level_warning: fill percentage considered almost full
        level_critical: fill percentage considered full
        max_distance: ultrasonic sensor range in cm at empty
    """

    gas_warning: float = 300
    gas_danger: float = 400
    level_warning: float = 80
    level_critical: float = 95
    max_distance: float = 100

    def validate(self) -> None:
        """Check threshold ordering.

        Raises:
            ValueError: If a warning tier is not strictly below its upper tier
        """
        if self.gas_warning >= self.gas_danger:
            raise ValueError(
                f"gas_warning ({self.gas_warning}) must be below "
                f"gas_danger ({self.gas_danger})"
            )
        if self.level_warning >= self.level_critical:
            raise ValueError(
                f"level_warning ({self.level_warning}) must be below "
                f"level_critical ({self.level_critical})"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ThresholdConfig:
        """Build from the stored camelCase shape, filling gaps with defaults."""
        defaults = cls()
        return cls(
            gas_warning=data.get("gasWarning", defaults.gas_warning),
            gas_danger=data.get("gasDanger", defaults.gas_danger),
            level_warning=data.get("levelWarning", defaults.level_warning),
            level_critical=data.get("levelCritical", defaults.level_critical),
            max_distance=data.get("maxDistance", defaults.max_distance),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "gasWarning": self.gas_warning,
            "gasDanger": self.gas_danger,
            "levelWarning": self.level_warning,
            "levelCritical": self.level_critical,
            "maxDistance": self.max_distance,
        }


# ----------------------------------------------------------------
# Events and alerts
# ----------------------------------------------------------------


class EventType(Enum):
    WARNING = "warning"
    DANGER = "danger"
    COMMAND = "command"
    SYSTEM = "system"
    MAINTENANCE = "maintenance"
    INFO = "info"


@dataclass(frozen=True)
class Event:
    """Entry in the append-only event log."""

    id: str
    event: str
    type: EventType
    value: float | None
    timestamp: int

    @classmethod
    def from_dict(cls, event_id: str, data: dict[str, Any]) -> Event:
        try:
            event_type = EventType(data.get("type", "info"))
        except ValueError:
            event_type = EventType.INFO
        return cls(
            id=event_id,
            event=str(data.get("event", "")),
            type=event_type,
            value=data.get("value"),
            timestamp=int(data.get("timestamp") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event": self.event,
            "type": self.type.value,
            "value": self.value,
            "timestamp": self.timestamp,
        }


class AlertType(Enum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True)
class Alert:
    """User-facing alert, raised by the evaluator or created manually."""

    type: AlertType
    title: str
    message: str
    value: float | None = None
    timestamp: int = field(default_factory=now_ms)
    acknowledged: bool = False
    id: str = ""

    @classmethod
    def from_dict(cls, alert_id: str, data: dict[str, Any]) -> Alert:
        try:
            alert_type = AlertType(data.get("type", "info"))
        except ValueError:
            alert_type = AlertType.INFO
        return cls(
            id=alert_id,
            type=alert_type,
            title=str(data.get("title", "")),
            message=str(data.get("message", "")),
            value=data.get("value"),
            timestamp=int(data.get("timestamp") or 0),
            acknowledged=bool(data.get("acknowledged", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "value": self.value,
            "timestamp": self.timestamp,
            "acknowledged": self.acknowledged,
        }
