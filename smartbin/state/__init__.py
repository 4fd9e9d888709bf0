"""
State management for SmartBin telemetry.

- models: canonical SensorState, commands, thresholds, events and alerts
- listeners: ordered observer registry
- state_hub: the single reactive source of truth consumed by the UI
- status: derived indicator states for display
"""

from smartbin.state.models import (
    HISTORY_LENGTH,
    Alert,
    AlertType,
    Command,
    Event,
    EventType,
    SensorState,
    ThresholdConfig,
)

__all__ = [
    "HISTORY_LENGTH",
    "Alert",
    "AlertType",
    "Command",
    "Event",
    "EventType",
    "SensorState",
    "ThresholdConfig",
]
