# smartbin/persistence/mock_data.py
"""
Fixed datasets shown when no live store is reachable.
"""

from smartbin.state.models import Alert, AlertType, Event, EventType

HOUR_MS = 3_600_000

_MOCK_EVENTS = [
    ("Fan switched on", EventType.COMMAND, None),
    ("Gas above 350 ppm", EventType.WARNING, 352),
    ("Lid opened", EventType.COMMAND, None),
    ("Fill level high", EventType.WARNING, 82),
    ("System started", EventType.SYSTEM, None),
    ("Configuration updated", EventType.SYSTEM, None),
    ("Lid closed", EventType.COMMAND, None),
    ("Fan switched off", EventType.COMMAND, None),
    ("Bin emptied", EventType.MAINTENANCE, 15),
    ("Gas levels back to normal", EventType.INFO, 85),
]


def mock_event_history(now: int) -> list[Event]:
    """Ten events, one hour apart, newest first."""
    return [
        Event(
            id=f"mock-{index}",
            event=text,
            type=event_type,
            value=value,
            timestamp=now - index * HOUR_MS,
        )
        for index, (text, event_type, value) in enumerate(_MOCK_EVENTS)
    ]


def mock_alerts(now: int) -> list[Alert]:
    """Three alerts, newest first."""
    return [
        Alert(
            id="alert-1",
            type=AlertType.DANGER,
            title="Dangerous gas levels detected",
            message="Gas concentration above 400 ppm",
            value=423,
            timestamp=now - HOUR_MS // 2,
        ),
        Alert(
            id="alert-2",
            type=AlertType.WARNING,
            title="Fill level high",
            message="The bin is at 85% of capacity",
            value=85,
            timestamp=now - HOUR_MS,
        ),
        Alert(
            id="alert-3",
            type=AlertType.WARNING,
            title="Poor air quality",
            message="ppm above the warning threshold",
            value=315,
            timestamp=now - 2 * HOUR_MS,
            acknowledged=True,
        ),
    ]
