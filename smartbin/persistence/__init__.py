"""Event log, alert list and threshold configuration storage."""

from smartbin.persistence.repository import DEFAULT_HISTORY_LIMIT, TelemetryRepository

__all__ = ["DEFAULT_HISTORY_LIMIT", "TelemetryRepository"]
