# smartbin/logging_system.py
"""
Structured logging for the SmartBin telemetry service.

Provides:
- Console logging with wall-clock timestamps
- Optional rotating JSON log files
- Event severity and category classification
- A cached logger factory so every component shares one configuration

Components get their logger through get_logger(); the service runner calls
configure_logging() once at start-up to enable file output.
"""

import json
import logging
import logging.handlers
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

__all__ = [
    "EventSeverity",
    "EventCategory",
    "LogEntry",
    "WallTimeFormatter",
    "JSONFormatter",
    "SmartBinLogger",
    "configure_logging",
    "get_logger",
]

# ----------------------------------------------------------------
# Event classification
# ----------------------------------------------------------------


class EventSeverity(Enum):
    """
    Event severity levels.

    Lower number = higher severity
    """

    CRITICAL = 1  # Service cannot continue
    ERROR = 2  # Operation failed, service degraded
    WARNING = 3  # Fallback engaged, bad input dropped
    NOTICE = 4  # Normal but significant (commands, mode changes)
    INFO = 5
    DEBUG = 6


class EventCategory(Enum):
    """Event categories."""

    TELEMETRY = "telemetry"  # Sensor updates and history
    COMMAND = "command"  # Actuator commands
    ALERT = "alert"  # Threshold alerts
    SYNC = "sync"  # Remote store subscriptions and fallback
    STORAGE = "storage"  # Events, alerts and config persistence
    SYSTEM = "system"  # Lifecycle


LOGGING_TO_SEVERITY = {
    logging.CRITICAL: EventSeverity.CRITICAL,
    logging.ERROR: EventSeverity.ERROR,
    logging.WARNING: EventSeverity.WARNING,
    logging.INFO: EventSeverity.INFO,
    logging.DEBUG: EventSeverity.DEBUG,
}

SEVERITY_TO_LOGGING = {
    EventSeverity.CRITICAL: logging.CRITICAL,
    EventSeverity.ERROR: logging.ERROR,
    EventSeverity.WARNING: logging.WARNING,
    EventSeverity.NOTICE: logging.INFO,
    EventSeverity.INFO: logging.INFO,
    EventSeverity.DEBUG: logging.DEBUG,
}


# ----------------------------------------------------------------
# Structured log entry
# ----------------------------------------------------------------


@dataclass
class LogEntry:
    """Structured log entry."""

    wall_time: float
    severity: EventSeverity
    category: EventCategory
    message: str

    device: str = ""  # Bin identifier
    component: str = ""  # Logger name
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialisation."""
        entry_dict = {
            "wall_time": self.wall_time,
            "severity": self.severity.name,
            "category": self.category.value,
            "message": self.message,
        }
        if self.device:
            entry_dict["device"] = self.device
        if self.component:
            entry_dict["component"] = self.component
        if self.data:
            entry_dict["data"] = self.data
        return entry_dict

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def to_human_readable(self) -> str:
        """Convert to human-readable format."""
        category_str = f"[{self.category.value}]"
        device_str = f"{self.device}: " if self.device else ""
        return f"{category_str} {device_str}{self.message}"


# ----------------------------------------------------------------
# Formatters
# ----------------------------------------------------------------


class WallTimeFormatter(logging.Formatter):
    """Console format with wall-clock time and logger name."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)8s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def __init__(self, device: str = ""):
        super().__init__()
        self.device = device

    def format(self, record: logging.LogRecord) -> str:
        severity = LOGGING_TO_SEVERITY.get(record.levelno, EventSeverity.INFO)

        log_entry = LogEntry(
            wall_time=record.created,
            severity=severity,
            category=getattr(record, "category", EventCategory.SYSTEM),
            message=record.getMessage(),
            device=self.device,
            component=record.name,
        )

        if record.exc_info:
            log_entry.data["exception"] = self.formatException(record.exc_info)

        return log_entry.to_json()


# ----------------------------------------------------------------
# SmartBin logger
# ----------------------------------------------------------------


class SmartBinLogger:
    """
    Logger wrapper for SmartBin components.

    Wraps Python's logging with:
    - Console output with wall-clock time
    - Optional rotating JSON file output
    - Structured events with severity and category
    """

    def __init__(
        self,
        name: str,
        device: str = "",
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialise logger.

        Args:
            name: Logger name (typically module name)
            device: Bin identifier for context
            log_dir: Directory for log files (None = no file logging)
            enable_json: Enable JSON formatted logs (requires log_dir)
            enable_console: Enable console output
        """
        self.name = name
        self.device = device
        self.log_dir = log_dir

        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

        self.logger.handlers.clear()

        if enable_console:
            self._add_console_handler()

        if enable_json and log_dir:
            self._add_json_handler()

    def _add_console_handler(self) -> None:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        handler.setFormatter(WallTimeFormatter())
        self.logger.addHandler(handler)

    def _add_json_handler(self) -> None:
        """Add JSON file handler with rotation."""
        if not self.log_dir:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_file = self.log_dir / f"{self.device or 'smartbin'}.json.log"

        # 5MB per file, 3 backups
        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
        )
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(JSONFormatter(device=self.device))
        self.logger.addHandler(handler)

    # ----------------------------------------------------------------
    # Standard logging methods
    # ----------------------------------------------------------------

    def debug(self, message: str, **kwargs) -> None:
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.logger.error(message, **kwargs)

    def exception(self, message: str, **kwargs) -> None:
        """Log exception with traceback."""
        self.logger.exception(message, **kwargs)

    # ----------------------------------------------------------------
    # Structured events
    # ----------------------------------------------------------------

    def log_event(
        self,
        severity: EventSeverity,
        category: EventCategory,
        message: str,
        **data: Any,
    ) -> LogEntry:
        """
        Log a structured event.

        Args:
            severity: Event severity level
            category: Event category
            message: Event message
            **data: Additional context stored on the entry

        Returns:
            LogEntry that was created
        """
        entry = LogEntry(
            wall_time=time.time(),
            severity=severity,
            category=category,
            message=message,
            device=self.device,
            component=self.name,
            data=data,
        )

        log_level = SEVERITY_TO_LOGGING.get(severity, logging.INFO)
        self.logger.log(
            log_level, entry.to_human_readable(), extra={"category": category}
        )
        return entry


# ----------------------------------------------------------------
# Global logger factory
# ----------------------------------------------------------------

_loggers: dict[str, SmartBinLogger] = {}
_loggers_lock = threading.Lock()
_default_log_dir: Path | None = None


def configure_logging(log_dir: Path | str | None = None) -> None:
    """
    Configure global logging settings.

    Loggers created after this call write JSON files into log_dir.

    Args:
        log_dir: Directory for log files
    """
    global _default_log_dir

    if log_dir:
        _default_log_dir = Path(log_dir)
        _default_log_dir.mkdir(parents=True, exist_ok=True)
    else:
        _default_log_dir = None


def get_logger(name: str, device: str = "", **kwargs) -> SmartBinLogger:
    """
    Get or create a SmartBin logger.

    Thread-safe logger factory.

    Args:
        name: Logger name (typically __name__)
        device: Bin identifier for context
        **kwargs: Additional SmartBinLogger arguments

    Returns:
        SmartBinLogger instance
    """
    logger_key = f"{name}:{device}"

    with _loggers_lock:
        if logger_key not in _loggers:
            if "log_dir" not in kwargs and _default_log_dir:
                kwargs["log_dir"] = _default_log_dir

            _loggers[logger_key] = SmartBinLogger(name, device, **kwargs)

        return _loggers[logger_key]
