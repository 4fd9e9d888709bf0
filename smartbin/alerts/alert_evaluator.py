# smartbin/alerts/alert_evaluator.py
"""
Threshold alert evaluation with per-kind cooldowns.

Watches the state stream and raises user-facing alerts without flooding:

- Gas: danger above gas_danger, otherwise warning above gas_warning
- Level: critical at or above level_critical, otherwise warning at or above
  level_warning
- Each of the four kinds has its own last-fired time and cooldown
- At most one gas alert and one level alert per update

Evaluation is level-triggered: an alert refires every cooldown for as long
as its condition holds.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from smartbin.logging_system import (
    EventCategory,
    EventSeverity,
    SmartBinLogger,
    get_logger,
)
from smartbin.state.listeners import ListenerRegistry
from smartbin.state.models import (
    Alert,
    AlertType,
    SensorState,
    ThresholdConfig,
    now_ms,
)

__all__ = ["AlertKind", "AlertEvaluator", "DEFAULT_COOLDOWN_MS"]

DEFAULT_COOLDOWN_MS = 10_000


class AlertKind(Enum):
    GAS_DANGER = "gas_danger"
    GAS_WARNING = "gas_warning"
    LEVEL_CRITICAL = "level_critical"
    LEVEL_WARNING = "level_warning"


@dataclass(frozen=True)
class _AlertTemplate:
    type: AlertType
    title: str
    message: str


_TEMPLATES = {
    AlertKind.GAS_DANGER: _AlertTemplate(
        AlertType.DANGER,
        "Dangerous gas levels detected",
        "Gas concentration at {value:.0f} ppm",
    ),
    AlertKind.GAS_WARNING: _AlertTemplate(
        AlertType.WARNING,
        "Poor air quality",
        "Gas concentration at {value:.0f} ppm",
    ),
    AlertKind.LEVEL_CRITICAL: _AlertTemplate(
        AlertType.DANGER,
        "Bin full",
        "Fill level at {value:.1f}%",
    ),
    AlertKind.LEVEL_WARNING: _AlertTemplate(
        AlertType.INFO,
        "Fill level high",
        "Fill level at {value:.1f}%",
    ),
}


class AlertEvaluator:
    """
    Derives threshold alerts from sensor snapshots.

    Example:
        >>> evaluator = AlertEvaluator(ThresholdConfig())
        >>> remove = evaluator.add_listener(print)
        >>> unsubscribe = hub.subscribe(evaluator.evaluate)
    """

    def __init__(
        self,
        thresholds: ThresholdConfig | None = None,
        cooldown_ms: int = DEFAULT_COOLDOWN_MS,
        level_warning_factor: float = 2.0,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialise evaluator.

        Args:
            thresholds: Alert thresholds (defaults if None)
            cooldown_ms: Minimum gap between two alerts of the same kind
            level_warning_factor: Cooldown multiplier for level warnings
            clock: Millisecond clock

        Raises:
            ValueError: If cooldown or factor is negative, or thresholds invalid
        """
        if cooldown_ms < 0:
            raise ValueError(f"cooldown_ms must be >= 0, got {cooldown_ms}")
        if level_warning_factor < 0:
            raise ValueError(
                f"level_warning_factor must be >= 0, got {level_warning_factor}"
            )

        self.thresholds = thresholds or ThresholdConfig()
        self.thresholds.validate()
        self.clock = clock

        self._cooldowns = {
            AlertKind.GAS_DANGER: cooldown_ms,
            AlertKind.GAS_WARNING: cooldown_ms,
            AlertKind.LEVEL_CRITICAL: cooldown_ms,
            AlertKind.LEVEL_WARNING: cooldown_ms * level_warning_factor,
        }
        self._last_fired: dict[AlertKind, int] = {}
        self._listeners: ListenerRegistry[Alert] = ListenerRegistry()
        self.logger: SmartBinLogger = get_logger(__name__)

    def update_thresholds(self, thresholds: ThresholdConfig) -> None:
        """Swap in new thresholds; cooldown history is kept.

        Raises:
            ValueError: If the thresholds are invalid
        """
        thresholds.validate()
        self.thresholds = thresholds
        self.logger.info(f"Alert thresholds updated: {thresholds.to_dict()}")

    def add_listener(self, callback: Callable[[Alert], None]) -> Callable[[], None]:
        return self._listeners.add(callback)

    def reset(self) -> None:
        """Forget every last-fired time."""
        self._last_fired.clear()

    # ----------------------------------------------------------------
    # Evaluation
    # ----------------------------------------------------------------

    def evaluate(self, state: SensorState) -> list[Alert]:
        """Check one snapshot and fire any alerts that are due.

        Returns:
            Alerts fired by this update (at most one gas, one level)
        """
        now = self.clock()
        fired = []

        for kind, value in (
            (self._gas_kind(state.ppm), state.ppm),
            (self._level_kind(state.level), state.level),
        ):
            if kind is None or not self._cooled_down(kind, now):
                continue

            self._last_fired[kind] = now
            alert = self._build_alert(kind, value, now)
            fired.append(alert)

            self.logger.log_event(
                EventSeverity.WARNING,
                EventCategory.ALERT,
                f"{alert.title}: {alert.message}",
                kind=kind.value,
                value=value,
            )
            self._listeners.notify(alert)

        return fired

    def _gas_kind(self, ppm: float) -> AlertKind | None:
        if ppm > self.thresholds.gas_danger:
            return AlertKind.GAS_DANGER
        if ppm > self.thresholds.gas_warning:
            return AlertKind.GAS_WARNING
        return None

    def _level_kind(self, level: float) -> AlertKind | None:
        if level >= self.thresholds.level_critical:
            return AlertKind.LEVEL_CRITICAL
        if level >= self.thresholds.level_warning:
            return AlertKind.LEVEL_WARNING
        return None

    def _cooled_down(self, kind: AlertKind, now: int) -> bool:
        last = self._last_fired.get(kind)
        return last is None or now - last > self._cooldowns[kind]

    def _build_alert(self, kind: AlertKind, value: float, now: int) -> Alert:
        template = _TEMPLATES[kind]
        return Alert(
            type=template.type,
            title=template.title,
            message=template.message.format(value=value),
            value=value,
            timestamp=now,
        )
