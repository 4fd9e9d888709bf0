# smartbin/sync/arbiter.py
"""
Fallback arbiter: decides whether the remote store is the active source.
"""

from collections.abc import Callable
from enum import Enum

from smartbin.logging_system import (
    EventCategory,
    EventSeverity,
    SmartBinLogger,
    get_logger,
)

__all__ = ["SourceMode", "FallbackArbiter"]


class SourceMode(Enum):
    """Which upstream source is authoritative."""

    LIVE = "live"  # Remote store subscriptions
    FALLBACK = "fallback"  # Local physics simulation


class FallbackArbiter:
    """
    Two-state LIVE/FALLBACK switch with a single writer.

    Starts in FALLBACK when no store could be constructed (or simulation is
    forced by configuration), otherwise in LIVE. LIVE -> FALLBACK fires on
    the first subscription error and is permanent for this instance; there
    is no automatic re-promotion.

    Example:
        >>> arbiter = FallbackArbiter(live_available=True)
        >>> arbiter.add_fallback_callback(start_simulator)
        >>> arbiter.enter_fallback("permission denied on sensors/fill_level")
        >>> arbiter.is_fallback
        True
    """

    def __init__(self, live_available: bool):
        """Initialise arbiter.

        Args:
            live_available: Whether a remote store exists and may be used
        """
        self._mode = SourceMode.LIVE if live_available else SourceMode.FALLBACK
        self._fallback_reason = "" if live_available else "remote store unavailable"
        self._callbacks: list[Callable[[str], None]] = []
        self.logger: SmartBinLogger = get_logger(__name__)

        self.logger.info(f"Source arbiter starting in {self._mode.value} mode")

    @property
    def mode(self) -> SourceMode:
        return self._mode

    @property
    def is_live(self) -> bool:
        return self._mode is SourceMode.LIVE

    @property
    def is_fallback(self) -> bool:
        return self._mode is SourceMode.FALLBACK

    @property
    def fallback_reason(self) -> str:
        return self._fallback_reason

    def add_fallback_callback(self, callback: Callable[[str], None]) -> None:
        """Register a callback run once, with the reason, on LIVE -> FALLBACK."""
        self._callbacks.append(callback)

    def enter_fallback(self, reason: str) -> bool:
        """Switch to FALLBACK.

        Returns:
            True if this call performed the transition, False if already there
        """
        if self._mode is SourceMode.FALLBACK:
            return False

        self._mode = SourceMode.FALLBACK
        self._fallback_reason = reason
        self.logger.log_event(
            EventSeverity.WARNING,
            EventCategory.SYNC,
            f"Switching to simulation fallback: {reason}",
        )

        for callback in list(self._callbacks):
            callback(reason)
        return True
