# smartbin/state/listeners.py
"""
Observer registry with stable identity for removal.
"""

from collections.abc import Callable
from typing import Generic, TypeVar

from smartbin.logging_system import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

__all__ = ["ListenerRegistry"]


class ListenerRegistry(Generic[T]):
    """Ordered set of callbacks.

    Each registration gets its own token, so the same callable registered
    twice is delivered twice and removed one registration at a time.
    Delivery is synchronous and in registration order. A listener that
    raises is logged and skipped; the rest still receive the value.

    Example:
        >>> registry = ListenerRegistry()
        >>> remove = registry.add(print)
        >>> registry.notify("hello")
        hello
        >>> remove()
    """

    def __init__(self):
        self._listeners: dict[int, Callable[[T], None]] = {}
        self._next_token = 0

    def add(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a callback.

        Returns:
            Function removing exactly this registration; safe to call twice
        """
        if not callable(callback):
            raise ValueError("callback must be callable")

        token = self._next_token
        self._next_token += 1
        self._listeners[token] = callback

        def remove() -> None:
            self._listeners.pop(token, None)

        return remove

    def notify(self, value: T) -> None:
        """Deliver a value to every listener registered at call time."""
        # Snapshot so listeners may unsubscribe during delivery
        for callback in list(self._listeners.values()):
            try:
                callback(value)
            except Exception:
                logger.exception(f"Listener {callback!r} failed")

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
