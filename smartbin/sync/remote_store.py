# smartbin/sync/remote_store.py
"""
Remote data store contract and in-process implementation.

The synchronisation layer needs five things from a realtime store:
subscribe to a path, set a value, push onto a list, update several children
at once, and read a path once. RemoteStore captures that contract; MemoryStore
implements it in-process with the same path and notification semantics a
hosted realtime database provides:

- Paths are slash-separated keys into a tree of dicts
- Subscribers receive the current value immediately, then on every change
  to their path, any ancestor, or any descendant
- Pushed children get keys that sort in insertion order
- Setting None deletes the node
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from smartbin.logging_system import SmartBinLogger, get_logger
from smartbin.state.models import now_ms

__all__ = [
    "SERVER_TIMESTAMP",
    "StoreError",
    "RemoteStore",
    "MemoryStore",
]

ValueCallback = Callable[[Any], None]
ErrorCallback = Callable[[Exception], None]


class _ServerTimestamp:
    """Placeholder resolved by the store to its own clock at write time."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class StoreError(Exception):
    """A remote store operation or subscription failed.

    Attributes:
        path: Store path involved, if any
    """

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


def split_path(path: str) -> list[str]:
    """Split a store path into its keys.

    Raises:
        ValueError: If the path is empty
    """
    keys = [key for key in path.strip("/").split("/") if key]
    if not keys:
        raise ValueError("path cannot be empty")
    return keys


class RemoteStore(ABC):
    """Contract the synchronisation layer requires from a realtime store."""

    @abstractmethod
    def subscribe(
        self,
        path: str,
        on_value: ValueCallback,
        on_error: ErrorCallback | None = None,
    ) -> Callable[[], None]:
        """Listen to a path.

        on_value receives the current value (None if absent) immediately and
        again on every change. on_error is called once if the subscription is
        refused or revoked; no further values follow.

        Returns:
            Function detaching the subscription
        """

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the value at path; None deletes it.

        Raises:
            StoreError: If the write is rejected
        """

    @abstractmethod
    async def push(self, path: str, value: Any) -> str:
        """Append a child with a generated, insertion-ordered key.

        Returns:
            Generated key

        Raises:
            StoreError: If the write is rejected
        """

    @abstractmethod
    async def update(self, path: str, values: dict[str, Any]) -> None:
        """Set several children of path in one write.

        Raises:
            StoreError: If the write is rejected
        """

    @abstractmethod
    async def get(self, path: str) -> Any:
        """Read the value at path once.

        Raises:
            StoreError: If the read is rejected
        """


@dataclass
class _Subscription:
    path: tuple[str, ...]
    on_value: ValueCallback
    on_error: ErrorCallback | None
    active: bool = True


class MemoryStore(RemoteStore):
    """
    In-process realtime store.

    Holds the whole tree in memory and delivers change notifications
    synchronously within the write. Used for local deployments where the
    device bridge and the service share one process, and as the store in
    tests.

    Test hooks:
    - deny(path): refuse current and future subscriptions under path
    - fail_writes: make set/push/update raise StoreError

    Example:
        >>> store = MemoryStore()
        >>> unsubscribe = store.subscribe("sensors/fill_level", print)
        None
        >>> await store.set("sensors/fill_level", 42)
        42
    """

    def __init__(self, clock: Callable[[], int] = now_ms):
        self.clock = clock
        self.fail_writes = False

        self._root: dict[str, Any] = {}
        self._subscriptions: list[_Subscription] = []
        self._denied: set[tuple[str, ...]] = set()
        self._push_counter = itertools.count()
        self._lock = asyncio.Lock()
        self.logger: SmartBinLogger = get_logger(__name__)

    # ----------------------------------------------------------------
    # Subscriptions
    # ----------------------------------------------------------------

    def subscribe(
        self,
        path: str,
        on_value: ValueCallback,
        on_error: ErrorCallback | None = None,
    ) -> Callable[[], None]:
        keys = tuple(split_path(path))
        subscription = _Subscription(keys, on_value, on_error)

        if self._is_denied(keys):
            self._fail(subscription, "permission denied")
            return lambda: None

        self._subscriptions.append(subscription)
        on_value(self._read(keys))

        def unsubscribe() -> None:
            subscription.active = False
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def deny(self, path: str) -> None:
        """Refuse access under path, failing any live subscriptions there."""
        keys = tuple(split_path(path))
        self._denied.add(keys)
        for subscription in list(self._subscriptions):
            # Failing one subscription may detach others
            if subscription.active and self._is_denied(subscription.path):
                self._subscriptions.remove(subscription)
                self._fail(subscription, "permission denied")

    def _is_denied(self, keys: tuple[str, ...]) -> bool:
        return any(keys[: len(denied)] == denied for denied in self._denied)

    def _fail(self, subscription: _Subscription, reason: str) -> None:
        subscription.active = False
        path = "/".join(subscription.path)
        self.logger.warning(f"Subscription to '{path}' failed: {reason}")
        if subscription.on_error is not None:
            subscription.on_error(StoreError(f"{reason}: {path}", path=path))

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    # ----------------------------------------------------------------
    # Writes
    # ----------------------------------------------------------------

    async def set(self, path: str, value: Any) -> None:
        keys = tuple(split_path(path))
        async with self._lock:
            self._check_writable(keys)
            self._write(keys, self._resolve(value))
        self._notify(keys)

    async def push(self, path: str, value: Any) -> str:
        keys = tuple(split_path(path))
        async with self._lock:
            self._check_writable(keys)
            key = f"{self.clock():013d}-{next(self._push_counter):06d}"
            self._write((*keys, key), self._resolve(value))
        self._notify((*keys, key))
        return key

    async def update(self, path: str, values: dict[str, Any]) -> None:
        keys = tuple(split_path(path))
        if not values:
            raise ValueError("values cannot be empty")

        async with self._lock:
            self._check_writable(keys)
            written = []
            for child, value in values.items():
                child_keys = (*keys, *split_path(child))
                self._write(child_keys, self._resolve(value))
                written.append(child_keys)
        for child_keys in written:
            self._notify(child_keys)

    def _check_writable(self, keys: tuple[str, ...]) -> None:
        path = "/".join(keys)
        if self.fail_writes:
            raise StoreError(f"write rejected: {path}", path=path)
        if self._is_denied(keys):
            raise StoreError(f"permission denied: {path}", path=path)

    def _resolve(self, value: Any) -> Any:
        """Deep-copy a value, replacing SERVER_TIMESTAMP placeholders."""
        if value is SERVER_TIMESTAMP:
            return self.clock()
        if isinstance(value, dict):
            return {k: self._resolve(v) for k, v in value.items() if v is not None}
        if isinstance(value, list | tuple):
            return [self._resolve(v) for v in value]
        return copy.deepcopy(value)

    def _write(self, keys: tuple[str, ...], value: Any) -> None:
        node = self._root
        for key in keys[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                node[key] = child
            node = child

        if value is None or value == {}:
            node.pop(keys[-1], None)
        else:
            node[keys[-1]] = value

    # ----------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------

    async def get(self, path: str) -> Any:
        keys = tuple(split_path(path))
        if self._is_denied(keys):
            raise StoreError(f"permission denied: {'/'.join(keys)}", path=path)
        async with self._lock:
            return self._read(keys)

    def _read(self, keys: tuple[str, ...]) -> Any:
        node: Any = self._root
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                return None
            node = node[key]
        return copy.deepcopy(node)

    def _notify(self, changed: tuple[str, ...]) -> None:
        """Deliver fresh values to subscribers related to the changed path."""
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            path = subscription.path
            depth = min(len(path), len(changed))
            if path[:depth] == changed[:depth]:
                subscription.on_value(self._read(path))
