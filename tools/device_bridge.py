#!/usr/bin/env python3
# tools/device_bridge.py
"""
Device bridge.

Reads the bin controller's serial output and forwards its readings into the
remote store. The controller prints one JSON object per line, e.g.

    {"fill_level": 42, "air_quality": 180}

The serial line is reached through a serial-to-network server, so the bridge
only needs a TCP stream. Lines that are not JSON objects, or carry no
numeric reading, are dropped.

Inside the service the bridge writes into the store shared with the state
hub (see bridge.yml). Run on its own with `python -m tools.device_bridge`, it
writes into a private in-memory store that nothing else reads and only logs
the readings.
"""

import argparse
import asyncio
import json
import math
from typing import Any

from smartbin.logging_system import (
    EventCategory,
    EventSeverity,
    SmartBinLogger,
    get_logger,
)
from smartbin.sync import paths
from smartbin.sync.remote_store import SERVER_TIMESTAMP, MemoryStore, RemoteStore, StoreError

__all__ = ["DeviceBridge", "parse_device_line", "READING_FIELDS"]

READING_FIELDS = ("fill_level", "air_quality")

logger = get_logger(__name__)


def parse_device_line(line: str | bytes) -> dict[str, float] | None:
    """
    Parse one line of controller output.

    Returns:
        Dict holding whichever of fill_level/air_quality were present, as
        floats, or None if the line is blank, not a JSON object, has a
        non-numeric reading, or has no reading at all
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")

    line = line.strip()
    if not line:
        return None

    try:
        msg = json.loads(line)
    except json.JSONDecodeError:
        logger.debug(f"Ignoring non-JSON line: {line!r}")
        return None

    if not isinstance(msg, dict):
        return None

    reading: dict[str, float] = {}
    for key in READING_FIELDS:
        if key not in msg:
            continue
        raw = msg[key]
        if isinstance(raw, bool):
            return None
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(value):
            return None
        reading[key] = value

    if not reading:
        logger.warning(f"JSON without {' or '.join(READING_FIELDS)}: {line!r}")
        return None

    return reading


class DeviceBridge:
    """
    Forwards controller readings from a TCP stream into the remote store.

    Example:
        >>> bridge = DeviceBridge(store, host="localhost", port=7000)
        >>> await bridge.start()
        >>> await bridge.stop()
    """

    def __init__(
        self,
        store: RemoteStore,
        *,
        host: str = "localhost",
        port: int = 7000,
        reconnect_delay: float = 5.0,
    ):
        """Initialise bridge.

        Args:
            store: Remote store to write readings into
            host: Serial-to-network server host
            port: Serial-to-network server port
            reconnect_delay: Seconds to wait before reconnecting

        Raises:
            ValueError: If parameters are invalid
        """
        if store is None:
            raise ValueError("store cannot be None")
        if not host:
            raise ValueError("host cannot be empty")
        if not (0 < port < 65536):
            raise ValueError(f"port must be 1-65535, got {port}")
        if reconnect_delay <= 0:
            raise ValueError(f"reconnect_delay must be > 0, got {reconnect_delay}")

        self.store = store
        self.host = host
        self.port = port
        self.reconnect_delay = reconnect_delay

        self.lines_received = 0
        self.readings_forwarded = 0
        self.lines_dropped = 0
        self._task: asyncio.Task | None = None
        self.logger: SmartBinLogger = get_logger(__name__, device=f"bridge_{port}")

    # ----------------------------------------------------------------
    # Line handling
    # ----------------------------------------------------------------

    async def process_line(self, line: str | bytes) -> bool:
        """Parse one line and forward it.

        Returns:
            True if a reading was written to the store
        """
        self.lines_received += 1
        reading = parse_device_line(line)
        if reading is None:
            self.lines_dropped += 1
            return False

        values: dict[str, Any] = dict(reading)
        values["last_update"] = SERVER_TIMESTAMP

        try:
            await self.store.update(paths.SENSORS, values)
        except StoreError as e:
            self.logger.error(f"Failed to forward reading {reading}: {e}")
            return False

        self.readings_forwarded += 1
        self.logger.log_event(
            EventSeverity.DEBUG,
            EventCategory.TELEMETRY,
            "Device reading forwarded",
            **reading,
        )
        return True

    async def consume(self, reader: asyncio.StreamReader) -> None:
        """Forward every line from reader until it reaches EOF."""
        while True:
            line = await reader.readline()
            if not line:
                break
            await self.process_line(line)

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None

    async def start(self) -> None:
        """Connect in the background, reconnecting whenever the link drops."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

        self.logger.info(
            f"Device bridge stopped: {self.readings_forwarded} readings forwarded, "
            f"{self.lines_dropped} lines dropped"
        )

    async def run(self) -> None:
        while True:
            try:
                reader, writer = await asyncio.open_connection(self.host, self.port)
            except OSError as e:
                self.logger.warning(
                    f"Cannot reach device at {self.host}:{self.port}: {e}; "
                    f"retrying in {self.reconnect_delay}s"
                )
                await asyncio.sleep(self.reconnect_delay)
                continue

            self.logger.log_event(
                EventSeverity.NOTICE,
                EventCategory.SYSTEM,
                f"Device bridge connected to {self.host}:{self.port}",
            )
            try:
                await self.consume(reader)
                self.logger.warning("Device connection closed")
            except (ConnectionError, asyncio.IncompleteReadError) as e:
                self.logger.warning(f"Device connection lost: {e}")
            finally:
                writer.close()

            await asyncio.sleep(self.reconnect_delay)


# ----------------------------------------------------------------
# Command-line interface
# ----------------------------------------------------------------


async def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Forward SmartBin controller readings into the telemetry store",
        epilog=(
            "Standalone mode: readings go to a private in-memory store and are "
            "only logged. Enable the bridge in bridge.yml to feed the running service."
        ),
    )
    parser.add_argument("--host", default="localhost", help="Serial-to-network server host")
    parser.add_argument("--port", type=int, default=7000, help="Serial-to-network server port")
    parser.add_argument(
        "--reconnect-delay", type=float, default=5.0, help="Seconds between reconnects"
    )
    args = parser.parse_args(argv)

    def show_sensors(sensors: Any) -> None:
        if sensors:
            logger.info(f"Sensors: {sensors}")

    store = MemoryStore()
    store.subscribe(paths.SENSORS, show_sensors)

    bridge = DeviceBridge(
        store, host=args.host, port=args.port, reconnect_delay=args.reconnect_delay
    )
    await bridge.run()


def cli() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
