# smartbin/physics/hardware_simulator.py
"""
Demo hardware simulator.

Stands in for the microcontroller during presentations by writing a
repeating fill cycle straight into the remote store, so the live sync path
can be shown without a device attached:

- Fill level climbs 5% per step and wraps back to 0 after 100%
- Above 80% fill, gas rises by 20-70 ppm per step (max 500)
- Otherwise gas wanders by a few ppm between 40 and 150

Writes race with manual commands on the same paths; the last write wins.
"""

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass

from smartbin.state.models import now_ms
from smartbin.sync import paths
from smartbin.sync.remote_store import RemoteStore, StoreError

logger = logging.getLogger(__name__)

SOURCE_TAG = "demo_simulator"


@dataclass
class DemoState:
    level: float = 0.0
    ppm: float = 50.0


class HardwareSimulator:
    """
    Writes a synthetic fill cycle to the remote store on a timer.

    Example:
        >>> demo = HardwareSimulator(store)
        >>> demo.start()
        True
        >>> demo.stop()
        True
    """

    def __init__(
        self,
        store: RemoteStore | None,
        interval_seconds: float = 6.0,
        rng: random.Random | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialise demo writer.

        Args:
            store: Remote store to write into (None disables the demo)
            interval_seconds: Time between steps
            rng: Random source
            clock: Millisecond clock

        Raises:
            ValueError: If interval_seconds is not positive
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")

        self.store = store
        self.interval_seconds = interval_seconds
        self.rng = rng or random.Random()
        self.clock = clock
        self.state = DemoState()
        self._task: asyncio.Task | None = None

    @property
    def is_active(self) -> bool:
        return self._task is not None

    def start(self) -> bool:
        """Begin writing on the running event loop.

        Returns:
            False if there is no store to write into
        """
        if self._task is not None:
            logger.info("Demo mode already active")
            return True

        if self.store is None:
            logger.error("Cannot start demo mode: no remote store available")
            return False

        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Demo hardware simulator started ({self.interval_seconds}s steps)")
        return True

    def stop(self) -> bool:
        """Stop writing.

        Returns:
            True if the demo was running
        """
        if self._task is None:
            return False

        self._task.cancel()
        self._task = None
        logger.info("Demo hardware simulator stopped")
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.step()
            except StoreError as e:
                logger.error(f"Demo step failed: {e}")
            except Exception:
                logger.exception("Demo step crashed")

    def advance(self) -> DemoState:
        """Move the fill cycle forward one step."""
        s = self.state
        s.level += 5

        if s.level > 100:
            s.level = 0
            s.ppm = 50
            logger.info("Demo cycle restarted")

        if s.level > 80:
            s.ppm = min(500, s.ppm + self.rng.randint(20, 69))
        else:
            s.ppm += self.rng.randint(-3, 6)
            s.ppm = max(40, min(150, s.ppm))

        return s

    async def step(self) -> None:
        """Advance one step and write level and gas to the store.

        Raises:
            StoreError: If the store rejects a write
        """
        s = self.advance()
        for path, value in ((paths.FILL_LEVEL, s.level), (paths.AIR_QUALITY, s.ppm)):
            await self.store.set(
                path,
                {"value": value, "timestamp": self.clock(), "source": SOURCE_TAG},
            )
        logger.debug(f"Demo step: level={s.level}%, ppm={s.ppm}")
