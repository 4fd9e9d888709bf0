# smartbin/physics/bin_physics.py
"""
Smart bin physics simulation.

Models a slowly filling waste bin with:
- Fill level rising at a constant rate per tick
- Gas concentration that builds up as the bin fills
- Gas spikes when the lid is opened
- Fan extraction pulling gas concentration down
- Temperature and humidity drifting within comfortable ranges

Runs as the offline data source whenever the remote store is unavailable.
Each tick produces a formatted SensorState and pushes it to listeners
synchronously.
"""

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass

from smartbin.state.listeners import ListenerRegistry
from smartbin.state.models import (
    Command,
    SensorState,
    apply_command,
    now_ms,
    push_history,
    seed_history,
)

logger = logging.getLogger(__name__)


@dataclass
class BinState:
    """Current bin physical state (unrounded).

    Attributes:
        level: Fill percentage (0-100)
        ppm: Gas concentration in parts per million (20-600)
        lid_open: Lid position
        fan_on: Extraction fan running
        temperature: Interior temperature in Celsius
        humidity: Interior relative humidity percent
        timestamp: Milliseconds since epoch of the last change
    """

    level: float = 15.0
    ppm: float = 50.0
    lid_open: bool = False
    fan_on: bool = False
    temperature: float = 22.0
    humidity: float = 45.0
    timestamp: int = 0


@dataclass
class BinParameters:
    """Bin simulation parameters.

    Attributes:
        fill_rate: Level increase per tick in percent
        base_ppm: Gas concentration of an unfilled bin
        fill_gas_onset: Level above which decomposition raises gas
        fill_gas_gain: ppm per percent above fill_gas_onset
        overfill_onset: Level above which gas rises faster
        overfill_gas_gain: Extra ppm per percent above overfill_onset
        lid_spike_min: Smallest gas spike when the lid opens
        lid_spike_max: Largest gas spike when the lid opens
        fan_extraction: ppm removed per tick while the fan runs
        fan_floor_ppm: Concentration the fan cannot pull below
        fan_active_above: Fan only extracts above this concentration
        drift_up: ppm rise per tick towards the baseline
        drift_down: ppm fall per tick towards the baseline
        drift_band: Headroom above baseline before drifting down
        ppm_jitter: Half-width of per-tick gas noise
        temperature_jitter: Half-width of per-tick temperature noise
        humidity_jitter: Half-width of per-tick humidity noise
    """

    fill_rate: float = 0.3
    base_ppm: float = 50.0
    fill_gas_onset: float = 80.0
    fill_gas_gain: float = 5.0
    overfill_onset: float = 90.0
    overfill_gas_gain: float = 10.0
    lid_spike_min: float = 80.0
    lid_spike_max: float = 180.0
    fan_extraction: float = 25.0
    fan_floor_ppm: float = 40.0
    fan_active_above: float = 60.0
    drift_up: float = 3.0
    drift_down: float = 2.0
    drift_band: float = 20.0
    ppm_jitter: float = 4.0
    temperature_jitter: float = 0.15
    humidity_jitter: float = 0.5


# Physical limits
LEVEL_RANGE = (0.0, 100.0)
PPM_RANGE = (20.0, 600.0)
TEMPERATURE_RANGE = (18.0, 35.0)
HUMIDITY_RANGE = (30.0, 80.0)

DEFAULT_TICK_MS = 2000


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, value))


class BinPhysics:
    """
    Simulates smart bin telemetry.

    Owns the simulation state and the two 20-sample histories. Commands and
    debug perturbations mutate the state and notify listeners immediately;
    update() advances the model by one tick.

    Example:
        >>> physics = BinPhysics()
        >>> remove = physics.add_listener(print)
        >>> physics.apply_command(Command.OPEN_LID)
        >>> physics.update()
    """

    def __init__(
        self,
        params: BinParameters | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialise bin physics.

        Args:
            params: Simulation parameters (uses defaults if None)
            rng: Random source for spikes and jitter
            clock: Millisecond clock used for timestamps
        """
        self.params = params or BinParameters()
        self.rng = rng or random.Random()
        self.clock = clock

        self.state = BinState(timestamp=self.clock())
        self.ppm_history = seed_history(self.state.ppm)
        self.level_history = seed_history(self.state.level)

        # Lid state as of the last tick, for open-transition detection
        self._lid_at_last_tick = self.state.lid_open

        self._listeners: ListenerRegistry[SensorState] = ListenerRegistry()
        self._ticker: asyncio.Task | None = None
        self._interval_ms = DEFAULT_TICK_MS
        self._tick_count = 0

    # ----------------------------------------------------------------
    # Physics simulation
    # ----------------------------------------------------------------

    def update(self) -> SensorState:
        """Advance the simulation by one tick and notify listeners.

        Returns:
            The formatted snapshot delivered to listeners
        """
        p = self.params
        s = self.state

        # Fill level only ever rises on its own
        s.level = min(LEVEL_RANGE[1], s.level + p.fill_rate)

        base_ppm = self._baseline_ppm(s.level)

        if s.lid_open and not self._lid_at_last_tick:
            spike = self.rng.uniform(p.lid_spike_min, p.lid_spike_max)
            s.ppm = min(PPM_RANGE[1], s.ppm + spike)
            logger.debug(f"Lid opened, gas spike +{spike:.1f} ppm")

        if s.fan_on:
            if s.ppm > p.fan_active_above:
                s.ppm = max(p.fan_floor_ppm, s.ppm - p.fan_extraction)
        elif s.ppm < base_ppm:
            s.ppm = min(base_ppm, s.ppm + p.drift_up)
        elif s.ppm > base_ppm + p.drift_band:
            s.ppm = max(base_ppm, s.ppm - p.drift_down)

        s.ppm += self.rng.uniform(-p.ppm_jitter, p.ppm_jitter)
        s.ppm = _clamp(s.ppm, PPM_RANGE)

        s.temperature += self.rng.uniform(-p.temperature_jitter, p.temperature_jitter)
        s.temperature = _clamp(s.temperature, TEMPERATURE_RANGE)

        s.humidity += self.rng.uniform(-p.humidity_jitter, p.humidity_jitter)
        s.humidity = _clamp(s.humidity, HUMIDITY_RANGE)

        s.timestamp = self.clock()

        self.ppm_history = push_history(self.ppm_history, round(s.ppm))
        self.level_history = push_history(self.level_history, round(s.level))

        self._lid_at_last_tick = s.lid_open
        self._tick_count += 1

        return self._notify()

    def _baseline_ppm(self, level: float) -> float:
        """Gas concentration the bin settles to at a given fill level."""
        p = self.params
        base = p.base_ppm
        if level > p.fill_gas_onset:
            base = p.base_ppm + (level - p.fill_gas_onset) * p.fill_gas_gain
        if level > p.overfill_onset:
            base += (level - p.overfill_onset) * p.overfill_gas_gain
        return base

    # ----------------------------------------------------------------
    # Commands and debug perturbations
    # ----------------------------------------------------------------

    def apply_command(self, command: Command) -> SensorState:
        """Apply an actuator command and notify immediately."""
        self.state.lid_open, self.state.fan_on = apply_command(
            command, self.state.lid_open, self.state.fan_on
        )
        logger.debug(
            f"Simulated {command.value}: lid_open={self.state.lid_open}, "
            f"fan_on={self.state.fan_on}"
        )
        return self._notify()

    def fill_quickly(self, amount: float = 30.0) -> SensorState:
        self.state.level = min(LEVEL_RANGE[1], self.state.level + amount)
        return self._notify()

    def gas_spike(self, amount: float = 200.0) -> SensorState:
        self.state.ppm = min(PPM_RANGE[1], self.state.ppm + amount)
        return self._notify()

    def reset(self) -> SensorState:
        """Restore baseline values and re-seed both histories."""
        self.state = BinState(timestamp=self.clock())
        self.ppm_history = seed_history(self.state.ppm)
        self.level_history = seed_history(self.state.level)
        self._lid_at_last_tick = self.state.lid_open
        logger.info("Bin simulation reset to baseline")
        return self._notify()

    # ----------------------------------------------------------------
    # State access
    # ----------------------------------------------------------------

    def get_snapshot(self) -> SensorState:
        """Return the formatted, immutable view of the current state."""
        s = self.state
        return SensorState(
            level=round(s.level, 1),
            ppm=round(s.ppm),
            lid_open=s.lid_open,
            fan_on=s.fan_on,
            temperature=round(s.temperature, 1),
            humidity=round(s.humidity),
            timestamp=s.timestamp,
            ppm_history=self.ppm_history,
            level_history=self.level_history,
        )

    def get_telemetry(self) -> dict:
        """Return current telemetry plus ticker status for monitoring."""
        telemetry = self.get_snapshot().to_dict()
        telemetry["running"] = self.is_running
        telemetry["ticks"] = self._tick_count
        return telemetry

    def add_listener(self, callback: Callable[[SensorState], None]) -> Callable[[], None]:
        return self._listeners.add(callback)

    def _notify(self) -> SensorState:
        snapshot = self.get_snapshot()
        self._listeners.notify(snapshot)
        return snapshot

    # ----------------------------------------------------------------
    # Ticker lifecycle
    # ----------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._ticker is not None

    def start(self, interval_ms: int = DEFAULT_TICK_MS) -> None:
        """Start ticking on the running event loop.

        Raises:
            ValueError: If interval_ms is not positive
            RuntimeError: If called outside a running event loop
        """
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be > 0, got {interval_ms}")

        if self._ticker is not None:
            return

        self._interval_ms = interval_ms
        self._ticker = asyncio.get_running_loop().create_task(self._tick_loop())
        logger.info(f"Bin simulation started (tick={interval_ms}ms)")

    def stop(self) -> None:
        """Stop ticking. Cancellation takes effect before the next tick."""
        if self._ticker is None:
            return

        self._ticker.cancel()
        self._ticker = None
        logger.info(f"Bin simulation stopped after {self._tick_count} ticks")

    async def _tick_loop(self) -> None:
        interval = self._interval_ms / 1000.0
        while True:
            await asyncio.sleep(interval)
            try:
                self.update()
            except Exception:
                logger.exception("Bin simulation tick failed")
