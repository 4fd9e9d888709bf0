# smartbin/state/state_hub.py
"""
Reactive state hub: the single source of truth consumed by the UI.

Owns one simulator, one remote sync adapter (when a store exists), the
fallback arbiter deciding between them, and the telemetry repository.
Updates are forwarded from the active source only, so the UI keeps receiving
a continuous stream when the remote store fails and the simulator takes over.

The UI only ever talks to this class: initialise/cleanup, subscribe,
get_snapshot, send_command, the debug perturbations and the repository.
"""

from __future__ import annotations

import random
from collections.abc import Callable

from smartbin.logging_system import (
    EventCategory,
    EventSeverity,
    SmartBinLogger,
    get_logger,
)
from smartbin.persistence.repository import TelemetryRepository
from smartbin.physics.bin_physics import DEFAULT_TICK_MS, BinParameters, BinPhysics
from smartbin.physics.hardware_simulator import HardwareSimulator
from smartbin.state.listeners import ListenerRegistry
from smartbin.state.models import Command, EventType, SensorState, now_ms
from smartbin.sync.arbiter import FallbackArbiter
from smartbin.sync.remote_adapter import RemoteSyncAdapter
from smartbin.sync.remote_store import RemoteStore, StoreError

__all__ = ["StateHub"]

DEBUG_FILL_AMOUNT = 30.0
DEBUG_GAS_AMOUNT = 200.0
MAX_LEVEL = 100.0
MAX_PPM = 600.0


class StateHub:
    """
    Single reactive source of truth for bin telemetry.

    Example:
        >>> hub = StateHub(store=MemoryStore())
        >>> hub.initialise()
        >>> unsubscribe = hub.subscribe(lambda state: print(state.level))
        >>> await hub.send_command("toggleLid")
        True
        >>> hub.cleanup()
    """

    def __init__(
        self,
        store: RemoteStore | None = None,
        use_simulation: bool = False,
        tick_interval_ms: int = DEFAULT_TICK_MS,
        physics_params: BinParameters | None = None,
        demo_interval_seconds: float = 6.0,
        rng: random.Random | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialise hub and wire its collaborators.

        Args:
            store: Remote store, or None when none could be constructed
            use_simulation: Force the simulator even if a store exists
            tick_interval_ms: Simulator tick period
            physics_params: Simulator parameters (defaults if None)
            demo_interval_seconds: Step period of the demo hardware simulator
            rng: Random source shared by the simulators
            clock: Millisecond clock shared by all collaborators

        Raises:
            ValueError: If tick_interval_ms is not positive
        """
        if tick_interval_ms <= 0:
            raise ValueError(f"tick_interval_ms must be > 0, got {tick_interval_ms}")

        self.store = store
        self.use_simulation = use_simulation
        self.tick_interval_ms = tick_interval_ms
        self.clock = clock
        self.logger: SmartBinLogger = get_logger(__name__)

        self.arbiter = FallbackArbiter(
            live_available=store is not None and not use_simulation
        )
        self.simulator = BinPhysics(physics_params, rng=rng, clock=clock)
        self.adapter: RemoteSyncAdapter | None = None
        if store is not None:
            self.adapter = RemoteSyncAdapter(
                store, on_error=self._on_source_error, clock=clock
            )
        self.repository = TelemetryRepository(store, self.arbiter, clock=clock)
        self.demo = HardwareSimulator(
            store, interval_seconds=demo_interval_seconds, rng=rng, clock=clock
        )

        self._listeners: ListenerRegistry[SensorState] = ListenerRegistry()
        self._source_unsubscribers: list[Callable[[], None]] = []
        self._initialised = False

        self.arbiter.add_fallback_callback(self._on_fallback)

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    def initialise(self) -> None:
        """Start the applicable source. Idempotent.

        Must be called from a running event loop, since the simulator ticks
        on it.
        """
        if self._initialised:
            return

        self._initialised = True
        self._source_unsubscribers = [
            self.simulator.add_listener(self._forward_simulator)
        ]
        if self.adapter is not None:
            self._source_unsubscribers.append(
                self.adapter.add_listener(self._forward_remote)
            )

        if self.arbiter.is_live:
            self.adapter.start()
            # A failing subscription inside start() already switched us over
        if self.arbiter.is_fallback:
            self.simulator.start(self.tick_interval_ms)

        self.logger.log_event(
            EventSeverity.NOTICE,
            EventCategory.SYSTEM,
            f"State hub initialised ({self.arbiter.mode.value} mode)",
        )

    def cleanup(self) -> None:
        """Stop every source and drop every listener. Idempotent.

        After this returns no listener receives another update.
        """
        self.simulator.stop()
        if self.adapter is not None:
            self.adapter.close()
        self.demo.stop()

        unsubscribers, self._source_unsubscribers = self._source_unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()
        self._listeners.clear()

        if self._initialised:
            self.logger.info("State hub cleaned up")
        self._initialised = False

    def _on_source_error(self, path: str, error: Exception) -> None:
        self.arbiter.enter_fallback(f"subscription to '{path}' failed: {error}")

    def _on_fallback(self, reason: str) -> None:
        if self.adapter is not None:
            self.adapter.close()
        if self._initialised:
            self.simulator.start(self.tick_interval_ms)
            self._listeners.notify(self.simulator.get_snapshot())

    # ----------------------------------------------------------------
    # Fan-out
    # ----------------------------------------------------------------

    def _forward_simulator(self, state: SensorState) -> None:
        if self.arbiter.is_fallback:
            self._listeners.notify(state)

    def _forward_remote(self, state: SensorState) -> None:
        if self.arbiter.is_live:
            self._listeners.notify(state)

    def subscribe(self, callback: Callable[[SensorState], None]) -> Callable[[], None]:
        """Register a listener and replay the current snapshot to it.

        Returns:
            Function removing exactly this listener; a second call is a no-op
        """
        unsubscribe = self._listeners.add(callback)
        try:
            callback(self.get_snapshot())
        except Exception:
            self.logger.exception(f"Subscriber {callback!r} failed on replay")
        return unsubscribe

    def get_snapshot(self) -> SensorState:
        """Current snapshot of the active source; never touches the network."""
        if self.arbiter.is_live and self.adapter is not None:
            return self.adapter.get_snapshot()
        return self.simulator.get_snapshot()

    def is_simulation_mode(self) -> bool:
        return self.arbiter.is_fallback

    # ----------------------------------------------------------------
    # Commands
    # ----------------------------------------------------------------

    async def send_command(self, command: Command | str) -> bool:
        """Apply an actuator command to the active source.

        Returns:
            False for an unrecognised command or a failed remote write
        """
        parsed = Command.parse(command)
        if parsed is None:
            self.logger.warning(f"Unknown command: {command!r}")
            return False

        if self.arbiter.is_fallback:
            self.simulator.apply_command(parsed)
            return True

        try:
            await self.adapter.send_command(parsed)
        except StoreError as e:
            self.logger.error(f"Failed to send command {parsed.value}: {e}")
            return False

        await self.repository.log_event(parsed.value, EventType.COMMAND)
        return True

    # ----------------------------------------------------------------
    # Debug perturbations
    # ----------------------------------------------------------------

    async def fill_quickly(self) -> bool:
        """Add 30% to the fill level (capped at 100)."""
        if self.arbiter.is_fallback:
            self.simulator.fill_quickly(DEBUG_FILL_AMOUNT)
            return True

        level = min(MAX_LEVEL, self.adapter.get_snapshot().level + DEBUG_FILL_AMOUNT)
        try:
            await self.adapter.write_level(level)
        except StoreError as e:
            self.logger.error(f"Debug fill failed: {e}")
            return False
        return True

    async def gas_spike(self) -> bool:
        """Add 200 ppm to the gas reading (capped at 600)."""
        if self.arbiter.is_fallback:
            self.simulator.gas_spike(DEBUG_GAS_AMOUNT)
            return True

        ppm = min(MAX_PPM, self.adapter.get_snapshot().ppm + DEBUG_GAS_AMOUNT)
        try:
            await self.adapter.write_ppm(ppm)
        except StoreError as e:
            self.logger.error(f"Debug gas spike failed: {e}")
            return False
        return True

    async def reset(self) -> bool:
        """Restore baseline values, or re-seed the remote store when live."""
        if self.arbiter.is_fallback:
            self.simulator.reset()
            return True
        return await self.repository.seed_database()

    # ----------------------------------------------------------------
    # Demo mode
    # ----------------------------------------------------------------

    def start_demo_mode(self) -> bool:
        return self.demo.start()

    def stop_demo_mode(self) -> bool:
        return self.demo.stop()

    def is_demo_mode_active(self) -> bool:
        return self.demo.is_active

    # ----------------------------------------------------------------
    # Status
    # ----------------------------------------------------------------

    def get_status(self) -> dict:
        """Summary of the hub for periodic logging."""
        return {
            "initialised": self._initialised,
            "mode": self.arbiter.mode.value,
            "fallback_reason": self.arbiter.fallback_reason,
            "subscribers": len(self._listeners),
            "demo_active": self.demo.is_active,
            "simulator": self.simulator.get_telemetry(),
            "snapshot": self.get_snapshot().to_dict(),
        }
