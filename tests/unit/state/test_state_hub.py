# tests/unit/state/test_state_hub.py
"""Comprehensive tests for StateHub.

StateHub sits at the top of the dependency tree:
- BinPhysics - REAL simulator with a seeded rng
- RemoteSyncAdapter - REAL adapter
- MemoryStore - REAL store (deny() simulates a lost connection)
- FallbackArbiter, TelemetryRepository - REAL instances

Test Coverage:
- Source selection at start-up
- Subscription replay and fan-out from the active source only
- LIVE -> FALLBACK switch on subscription failure
- Commands and debug perturbations in both modes
- Cleanup guarantees
"""

import asyncio

import pytest

from smartbin.state.models import Command, EventType
from smartbin.state.state_hub import StateHub
from smartbin.sync import paths


# ================================================================
# FIXTURES
# ================================================================
@pytest.fixture
async def live_hub(memory_store, rng, clock):
    """Initialised hub mirroring the memory store.

    WHY: Most live-mode tests start from a connected hub.
    """
    hub = StateHub(store=memory_store, tick_interval_ms=10, rng=rng, clock=clock)
    hub.initialise()
    yield hub
    hub.cleanup()


@pytest.fixture
async def sim_hub(rng, clock):
    """Initialised hub with no store at all."""
    hub = StateHub(store=None, tick_interval_ms=10, rng=rng, clock=clock)
    hub.initialise()
    yield hub
    hub.cleanup()


# ================================================================
# SOURCE SELECTION TESTS
# ================================================================
class TestSourceSelection:
    """Test which source the hub starts with."""

    async def test_no_store_means_simulation(self, sim_hub):
        assert sim_hub.is_simulation_mode()
        assert sim_hub.simulator.is_running
        assert sim_hub.adapter is None

    async def test_store_means_live(self, live_hub, memory_store):
        assert not live_hub.is_simulation_mode()
        assert not live_hub.simulator.is_running
        assert memory_store.subscription_count == 7

    async def test_forced_simulation_ignores_store(self, memory_store, rng):
        hub = StateHub(store=memory_store, use_simulation=True, tick_interval_ms=10, rng=rng)
        hub.initialise()

        assert hub.is_simulation_mode()
        assert memory_store.subscription_count == 0
        hub.cleanup()

    async def test_denied_store_falls_back_during_initialise(self, memory_store, rng):
        """Test a store refusing access at start-up.

        WHY: Missing permissions must not leave the UI without data.
        """
        memory_store.deny("sensors")
        hub = StateHub(store=memory_store, tick_interval_ms=10, rng=rng)

        hub.initialise()

        assert hub.is_simulation_mode()
        assert hub.simulator.is_running
        assert memory_store.subscription_count == 0
        hub.cleanup()

    async def test_initialise_is_idempotent(self, live_hub, memory_store):
        live_hub.initialise()

        assert memory_store.subscription_count == 7

    def test_non_positive_tick_rejected(self):
        with pytest.raises(ValueError, match="tick_interval_ms"):
            StateHub(tick_interval_ms=0)


# ================================================================
# SUBSCRIPTION TESTS
# ================================================================
class TestSubscriptions:
    """Test fan-out to UI subscribers."""

    async def test_subscribe_replays_snapshot(self, sim_hub, recorder):
        received = recorder()

        sim_hub.subscribe(received)

        assert len(received) == 1
        assert received.last == sim_hub.get_snapshot()

    async def test_cold_start_without_store_replays_defaults(self, rng, recorder):
        """Test the first replay after starting with no store configured.

        WHY: The dashboard renders these values before any tick arrives.
        """
        hub = StateHub(store=None, rng=rng)
        hub.initialise()
        received = recorder()

        hub.subscribe(received)
        hub.cleanup()

        first = received.values[0]
        assert hub.is_simulation_mode()
        assert first.level == 15
        assert first.ppm == 50
        assert first.lid_open is False
        assert first.fan_on is False
        assert first.temperature == 22
        assert first.humidity == 45

    async def test_raising_subscriber_does_not_block_others(
        self, live_hub, memory_store, recorder
    ):
        """Test a broken subscriber is isolated from the rest of the fan-out.

        WHY: Commands must still succeed and be logged when a widget fails.
        """

        def broken(state):
            raise RuntimeError("ui render failed")

        unsubscribe = live_hub.subscribe(broken)
        received = recorder()
        live_hub.subscribe(received)

        assert await live_hub.send_command("toggleFan") is True

        assert received.last.fan_on is True
        assert (await memory_store.get(paths.FAN_STATUS))["status"] is True
        events = await live_hub.repository.get_event_history()
        assert events[0].event == "toggleFan"
        unsubscribe()

    async def test_live_updates_forwarded(self, live_hub, memory_store, recorder):
        received = recorder()
        live_hub.subscribe(received)

        await memory_store.set(paths.FILL_LEVEL, {"value": 64})

        assert received.last.level == 64
        assert live_hub.get_snapshot().level == 64

    async def test_simulator_ticks_forwarded(self, sim_hub, recorder):
        received = recorder()
        sim_hub.subscribe(received)

        await asyncio.sleep(0.05)

        assert len(received) >= 2
        assert received.last.level > 15

    async def test_simulator_ignored_while_live(self, live_hub, recorder):
        """Test only the active source reaches subscribers."""
        received = recorder()
        live_hub.subscribe(received)

        live_hub.simulator.update()

        assert len(received) == 1

    async def test_unsubscribe(self, live_hub, memory_store, recorder):
        received = recorder()
        unsubscribe = live_hub.subscribe(received)

        unsubscribe()
        unsubscribe()
        await memory_store.set(paths.FILL_LEVEL, 10)

        assert len(received) == 1

    async def test_every_snapshot_has_full_histories(self, live_hub, memory_store, recorder):
        received = recorder()
        live_hub.subscribe(received)

        for n in range(25):
            await memory_store.set(paths.AIR_QUALITY, 100 + n)

        assert all(len(s.ppm_history) == 20 for s in received.values)
        assert received.last.ppm_history[-1] == 124


# ================================================================
# FALLBACK TESTS
# ================================================================
class TestFallback:
    """Test the LIVE -> FALLBACK switch."""

    async def test_subscription_error_switches_to_simulator(
        self, live_hub, memory_store, recorder
    ):
        """Test a lost connection hands over to the simulator.

        WHY: The UI must keep receiving a continuous stream.
        """
        received = recorder()
        live_hub.subscribe(received)

        memory_store.deny("sensors")

        assert live_hub.is_simulation_mode()
        assert live_hub.simulator.is_running
        assert memory_store.subscription_count == 0
        assert received.last == live_hub.simulator.get_snapshot()

        count = len(received)
        await asyncio.sleep(0.05)
        assert len(received) > count

    async def test_store_ignored_after_fallback(self, live_hub, memory_store, recorder):
        received = recorder()
        live_hub.subscribe(received)
        memory_store.deny(paths.ACTUATORS)
        live_hub.simulator.stop()
        count = len(received)

        await memory_store.set(paths.FILL_LEVEL, 99)

        assert len(received) == count
        assert live_hub.get_snapshot().level != 99

    async def test_fallback_reason_recorded(self, live_hub, memory_store):
        memory_store.deny(paths.FAN_STATUS)

        assert paths.FAN_STATUS in live_hub.arbiter.fallback_reason

    async def test_repository_switches_to_mock(self, live_hub, memory_store):
        memory_store.deny("sensors")

        assert await live_hub.repository.log_event("x") is None
        assert len(await live_hub.repository.get_alerts()) == 3


# ================================================================
# COMMAND TESTS
# ================================================================
class TestCommands:
    """Test send_command routing."""

    async def test_unknown_command(self, live_hub, memory_store):
        """Test an unrecognised command changes nothing anywhere."""
        before = live_hub.get_snapshot()

        assert await live_hub.send_command("doBarrelRoll") is False

        assert live_hub.get_snapshot() == before
        assert await memory_store.get(paths.ACTUATORS) is None
        assert await memory_store.get(paths.EVENTS) is None

    async def test_unknown_command_in_simulation(self, sim_hub):
        before = sim_hub.get_snapshot()

        assert await sim_hub.send_command("selfDestruct") is False
        assert sim_hub.get_snapshot() == before

    async def test_simulated_command_applies_locally(self, sim_hub, recorder):
        received = recorder()
        sim_hub.subscribe(received)

        assert await sim_hub.send_command("openLid") is True

        assert received.last.lid_open is True

    async def test_live_command_writes_and_logs(self, live_hub, memory_store):
        assert await live_hub.send_command(Command.TOGGLE_FAN) is True

        assert (await memory_store.get(paths.FAN_STATUS))["status"] is True
        assert live_hub.get_snapshot().fan_on is True

        events = await live_hub.repository.get_event_history()
        assert events[0].event == "toggleFan"
        assert events[0].type is EventType.COMMAND

    async def test_live_toggle_twice_restores(self, live_hub):
        assert live_hub.get_snapshot().lid_open is False

        await live_hub.send_command("toggleLid")
        assert live_hub.get_snapshot().lid_open is True

        await live_hub.send_command("toggleLid")
        assert live_hub.get_snapshot().lid_open is False

    async def test_failed_write_returns_false(self, live_hub, memory_store):
        """Test a rejected write leaves the cache and event log alone."""
        memory_store.fail_writes = True

        assert await live_hub.send_command("fanOn") is False

        assert live_hub.get_snapshot().fan_on is False
        memory_store.fail_writes = False
        assert await memory_store.get(paths.EVENTS) is None


# ================================================================
# DEBUG OPERATION TESTS
# ================================================================
class TestDebugOperations:
    """Test fill_quickly, gas_spike and reset."""

    async def test_simulated_debug_ops(self, sim_hub):
        sim_hub.simulator.stop()
        await sim_hub.reset()

        assert await sim_hub.fill_quickly() is True
        assert sim_hub.get_snapshot().level == 45
        assert await sim_hub.gas_spike() is True
        assert sim_hub.get_snapshot().ppm == 250
        assert await sim_hub.reset() is True
        assert sim_hub.get_snapshot().level == 15

    async def test_live_fill_quickly_caps(self, live_hub, memory_store):
        await memory_store.set(paths.FILL_LEVEL, 85)

        assert await live_hub.fill_quickly() is True

        assert (await memory_store.get(paths.FILL_LEVEL))["value"] == 100
        assert live_hub.get_snapshot().level == 100

    async def test_live_gas_spike_caps(self, live_hub, memory_store):
        await memory_store.set(paths.AIR_QUALITY, 500)

        await live_hub.gas_spike()

        assert live_hub.get_snapshot().ppm == 600

    async def test_live_reset_seeds_store(self, live_hub):
        assert await live_hub.reset() is True

        snapshot = live_hub.get_snapshot()
        assert snapshot.level == 25
        assert snapshot.ppm == 75
        assert snapshot.fan_on is False

    async def test_live_debug_write_failure(self, live_hub, memory_store):
        memory_store.fail_writes = True

        assert await live_hub.fill_quickly() is False
        assert await live_hub.gas_spike() is False
        assert await live_hub.reset() is False


# ================================================================
# DEMO MODE TESTS
# ================================================================
class TestDemoMode:
    async def test_demo_mode_passthrough(self, live_hub):
        assert live_hub.start_demo_mode() is True
        assert live_hub.is_demo_mode_active()

        assert live_hub.stop_demo_mode() is True
        assert not live_hub.is_demo_mode_active()

    async def test_demo_needs_store(self, sim_hub):
        assert sim_hub.start_demo_mode() is False


# ================================================================
# CLEANUP TESTS
# ================================================================
class TestCleanup:
    """Test teardown guarantees."""

    async def test_no_updates_after_cleanup(self, sim_hub, recorder):
        """Test cleanup silences every source.

        WHY: Unmounted UI components must never be called back.
        """
        received = recorder()
        sim_hub.subscribe(received)

        sim_hub.cleanup()
        count = len(received)
        await asyncio.sleep(0.05)
        sim_hub.simulator.update()

        assert len(received) == count
        assert not sim_hub.simulator.is_running

    async def test_cleanup_detaches_store(self, live_hub, memory_store, recorder):
        received = recorder()
        live_hub.subscribe(received)
        live_hub.start_demo_mode()

        live_hub.cleanup()
        live_hub.cleanup()
        await memory_store.set(paths.FILL_LEVEL, 5)

        assert memory_store.subscription_count == 0
        assert len(received) == 1
        assert not live_hub.is_demo_mode_active()

    async def test_status_summary(self, live_hub):
        status = live_hub.get_status()

        assert status["mode"] == "live"
        assert status["initialised"] is True
        assert "level" in status["snapshot"]
