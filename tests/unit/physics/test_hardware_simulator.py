# tests/unit/physics/test_hardware_simulator.py
"""Tests for the demo HardwareSimulator.

Uses the REAL MemoryStore to check what lands in the store.
"""

import asyncio

import pytest

from smartbin.physics.hardware_simulator import SOURCE_TAG, HardwareSimulator
from smartbin.sync import paths


@pytest.fixture
def demo(memory_store, rng, clock):
    return HardwareSimulator(memory_store, interval_seconds=0.01, rng=rng, clock=clock)


class TestHardwareSimulatorCycle:
    """Test the synthetic fill cycle."""

    def test_level_climbs_five_per_step(self, demo):
        assert demo.advance().level == 5
        assert demo.advance().level == 10

    def test_cycle_wraps_after_full(self, demo):
        """Test the bin empties after passing 100%.

        WHY: The demo loops forever for presentations.
        """
        demo.state.level = 100
        demo.state.ppm = 400

        state = demo.advance()

        assert state.level == 0
        assert 40 <= state.ppm <= 150

    def test_gas_rises_above_80_percent(self, demo):
        demo.state.level = 80
        demo.state.ppm = 100

        state = demo.advance()

        assert 120 <= state.ppm <= 169

    def test_gas_capped_at_500(self, demo):
        demo.state.level = 90
        demo.state.ppm = 495

        assert demo.advance().ppm == 500

    def test_gas_wanders_within_normal_band(self, demo):
        for _ in range(15):
            state = demo.advance()
            assert 40 <= state.ppm <= 150

    async def test_step_writes_tagged_values(self, demo, memory_store, clock):
        await demo.step()

        level = await memory_store.get(paths.FILL_LEVEL)
        ppm = await memory_store.get(paths.AIR_QUALITY)
        assert level == {"value": 5, "timestamp": clock.now, "source": SOURCE_TAG}
        assert ppm["source"] == SOURCE_TAG


class TestHardwareSimulatorLifecycle:
    """Test start/stop."""

    async def test_start_and_stop(self, demo, memory_store):
        assert demo.start() is True
        assert demo.is_active
        await asyncio.sleep(0.05)

        assert demo.stop() is True
        assert not demo.is_active
        assert await memory_store.get(paths.FILL_LEVEL) is not None

    async def test_start_twice_is_noop(self, demo):
        demo.start()
        task = demo._task

        assert demo.start() is True
        assert demo._task is task
        demo.stop()

    def test_start_without_store_fails(self, rng):
        """Test demo mode needs a store.

        WHY: In pure simulation there is nothing to write into.
        """
        demo = HardwareSimulator(None, rng=rng)

        assert demo.start() is False
        assert not demo.is_active

    def test_stop_when_inactive(self, demo):
        assert demo.stop() is False

    async def test_write_failures_do_not_stop_the_loop(self, demo, memory_store):
        memory_store.fail_writes = True
        demo.start()
        await asyncio.sleep(0.05)

        assert demo.is_active
        assert not demo._task.done()
        demo.stop()

    def test_non_positive_interval_rejected(self, memory_store):
        with pytest.raises(ValueError, match="interval_seconds"):
            HardwareSimulator(memory_store, interval_seconds=0)
