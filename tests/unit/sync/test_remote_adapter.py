# tests/unit/sync/test_remote_adapter.py
"""Comprehensive tests for RemoteSyncAdapter.

RemoteSyncAdapter depends on:
- MemoryStore - uses REAL MemoryStore
- Data model and normalisation

Test Coverage:
- Subscription lifecycle (start, close, idempotence)
- Per-path handlers and value normalisation
- Lid sensor precedence over the legacy actuator path
- Outgoing command and debug writes
- Error reporting
"""

import pytest

from smartbin.state.models import Command
from smartbin.sync import paths
from smartbin.sync.remote_adapter import RemoteSyncAdapter
from smartbin.sync.remote_store import StoreError


# ================================================================
# FIXTURES
# ================================================================
@pytest.fixture
def errors(recorder):
    """Records (path, exception) pairs reported by the adapter."""
    calls = recorder()
    return calls


@pytest.fixture
def adapter(memory_store, clock, errors):
    """Started adapter on an empty store."""
    adapter = RemoteSyncAdapter(
        memory_store, on_error=lambda path, e: errors((path, e)), clock=clock
    )
    adapter.start()
    yield adapter
    adapter.close()


# ================================================================
# LIFECYCLE TESTS
# ================================================================
class TestRemoteSyncAdapterLifecycle:
    """Test subscription lifecycle."""

    def test_store_required(self):
        with pytest.raises(ValueError, match="store"):
            RemoteSyncAdapter(None)

    def test_start_subscribes_every_path(self, adapter, memory_store):
        """Test one subscription per sensor/actuator path."""
        assert adapter.is_active
        assert memory_store.subscription_count == 7

    def test_empty_store_produces_no_updates(self, memory_store, recorder):
        """Test absent values are ignored.

        WHY: A missing path must not overwrite the snapshot with defaults.
        """
        adapter = RemoteSyncAdapter(memory_store)
        received = recorder()
        adapter.add_listener(received)

        adapter.start()

        assert len(received) == 0
        adapter.close()

    def test_start_is_idempotent(self, adapter, memory_store):
        adapter.start()

        assert memory_store.subscription_count == 7

    async def test_close_detaches_everything(self, adapter, memory_store, recorder):
        received = recorder()
        adapter.add_listener(received)

        adapter.close()
        adapter.close()
        await memory_store.set(paths.FILL_LEVEL, 50)

        assert memory_store.subscription_count == 0
        assert len(received) == 0
        assert not adapter.is_active

    def test_closing_during_subscribe_stops_early(self, memory_store):
        """Test a failure that closes the adapter aborts start().

        WHY: The hub closes the adapter from its error callback.
        """
        memory_store.deny(paths.FILL_LEVEL)
        adapter = None

        def close_on_error(path, error):
            adapter.close()

        adapter = RemoteSyncAdapter(memory_store, on_error=close_on_error)
        adapter.start()

        assert not adapter.is_active
        assert memory_store.subscription_count == 0


# ================================================================
# INBOUND UPDATE TESTS
# ================================================================
class TestRemoteSyncAdapterUpdates:
    """Test per-path handlers."""

    async def test_fill_level_updates_value_and_history(
        self, adapter, memory_store, recorder
    ):
        received = recorder()
        adapter.add_listener(received)

        await memory_store.set(paths.FILL_LEVEL, {"value": 42, "timestamp": 1})

        snapshot = received.last
        assert snapshot.level == 42
        assert snapshot.level_history[-1] == 42
        assert len(snapshot.level_history) == 20

    async def test_air_quality_bare_scalar(self, adapter, memory_store):
        await memory_store.set(paths.AIR_QUALITY, 180)

        snapshot = adapter.get_snapshot()
        assert snapshot.ppm == 180
        assert snapshot.ppm_history[-1] == 180

    @pytest.mark.parametrize(
        "path, raw, field, expected",
        [
            (paths.AIR_QUALITY, 950, "ppm", 600),
            (paths.AIR_QUALITY, -12, "ppm", 0),
            (paths.FILL_LEVEL, {"value": 130}, "level", 100),
            (paths.FILL_LEVEL, -4, "level", 0),
        ],
    )
    async def test_out_of_range_readings_clamped(
        self, adapter, memory_store, path, raw, field, expected
    ):
        """Test faulty sensor readings stay inside the gauge domains.

        WHY: The ultrasonic sensor reports over 100% when mis-mounted.
        """
        await memory_store.set(path, raw)

        snapshot = adapter.get_snapshot()
        assert getattr(snapshot, field) == expected
        history = snapshot.ppm_history if field == "ppm" else snapshot.level_history
        assert history[-1] == expected

    async def test_each_update_refreshes_timestamp(self, adapter, memory_store, clock):
        clock.advance(5000)

        await memory_store.set(paths.HUMIDITY, 60)

        assert adapter.get_snapshot().timestamp == clock.now
        assert adapter.get_snapshot().humidity == 60

    async def test_unparseable_temperature_defaults(self, adapter, memory_store):
        await memory_store.set(paths.TEMPERATURE, "warm")

        assert adapter.get_snapshot().temperature == 22

    async def test_fan_status_record(self, adapter, memory_store):
        await memory_store.set(paths.FAN_STATUS, {"status": True, "timestamp": 1})

        assert adapter.get_snapshot().fan_on is True

    async def test_bridge_style_update(self, adapter, memory_store, recorder):
        """Test one bulk update of the sensors node reaches both handlers."""
        received = recorder()
        adapter.add_listener(received)

        await memory_store.update(paths.SENSORS, {"fill_level": 33, "air_quality": 120})

        assert adapter.get_snapshot().level == 33
        assert adapter.get_snapshot().ppm == 120
        assert len(received) == 2


# ================================================================
# LID PRECEDENCE TESTS
# ================================================================
class TestLidPrecedence:
    """Test the physical lid sensor wins over the legacy actuator path."""

    async def test_legacy_path_used_until_sensor_reports(self, adapter, memory_store):
        await memory_store.set(paths.LID_OPEN, {"status": True})

        assert adapter.get_snapshot().lid_open is True

    async def test_sensor_overrides_legacy_path(self, adapter, memory_store):
        """Test legacy writes are ignored once the sensor has reported.

        WHY: Only the sensor knows where the lid physically is.
        """
        await memory_store.set(paths.LID_STATUS, False)
        await memory_store.set(paths.LID_OPEN, {"status": True})

        assert adapter.get_snapshot().lid_open is False

    async def test_sensor_string_value(self, adapter, memory_store):
        await memory_store.set(paths.LID_STATUS, "open")

        assert adapter.get_snapshot().lid_open is True


# ================================================================
# OUTGOING WRITE TESTS
# ================================================================
class TestRemoteSyncAdapterWrites:
    """Test commands and debug writes."""

    async def test_toggle_fan_writes_negated_cache(self, adapter, memory_store, clock):
        await adapter.send_command(Command.TOGGLE_FAN)

        assert await memory_store.get(paths.FAN_STATUS) == {
            "status": True,
            "timestamp": clock.now,
        }
        # The write echoes back through the subscription
        assert adapter.get_snapshot().fan_on is True

    async def test_open_lid_writes_lid_path(self, adapter, memory_store):
        await adapter.send_command(Command.OPEN_LID)

        assert (await memory_store.get(paths.LID_OPEN))["status"] is True

    async def test_failed_write_raises_and_leaves_cache(self, adapter, memory_store):
        """Test a rejected command does not change the snapshot."""
        memory_store.fail_writes = True

        with pytest.raises(StoreError):
            await adapter.send_command(Command.FAN_ON)

        assert adapter.get_snapshot().fan_on is False

    async def test_write_level_and_ppm(self, adapter, memory_store):
        await adapter.write_level(55)
        await adapter.write_ppm(250)

        assert adapter.get_snapshot().level == 55
        assert adapter.get_snapshot().ppm == 250


# ================================================================
# ERROR REPORTING TESTS
# ================================================================
class TestRemoteSyncAdapterErrors:
    """Test subscription failures are reported, not retried."""

    def test_revoked_subscription_reported(self, adapter, memory_store, errors):
        memory_store.deny(paths.FAN_STATUS)

        assert len(errors) == 1
        path, error = errors.last
        assert path == paths.FAN_STATUS
        assert isinstance(error, StoreError)

    async def test_subscribe_exception_reported(self, clock, recorder):
        """Test a store that raises from subscribe() is handled."""

        class BrokenStore:
            def subscribe(self, path, on_value, on_error=None):
                raise StoreError("offline", path=path)

        reported = recorder()
        adapter = RemoteSyncAdapter(
            BrokenStore(), on_error=lambda path, e: reported(path), clock=clock
        )

        adapter.start()

        assert reported.values == [paths.FILL_LEVEL]
