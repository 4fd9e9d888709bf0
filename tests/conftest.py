# tests/conftest.py
"""Shared pytest fixtures for SmartBin tests.

This file provides common fixtures used across all test modules,
following the bottom-up testing strategy where foundation components
are tested with real dependencies wherever possible: the real MemoryStore
stands in for the remote store, never a mock.
"""

import random
import tempfile
from pathlib import Path
from typing import Generator

import pytest
import yaml

from smartbin.state.models import SensorState
from smartbin.sync.remote_store import MemoryStore


# ----------------------------------------------------------------
# Time and randomness
# ----------------------------------------------------------------
class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Deterministic clock for timestamp and cooldown tests.

    WHY: Cooldowns and timestamps must not depend on wall time.
    """
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source so simulator runs are repeatable."""
    return random.Random(42)


# ----------------------------------------------------------------
# Store fixtures
# ----------------------------------------------------------------
@pytest.fixture
def memory_store(clock) -> MemoryStore:
    """Empty in-process store sharing the fake clock."""
    return MemoryStore(clock=clock)


# ----------------------------------------------------------------
# Listener helpers
# ----------------------------------------------------------------
@pytest.fixture
def recorder():
    """Factory for callbacks that record every value they receive.

    WHY: Most reactive tests only need to see what a listener got.
    """

    class Recorder:
        def __init__(self):
            self.values = []

        def __call__(self, value):
            self.values.append(value)

        @property
        def last(self):
            return self.values[-1] if self.values else None

        def __len__(self):
            return len(self.values)

    return Recorder


@pytest.fixture
def sensor_state():
    """Factory for SensorState snapshots with selected fields."""

    def _create(**kwargs) -> SensorState:
        return SensorState(**kwargs)

    return _create


# ----------------------------------------------------------------
# Configuration fixtures
# ----------------------------------------------------------------
@pytest.fixture
def temp_config_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test configuration files.

    Yields:
        Path to temporary configuration directory
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def write_config_file(temp_config_dir):
    """Factory fixture for writing YAML configuration files.

    Args:
        temp_config_dir: Temporary directory for config files

    Returns:
        Function that writes config dict to YAML file
    """

    def _write_config(config: dict, filename: str) -> Path:
        config_file = temp_config_dir / filename
        with open(config_file, "w") as f:
            yaml.dump(config, f)
        return config_file

    return _write_config
