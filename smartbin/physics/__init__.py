"""
Physics simulation for SmartBin.

- BinPhysics: offline telemetry source used in simulation/fallback mode
- HardwareSimulator: demo writer feeding a synthetic fill cycle into the store
"""

from smartbin.physics.bin_physics import BinParameters, BinPhysics, BinState
from smartbin.physics.hardware_simulator import DemoState, HardwareSimulator

__all__ = [
    "BinPhysics",
    "BinState",
    "BinParameters",
    "HardwareSimulator",
    "DemoState",
]
