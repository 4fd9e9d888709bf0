# smartbin/state/status.py
"""
Derived indicator states for display.
"""

from dataclasses import dataclass

from smartbin.state.models import SensorState, ThresholdConfig

MEDIUM_LEVEL = 50
MEDIUM_PPM = 150


@dataclass(frozen=True)
class BinStatus:
    """Display flags and bands computed from one snapshot."""

    is_overflowing: bool
    is_almost_full: bool
    has_gas_warning: bool
    has_gas_danger: bool
    level_status: str  # critical | warning | medium | good
    air_quality_status: str  # danger | warning | medium | good


def derive_status(state: SensorState, thresholds: ThresholdConfig | None = None) -> BinStatus:
    t = thresholds or ThresholdConfig()

    if state.level >= t.level_critical:
        level_status = "critical"
    elif state.level >= t.level_warning:
        level_status = "warning"
    elif state.level >= MEDIUM_LEVEL:
        level_status = "medium"
    else:
        level_status = "good"

    if state.ppm >= t.gas_danger:
        air_quality_status = "danger"
    elif state.ppm >= t.gas_warning:
        air_quality_status = "warning"
    elif state.ppm >= MEDIUM_PPM:
        air_quality_status = "medium"
    else:
        air_quality_status = "good"

    return BinStatus(
        is_overflowing=state.level >= t.level_critical,
        is_almost_full=state.level >= t.level_warning,
        has_gas_warning=state.ppm >= t.gas_warning,
        has_gas_danger=state.ppm >= t.gas_danger,
        level_status=level_status,
        air_quality_status=air_quality_status,
    )
