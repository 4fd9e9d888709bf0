# smartbin/config/config_loader.py
"""
Config loader module for modular YAML configuration.
"""

import logging
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = {
    "use_simulation": False,
    "tick_interval_ms": 2000,
    "status_interval_seconds": 30.0,
}

DEFAULT_STORE = {
    "enabled": True,
    "seed_on_start": False,
}

DEFAULT_THRESHOLDS = {
    "gasWarning": 300,
    "gasDanger": 400,
    "levelWarning": 80,
    "levelCritical": 95,
    "maxDistance": 100,
}

DEFAULT_ALERTS = {
    "cooldown_seconds": 10.0,
    "level_warning_cooldown_factor": 2.0,
    "persist": True,
}

DEFAULT_BRIDGE = {
    "enabled": False,
    "host": "localhost",
    "port": 7000,
    "reconnect_delay_seconds": 5.0,
}

DEFAULT_DEMO = {
    "enabled": False,
    "interval_seconds": 6.0,
}


class ConfigLoader:
    """Loads and merges modular configuration files."""

    def __init__(self, config_dir="config"):
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_all(self):
        """Load all configuration files and merge them over the defaults."""
        config = {}

        config["service"] = self._load_section("service.yml", "service", DEFAULT_SERVICE)
        config["store"] = self._load_section("store.yml", "store", DEFAULT_STORE)
        config["alerts"] = self._load_section("alerts.yml", "alerts", DEFAULT_ALERTS)
        config["bridge"] = self._load_section("bridge.yml", "bridge", DEFAULT_BRIDGE)
        config["demo"] = self._load_section("demo.yml", "demo", DEFAULT_DEMO)

        # Thresholds file is written out on first run so operators can edit it
        thresholds_path = self.config_dir / "thresholds.yml"
        if thresholds_path.exists():
            config["thresholds"] = self._load_section(
                "thresholds.yml", "thresholds", DEFAULT_THRESHOLDS
            )
        else:
            config["thresholds"] = self._create_default_thresholds()
            self._save_thresholds(config["thresholds"])

        return config

    def _load_section(self, filename, key, defaults):
        """Read one YAML file and overlay its `key` mapping on the defaults."""
        section = dict(defaults)
        path = self.config_dir / filename
        if not path.exists():
            return section

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        values = data.get(key, {})
        if not isinstance(values, dict):
            logger.warning(f"Ignoring {filename}: '{key}' is not a mapping")
            return section

        unknown = set(values) - set(defaults)
        if unknown:
            logger.warning(f"Unknown keys in {filename}: {sorted(unknown)}")

        section.update(values)
        return section

    def _create_default_thresholds(self):
        """Create default threshold configuration."""
        return dict(DEFAULT_THRESHOLDS)

    def _save_thresholds(self, thresholds):
        """Save threshold configuration to file."""
        thresholds_path = self.config_dir / "thresholds.yml"
        with open(thresholds_path, "w") as f:
            yaml.dump({"thresholds": thresholds}, f, default_flow_style=False)
        logger.info(f"Created default thresholds config at {thresholds_path}")
