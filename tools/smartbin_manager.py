#!/usr/bin/env python3
# tools/smartbin_manager.py
"""
SmartBin service runner.

Wires the telemetry stack from configuration and keeps it running:
- ConfigLoader for service, store, threshold, alert, bridge and demo settings
- StateHub as the single source of truth (remote store or simulator)
- AlertEvaluator subscribed to the hub, persisting alerts through the
  repository
- DeviceBridge forwarding controller readings when enabled
- Demo hardware simulator when enabled

Runs until SIGINT/SIGTERM, logging a status line periodically.
"""

import argparse
import asyncio
import signal
from pathlib import Path
from typing import Any

from smartbin.alerts.alert_evaluator import AlertEvaluator
from smartbin.config.config_loader import ConfigLoader
from smartbin.logging_system import configure_logging, get_logger
from smartbin.state.models import Alert, ThresholdConfig
from smartbin.state.state_hub import StateHub
from smartbin.sync.remote_store import MemoryStore, RemoteStore
from tools.device_bridge import DeviceBridge

logger = get_logger(__name__)


class SmartBinManager:
    """
    Orchestrates the SmartBin telemetry service.

    Example:
        >>> manager = SmartBinManager(config_dir="config")
        >>> await manager.initialise()
        >>> await manager.start()
        >>> # Service runs...
        >>> await manager.stop()
    """

    def __init__(self, config_dir: str = "config", log_dir: str | None = "logs"):
        """Initialise service manager.

        Args:
            config_dir: Directory containing configuration files
            log_dir: Directory for JSON log files (None disables file logging)
        """
        self.config_dir = Path(config_dir)
        self.config_loader = ConfigLoader(config_dir=str(self.config_dir))

        if log_dir:
            configure_logging(log_dir=log_dir)

        self.config: dict[str, Any] = {}
        self.store: RemoteStore | None = None
        self.hub: StateHub | None = None
        self.evaluator: AlertEvaluator | None = None
        self.bridge: DeviceBridge | None = None

        self._running = False
        self._initialised = False
        self._persist_alerts = True
        self._alert_count = 0
        self._pending_saves: set[asyncio.Task] = set()
        self._status_task: asyncio.Task | None = None
        self._unsubscribe_evaluator = None

        self._shutdown_event = asyncio.Event()

    # ----------------------------------------------------------------
    # Initialisation
    # ----------------------------------------------------------------

    async def initialise(self) -> None:
        """Build every component from configuration.

        Raises:
            RuntimeError: If initialisation fails
        """
        if self._initialised:
            logger.warning("Service already initialised")
            return

        try:
            logger.info("=== Starting SmartBin Initialisation ===")

            logger.info("Loading configuration...")
            self.config = self.config_loader.load_all()
            service_cfg = self.config["service"]
            store_cfg = self.config["store"]
            alerts_cfg = self.config["alerts"]

            logger.info("Creating remote store...")
            self.store = MemoryStore() if store_cfg["enabled"] else None

            logger.info("Creating state hub...")
            self.hub = StateHub(
                store=self.store,
                use_simulation=service_cfg["use_simulation"],
                tick_interval_ms=service_cfg["tick_interval_ms"],
                demo_interval_seconds=self.config["demo"]["interval_seconds"],
            )

            if self.store is not None and store_cfg["seed_on_start"]:
                await self.hub.repository.seed_database()

            logger.info("Creating alert evaluator...")
            thresholds = ThresholdConfig.from_dict(self.config["thresholds"])
            self.evaluator = AlertEvaluator(
                thresholds,
                cooldown_ms=int(alerts_cfg["cooldown_seconds"] * 1000),
                level_warning_factor=alerts_cfg["level_warning_cooldown_factor"],
            )
            self._persist_alerts = alerts_cfg["persist"]
            self.evaluator.add_listener(self._on_alert)

            bridge_cfg = self.config["bridge"]
            if bridge_cfg["enabled"]:
                if self.store is None:
                    logger.warning("Device bridge enabled but no remote store; skipping")
                else:
                    self.bridge = DeviceBridge(
                        self.store,
                        host=bridge_cfg["host"],
                        port=bridge_cfg["port"],
                        reconnect_delay=bridge_cfg["reconnect_delay_seconds"],
                    )

            self._initialised = True
            logger.info("=== Initialisation Complete ===")

        except Exception as e:
            logger.error(f"Initialisation failed: {e}", exc_info=True)
            raise RuntimeError(f"Failed to initialise SmartBin service: {e}") from e

    def _on_alert(self, alert: Alert) -> None:
        self._alert_count += 1
        if not self._persist_alerts:
            return
        task = asyncio.get_running_loop().create_task(
            self.hub.repository.save_alert(alert)
        )
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    async def start(self) -> None:
        """Start the hub, bridge and optional demo mode.

        Raises:
            RuntimeError: If not initialised
        """
        if not self._initialised:
            raise RuntimeError("Cannot start: service not initialised")

        if self._running:
            logger.warning("Service already running")
            return

        logger.info("=== Starting SmartBin Service ===")

        self.hub.initialise()
        self._unsubscribe_evaluator = self.hub.subscribe(self.evaluator.evaluate)

        if self.bridge is not None:
            await self.bridge.start()

        if self.config["demo"]["enabled"]:
            self.hub.start_demo_mode()

        self._running = True
        self._status_task = asyncio.create_task(self._status_loop())

        mode = "simulation" if self.hub.is_simulation_mode() else "live"
        logger.info(f"Service started in {mode} mode")

    async def stop(self) -> None:
        """Stop every component and flush pending alert writes."""
        if not self._running:
            logger.warning("Service not running")
            return

        logger.info("=== Stopping SmartBin Service ===")
        self._running = False

        if self._status_task:
            self._status_task.cancel()
            try:
                await self._status_task
            except asyncio.CancelledError:
                pass
            self._status_task = None

        if self.bridge is not None:
            await self.bridge.stop()

        if self._unsubscribe_evaluator is not None:
            self._unsubscribe_evaluator()
            self._unsubscribe_evaluator = None

        self.hub.cleanup()

        if self._pending_saves:
            await asyncio.gather(*self._pending_saves, return_exceptions=True)

        self._log_final_statistics()
        logger.info("Service stopped")

    # ----------------------------------------------------------------
    # Status and monitoring
    # ----------------------------------------------------------------

    def get_status(self) -> dict[str, Any]:
        """Get service status.

        Returns:
            Dictionary with hub status and counters
        """
        status: dict[str, Any] = {
            "running": self._running,
            "initialised": self._initialised,
            "alerts_fired": self._alert_count,
            "hub": self.hub.get_status() if self.hub else None,
            "bridge": None,
        }
        if self.bridge is not None:
            status["bridge"] = {
                "running": self.bridge.is_running,
                "lines_received": self.bridge.lines_received,
                "readings_forwarded": self.bridge.readings_forwarded,
                "lines_dropped": self.bridge.lines_dropped,
            }
        return status

    async def _status_loop(self) -> None:
        interval = self.config["service"]["status_interval_seconds"]
        while True:
            await asyncio.sleep(interval)
            self._log_status()

    def _log_status(self) -> None:
        status = self.get_status()
        hub = status["hub"]
        snapshot = hub["snapshot"]
        logger.info(
            f"Mode {hub['mode']}: level {snapshot['level']}%, "
            f"gas {snapshot['ppm']} ppm, "
            f"lid {'open' if snapshot['lidOpen'] else 'closed'}, "
            f"fan {'on' if snapshot['fanOn'] else 'off'}, "
            f"{status['alerts_fired']} alerts"
        )

    def _log_final_statistics(self) -> None:
        logger.info("--- Final Statistics ---")
        logger.info(f"Alerts fired: {self._alert_count}")
        if self.bridge is not None:
            logger.info(f"Device readings forwarded: {self.bridge.readings_forwarded}")
        logger.info("------------------------")

    # ----------------------------------------------------------------
    # Signal handling
    # ----------------------------------------------------------------

    def setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}")
            self._shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        logger.info("Signal handlers configured")

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def wait_for_shutdown(self) -> None:
        await self._shutdown_event.wait()

    # ----------------------------------------------------------------
    # Main run method
    # ----------------------------------------------------------------

    async def run(self) -> None:
        """Run the complete service lifecycle until interrupted."""
        try:
            self.setup_signal_handlers()
            await self.initialise()
            await self.start()

            logger.info("SmartBin service running. Press Ctrl+C to stop.")
            await self.wait_for_shutdown()

        except KeyboardInterrupt:
            logger.info("KeyboardInterrupt received")
        except Exception as e:
            logger.error(f"Fatal error: {e}", exc_info=True)
        finally:
            if self._running:
                await self.stop()


# ----------------------------------------------------------------
# Command-line interface
# ----------------------------------------------------------------


async def main(argv: list[str] | None = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="SmartBin telemetry service")
    parser.add_argument("--config-dir", default="config", help="Configuration directory")
    parser.add_argument("--log-dir", default="logs", help="JSON log directory")
    args = parser.parse_args(argv)

    logger.info("=== SmartBin Telemetry Service ===")

    manager = SmartBinManager(config_dir=args.config_dir, log_dir=args.log_dir)
    await manager.run()


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
