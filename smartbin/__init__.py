"""
SmartBin telemetry service.

Keeps bin fill level, air quality, temperature, humidity and lid/fan state in
sync with a push-based remote store, falls back to a local physics simulator
when the store is unreachable, and raises debounced threshold alerts.
"""

__version__ = "0.1.0"
