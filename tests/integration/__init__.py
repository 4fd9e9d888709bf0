# tests/integration/__init__.py
"""
Integration tests for the SmartBin telemetry service.

These tests verify that the bridge, store, hub, alert evaluator and
repository work together as one system, from a device line arriving to
an alert landing in the store, including the switch to simulation when
the store stops answering.
"""
