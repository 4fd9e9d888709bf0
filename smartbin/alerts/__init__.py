"""Threshold alerting for SmartBin telemetry."""

from smartbin.alerts.alert_evaluator import AlertEvaluator, AlertKind

__all__ = ["AlertEvaluator", "AlertKind"]
