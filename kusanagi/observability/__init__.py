"""Logging, Prometheus metrics and telemetry export."""
