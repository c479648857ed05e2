"""Kusanagi: cluster health aggregation and live notifications."""

__version__ = "0.1.0"
