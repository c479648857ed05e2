"""Prometheus metrics for Kusanagi.

All metrics live in the default ``prometheus_client`` registry and are
exposed by the REST API at ``/metrics``.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

provider_requests_total = Counter(
    "kusanagi_provider_requests_total",
    "Snapshot provider calls by source and outcome",
    ["source", "outcome"],
)

provider_duration_seconds = Histogram(
    "kusanagi_provider_duration_seconds",
    "Snapshot provider call latency",
    ["source"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

reports_total = Counter(
    "kusanagi_reports_total",
    "Cluster report generations by outcome",
    ["outcome"],
)

notification_sessions_active = Gauge(
    "kusanagi_notification_sessions_active",
    "Currently open notification sessions",
)

notifications_sent_total = Counter(
    "kusanagi_notifications_sent_total",
    "Notification messages pushed to clients by type",
    ["type"],
)
