"""Alertmanager v2 alerts grouped by severity."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from kusanagi.models.snapshots import AlertInfo, AlertsStatus
from kusanagi.status.fields import get_map, get_str, get_str_or, parse_timestamp


def build_alert_info(alert: dict[str, Any], now: datetime) -> AlertInfo:
    labels = get_map(alert, "labels")
    annotations = get_map(alert, "annotations")
    started = parse_timestamp(get_str(alert, "startsAt")) or now
    return AlertInfo(
        name=labels.get("alertname", "Unknown"),
        severity=labels.get("severity", "info"),
        state=get_str_or(alert, "status.state", "unknown"),
        summary=annotations.get("summary", "No summary"),
        description=annotations.get("description"),
        namespace=labels.get("namespace"),
        pod=labels.get("pod"),
        started_at=started.isoformat(),
        fingerprint=get_str_or(alert, "fingerprint", ""),
    )


def build_alerts_status(alerts: list[dict[str, Any]], now: datetime) -> AlertsStatus:
    """Group alerts into critical/warning/info, each newest first.

    Anything not in state ``firing`` counts as pending.
    """
    groups: dict[str, list[AlertInfo]] = {"critical": [], "warning": [], "info": []}
    firing = pending = 0

    for raw in alerts:
        info = build_alert_info(raw, now)
        if info.state == "firing":
            firing += 1
        else:
            pending += 1
        groups.get(info.severity, groups["info"]).append(info)

    for bucket in groups.values():
        bucket.sort(key=lambda a: a.started_at, reverse=True)

    return AlertsStatus(
        critical=groups["critical"],
        warning=groups["warning"],
        info=groups["info"],
        total=sum(len(b) for b in groups.values()),
        firing=firing,
        pending=pending,
    )
