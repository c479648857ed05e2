"""Cluster report and its derived summary."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from kusanagi.models.issues import ArgoStatus
from kusanagi.models.snapshots import (
    AlertsStatus,
    ClusterMetrics,
    EventsStatus,
    NodesStatus,
    StorageStatus,
)


@dataclass(frozen=True)
class ReportSummary:
    """Headline counts of a ClusterReport. Absent optional sources count as zero."""

    total_nodes: int
    ready_nodes: int
    total_apps: int
    healthy_apps: int
    unhealthy_apps: int
    total_alerts: int
    critical_alerts: int
    warning_alerts: int
    total_events: int
    warning_events: int
    total_pvcs: int


def summarize(
    nodes: NodesStatus,
    argocd_apps: ArgoStatus,
    events: EventsStatus,
    storage: StorageStatus,
    alerts: AlertsStatus | None,
) -> ReportSummary:
    """Compute the summary purely from snapshots.

    Identical inputs always yield an identical summary.
    """
    return ReportSummary(
        total_nodes=nodes.total_nodes,
        ready_nodes=nodes.ready_nodes,
        total_apps=argocd_apps.total,
        healthy_apps=argocd_apps.healthy,
        unhealthy_apps=argocd_apps.unhealthy,
        total_alerts=alerts.total if alerts is not None else 0,
        critical_alerts=len(alerts.critical) if alerts is not None else 0,
        warning_alerts=len(alerts.warning) if alerts is not None else 0,
        total_events=events.total_events,
        warning_events=events.warning_count,
        total_pvcs=storage.pvc_count,
    )


@dataclass(frozen=True)
class ClusterReport:
    """All domain snapshots gathered by one aggregation call.

    ``summary`` is recomputed from the held snapshots on every access, so it
    cannot drift from them.
    """

    generated_at: str  # RFC 3339
    cluster_name: str
    nodes: NodesStatus
    argocd_apps: ArgoStatus
    events: EventsStatus
    storage: StorageStatus
    alerts: AlertsStatus | None = None
    metrics: ClusterMetrics | None = None

    @property
    def summary(self) -> ReportSummary:
        return summarize(self.nodes, self.argocd_apps, self.events, self.storage, self.alerts)

    def to_dict(self) -> dict[str, object]:
        """Serialise to plain JSON-compatible data, summary included."""
        return {
            "generated_at": self.generated_at,
            "cluster_name": self.cluster_name,
            "summary": asdict(self.summary),
            "nodes": asdict(self.nodes),
            "argocd_apps": asdict(self.argocd_apps),
            "alerts": asdict(self.alerts) if self.alerts is not None else None,
            "events": asdict(self.events),
            "storage": asdict(self.storage),
            "metrics": asdict(self.metrics) if self.metrics is not None else None,
        }
