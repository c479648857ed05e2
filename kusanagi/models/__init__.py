"""Core data structures for Kusanagi."""

from kusanagi.models.actions import ForceDeleteResult, SyncResult
from kusanagi.models.config import KusanagiConfig
from kusanagi.models.issues import AppIssue, ArgoStatus, IssueCategory
from kusanagi.models.notifications import (
    Alert,
    Connected,
    Heartbeat,
    NotificationMessage,
    NotificationType,
    StatsCounts,
    StatsUpdate,
)
from kusanagi.models.report import ClusterReport, ReportSummary
from kusanagi.models.snapshots import (
    AlertInfo,
    AlertsStatus,
    BackupsStatus,
    ClusterMetrics,
    ContainerInfo,
    CronJobInfo,
    EventInfo,
    EventsStatus,
    JobInfo,
    NodeCondition,
    NodeInfo,
    NodesStatus,
    PodInfo,
    PodsStatus,
    PvcInfo,
    StorageStatus,
)

__all__ = [
    "Alert",
    "AlertInfo",
    "AlertsStatus",
    "AppIssue",
    "ArgoStatus",
    "BackupsStatus",
    "ClusterMetrics",
    "ClusterReport",
    "Connected",
    "ContainerInfo",
    "CronJobInfo",
    "EventInfo",
    "EventsStatus",
    "ForceDeleteResult",
    "Heartbeat",
    "IssueCategory",
    "JobInfo",
    "KusanagiConfig",
    "NodeCondition",
    "NodeInfo",
    "NodesStatus",
    "NotificationMessage",
    "NotificationType",
    "PodInfo",
    "PodsStatus",
    "PvcInfo",
    "ReportSummary",
    "StatsCounts",
    "StatsUpdate",
    "StorageStatus",
    "SyncResult",
]
