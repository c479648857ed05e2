"""Per-domain snapshot data structures.

Each snapshot is the immutable result of a single provider fetch. Snapshots
are built fresh per call by the ``kusanagi.status`` builders and are never
cached or mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NodeCondition:
    """One entry of ``status.conditions`` on a Node."""

    condition_type: str
    status: str
    message: str | None = None


@dataclass(frozen=True)
class NodeInfo:
    """Capacity, readiness and workload summary for one node."""

    name: str
    status: str  # "Ready" | "NotReady"
    architecture: str
    os: str
    kernel_version: str
    kubelet_version: str
    container_runtime: str
    cpu_capacity: str
    cpu_allocatable: str
    memory_capacity: str
    memory_allocatable: str
    pod_count: int
    pod_capacity: str
    pods_in_error: int
    error_pod_names: list[str] = field(default_factory=list)
    uptime: str | None = None
    uptime_seconds: int | None = None
    conditions: list[NodeCondition] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NodesStatus:
    total_nodes: int
    ready_nodes: int
    not_ready_nodes: int
    nodes: list[NodeInfo] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pods
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContainerInfo:
    """State of one container (init containers are prefixed ``init:``)."""

    name: str
    ready: bool
    restart_count: int
    state: str  # "Running" | "Waiting" | "Terminated" | "Unknown"
    reason: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class PodInfo:
    """A pod flagged by the error detector."""

    name: str
    namespace: str
    status: str
    reason: str | None
    message: str | None
    node: str | None
    restart_count: int
    age: str
    age_seconds: int
    containers: list[ContainerInfo] = field(default_factory=list)


@dataclass(frozen=True)
class PodsStatus:
    total_pods: int
    running_pods: int
    pending_pods: int
    succeeded_pods: int
    failed_pods: int
    error_pods: int
    pods_in_error: list[PodInfo] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EventInfo:
    name: str
    namespace: str
    event_type: str
    reason: str
    message: str
    involved_object_kind: str
    involved_object_name: str
    count: int
    first_timestamp: str | None = None
    last_timestamp: str | None = None
    age: str | None = None


@dataclass(frozen=True)
class EventsStatus:
    total_events: int
    warning_count: int
    normal_count: int
    events: list[EventInfo] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PvcInfo:
    name: str
    namespace: str
    status: str
    capacity: str
    capacity_bytes: int
    used_bytes: int | None
    usage_percent: float | None
    storage_class: str
    access_modes: list[str] = field(default_factory=list)
    volume_name: str = ""


@dataclass(frozen=True)
class StorageStatus:
    pvc_count: int
    pvc_total_capacity_bytes: int
    pvc_total_usage_bytes: int
    pvcs: list[PvcInfo] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Alerts (Alertmanager)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AlertInfo:
    name: str
    severity: str
    state: str
    summary: str
    description: str | None
    namespace: str | None
    pod: str | None
    started_at: str  # ISO-8601 UTC
    fingerprint: str


@dataclass(frozen=True)
class AlertsStatus:
    critical: list[AlertInfo] = field(default_factory=list)
    warning: list[AlertInfo] = field(default_factory=list)
    info: list[AlertInfo] = field(default_factory=list)
    total: int = 0
    firing: int = 0
    pending: int = 0


# ---------------------------------------------------------------------------
# Metrics (Prometheus)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClusterMetrics:
    cpu_usage_percent: float = 0.0
    memory_usage_percent: float = 0.0
    memory_usage_bytes: int = 0
    pod_count: int = 0
    node_count: int = 0
    container_count: int = 0
    alerts_firing: int = 0
    alerts_pending: int = 0


# ---------------------------------------------------------------------------
# Scheduled jobs (backups)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JobInfo:
    name: str
    status: str  # "Running" | "Succeeded" | "Failed" | "Unknown"
    started_at: str | None = None
    completed_at: str | None = None
    duration: str | None = None


@dataclass(frozen=True)
class CronJobInfo:
    name: str
    namespace: str
    schedule: str
    last_schedule: str | None
    last_schedule_age: str | None
    active_jobs: int
    suspend: bool
    recent_jobs: list[JobInfo] = field(default_factory=list)


@dataclass(frozen=True)
class BackupsStatus:
    total_cronjobs: int
    active_jobs: int
    succeeded_jobs: int
    failed_jobs: int
    cronjobs: list[CronJobInfo] = field(default_factory=list)
