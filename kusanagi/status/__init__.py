"""Pure builders turning raw Kubernetes/ArgoCD/Alertmanager objects into snapshots.

Nothing in this package performs I/O. Providers fetch raw objects and hand
them to the ``build_*`` functions here, which never raise on malformed input.
"""

from kusanagi.status.alerts import build_alerts_status
from kusanagi.status.argocd import build_argo_status, categorize_issue, classify_application
from kusanagi.status.backups import build_backups_status
from kusanagi.status.durations import format_duration
from kusanagi.status.events import build_events_status
from kusanagi.status.nodes import build_nodes_status
from kusanagi.status.pods import PodErrorVerdict, build_pods_status, detect_pod_error
from kusanagi.status.storage import build_storage_status, parse_volume_usage

__all__ = [
    "PodErrorVerdict",
    "build_alerts_status",
    "build_argo_status",
    "build_backups_status",
    "build_events_status",
    "build_nodes_status",
    "build_pods_status",
    "build_storage_status",
    "categorize_issue",
    "classify_application",
    "detect_pod_error",
    "format_duration",
    "parse_volume_usage",
]
