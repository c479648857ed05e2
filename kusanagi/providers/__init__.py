"""Snapshot providers.

Exports:
    ProviderUnavailable -- the single failure type every provider raises.
    SnapshotProviders   -- bundle of no-argument provider callables, one per
                           domain, consumed by the aggregator, the stats
                           poller and the REST API.
    ClusterActions      -- protocol for the mutating actions (ArgoCD sync, pod
                           force delete) the REST API exposes.
    build_providers     -- factory used by the application bootstrap.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from kusanagi.models.config import ProviderConfig
from kusanagi.models.issues import ArgoStatus
from kusanagi.models.snapshots import (
    AlertsStatus,
    BackupsStatus,
    ClusterMetrics,
    EventsStatus,
    NodesStatus,
    PodsStatus,
    StorageStatus,
)
from kusanagi.providers.alertmanager import AlertmanagerProvider
from kusanagi.providers.base import ClusterActions, Provider, ProviderUnavailable, observed
from kusanagi.providers.kube import KubernetesProvider
from kusanagi.providers.prometheus import PrometheusProvider

__all__ = [
    "AlertmanagerProvider",
    "ClusterActions",
    "KubernetesProvider",
    "PrometheusProvider",
    "Provider",
    "ProviderUnavailable",
    "SnapshotProviders",
    "build_providers",
    "observed",
]


@dataclass(frozen=True)
class SnapshotProviders:
    """One provider per domain. Providers are stateless and reentrant.

    ``actions`` is None when the deployment offers no mutating actions.
    """

    nodes: Provider[NodesStatus]
    pods: Provider[PodsStatus]
    argocd: Provider[ArgoStatus]
    events: Provider[EventsStatus]
    storage: Provider[StorageStatus]
    alerts: Provider[AlertsStatus]
    metrics: Provider[ClusterMetrics]
    backups: Provider[BackupsStatus]
    actions: ClusterActions | None = None


def build_providers(api_client: Any, config: ProviderConfig) -> SnapshotProviders:
    """Wire the Kubernetes, Alertmanager and Prometheus providers together."""
    kube = KubernetesProvider(api_client, config)
    alertmanager = AlertmanagerProvider(config.alertmanager_url, timeout=config.timeout_seconds)
    prometheus = PrometheusProvider(config.prometheus_url, timeout=config.timeout_seconds)
    return SnapshotProviders(
        nodes=kube.nodes,
        pods=kube.pods,
        argocd=kube.argocd,
        events=kube.events,
        storage=kube.storage,
        alerts=alertmanager.alerts,
        metrics=prometheus.metrics,
        backups=kube.backups,
        actions=kube,
    )
