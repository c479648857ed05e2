"""Kubernetes-backed snapshot providers (nodes, pods, ArgoCD, events, storage, jobs).

Each public snapshot coroutine lists raw objects through kubernetes-asyncio,
converts them to their API (camelCase) dict form, and hands them to the pure
builders in ``kusanagi.status``. API and transport failures surface as
ProviderUnavailable.

The same provider also carries the two mutating actions (ArgoCD sync and pod
force delete). Those report failures in their result instead of raising.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import aiohttp
import structlog
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from kusanagi.models.actions import ForceDeleteResult, SyncResult
from kusanagi.models.config import ProviderConfig
from kusanagi.models.issues import ArgoStatus
from kusanagi.models.snapshots import BackupsStatus, EventsStatus, NodesStatus, PodsStatus, StorageStatus
from kusanagi.providers.base import ProviderUnavailable
from kusanagi.status import (
    build_argo_status,
    build_backups_status,
    build_events_status,
    build_nodes_status,
    build_pods_status,
    build_storage_status,
    parse_volume_usage,
)
from kusanagi.status.fields import get_str
from kusanagi.status.storage import VolumeUsage

_log = structlog.get_logger(component="providers.kube")

_ARGO_GROUP = "argoproj.io"
_ARGO_VERSION = "v1alpha1"
_ARGO_PLURAL = "applications"
_MERGE_PATCH = "application/merge-patch+json"
_ACTOR = "kusanagi"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class KubernetesProvider:
    """Snapshot providers backed by the Kubernetes API.

    Args:
        api_client: A configured ``kubernetes_asyncio.client.ApiClient``.
        config:     Provider settings (ArgoCD namespace and UI URL).
        clock:      Returns the current UTC time; injected by tests.
    """

    def __init__(
        self,
        api_client: Any,
        config: ProviderConfig,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._api_client = api_client
        self._config = config
        self._clock = clock
        self._core = k8s_client.CoreV1Api(api_client)
        self._batch = k8s_client.BatchV1Api(api_client)
        self._custom = k8s_client.CustomObjectsApi(api_client)

    # ------------------------------------------------------------------
    # Raw listing
    # ------------------------------------------------------------------

    async def _call(self, source: str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except ApiException as exc:
            raise ProviderUnavailable(source, f"kubernetes API returned {exc.status}: {exc.reason}") from exc
        except (aiohttp.ClientError, OSError) as exc:
            raise ProviderUnavailable(source, f"kubernetes API unreachable: {exc}") from exc

    async def _list(self, source: str, call: Awaitable[Any]) -> list[dict[str, Any]]:
        result = await self._call(source, call)
        return [self._api_client.sanitize_for_serialization(item) for item in result.items]

    async def list_nodes(self) -> list[dict[str, Any]]:
        return await self._list("nodes", self._core.list_node())

    async def list_pods(self, source: str = "pods") -> list[dict[str, Any]]:
        return await self._list(source, self._core.list_pod_for_all_namespaces())

    async def list_applications(self) -> list[dict[str, Any]]:
        result = await self._call(
            "argocd",
            self._custom.list_namespaced_custom_object(
                group=_ARGO_GROUP,
                version=_ARGO_VERSION,
                namespace=self._config.argocd_namespace,
                plural=_ARGO_PLURAL,
            ),
        )
        items = result.get("items") if isinstance(result, dict) else None
        return [item for item in items or [] if isinstance(item, dict)]

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def nodes(self) -> NodesStatus:
        nodes, pods = await asyncio.gather(self.list_nodes(), self.list_pods(source="nodes"))
        return build_nodes_status(nodes, pods, self._clock())

    async def pods(self) -> PodsStatus:
        return build_pods_status(await self.list_pods(), self._clock())

    async def argocd(self) -> ArgoStatus:
        apps = await self.list_applications()
        return build_argo_status(
            apps,
            self._clock(),
            argocd_url=self._config.argocd_url,
            argocd_namespace=self._config.argocd_namespace,
        )

    async def events(self) -> EventsStatus:
        events = await self._list("events", self._core.list_event_for_all_namespaces())
        return build_events_status(events, self._clock())

    async def storage(self) -> StorageStatus:
        pvcs, nodes = await asyncio.gather(
            self._list("storage", self._core.list_persistent_volume_claim_for_all_namespaces()),
            self._list("storage", self._core.list_node()),
        )
        usage = await self._volume_usage(nodes)
        return build_storage_status(pvcs, usage)

    async def _volume_usage(self, nodes: list[dict[str, Any]]) -> VolumeUsage:
        """Collect PVC usage from every node's kubelet metrics.

        A node whose kubelet cannot be scraped only loses its own samples.
        """
        names = [name for name in (get_str(n, "metadata.name") for n in nodes) if name]
        results = await asyncio.gather(
            *(self._core.connect_get_node_proxy_with_path(name, "metrics") for name in names),
            return_exceptions=True,
        )
        usage: VolumeUsage = {}
        for name, result in zip(names, results, strict=True):
            if isinstance(result, BaseException):
                _log.warning("kubelet_metrics_unavailable", node=name, error=str(result))
                continue
            usage.update(parse_volume_usage(str(result)))
        return usage

    async def backups(self) -> BackupsStatus:
        cronjobs, jobs = await asyncio.gather(
            self._list("backups", self._batch.list_cron_job_for_all_namespaces()),
            self._list("backups", self._batch.list_job_for_all_namespaces()),
        )
        return build_backups_status(cronjobs, jobs, self._clock())

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def sync_application(self, name: str) -> SyncResult:
        """Hard-refresh an ArgoCD application and start a sync operation on it."""
        patch = {
            "metadata": {"annotations": {"argocd.argoproj.io/refresh": "hard"}},
            "operation": {
                "initiatedBy": {"username": _ACTOR},
                "sync": {"prune": False, "revision": ""},
            },
        }
        try:
            await self._call(
                "argocd",
                self._custom.patch_namespaced_custom_object(
                    group=_ARGO_GROUP,
                    version=_ARGO_VERSION,
                    namespace=self._config.argocd_namespace,
                    plural=_ARGO_PLURAL,
                    name=name,
                    body=patch,
                    _content_type=_MERGE_PATCH,
                ),
            )
        except ProviderUnavailable as exc:
            _log.warning("argocd_sync_failed", application=name, reason=exc.reason)
            return SyncResult(False, f"Failed to sync application {name}: {exc.reason}", name)
        _log.info("argocd_sync_triggered", application=name)
        return SyncResult(True, f"Sync triggered for {name}", name)

    async def force_delete_pod(self, namespace: str, name: str) -> ForceDeleteResult:
        """Clear a pod's finalizers, then delete it with a zero grace period.

        A failed finalizer patch is logged and the delete is attempted anyway;
        only the delete decides ``success``.
        """
        log = _log.bind(namespace=namespace, pod=name)
        log.info("pod_force_delete_requested")
        try:
            await self._call(
                "pods",
                self._core.patch_namespaced_pod(
                    name,
                    namespace,
                    {"metadata": {"finalizers": None}},
                    _content_type=_MERGE_PATCH,
                ),
            )
        except ProviderUnavailable as exc:
            log.info("pod_finalizers_not_cleared", reason=exc.reason)

        try:
            await self._call("pods", self._core.delete_namespaced_pod(name, namespace, grace_period_seconds=0))
        except ProviderUnavailable as exc:
            log.error("pod_force_delete_failed", reason=exc.reason)
            return ForceDeleteResult(False, f"Failed to delete pod {namespace}/{name}: {exc.reason}", name, namespace)
        log.info("pod_force_deleted")
        return ForceDeleteResult(True, f"Pod {name} successfully force deleted", name, namespace)
