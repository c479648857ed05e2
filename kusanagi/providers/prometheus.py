"""Prometheus cluster-metrics provider.

Runs a fixed set of PromQL instant queries. A single failed query yields
0 for that figure; the snapshot only fails when no query succeeds at all,
which means the backend is unreachable.
"""

from __future__ import annotations

import asyncio
import math

import httpx
import structlog

from kusanagi.models.snapshots import ClusterMetrics
from kusanagi.providers.base import ProviderUnavailable

_log = structlog.get_logger(component="providers.prometheus")

_QUERY_PATH = "/api/v1/query"

QUERIES: dict[str, str] = {
    "cpu_usage_percent": '100 - (avg(rate(node_cpu_seconds_total{mode="idle"}[5m])) * 100)',
    "memory_usage_percent": "(1 - (sum(node_memory_MemAvailable_bytes) / sum(node_memory_MemTotal_bytes))) * 100",
    "memory_usage_bytes": "sum(node_memory_MemTotal_bytes) - sum(node_memory_MemAvailable_bytes)",
    "pod_count": "count(kube_pod_info)",
    "node_count": "count(kube_node_info)",
    "container_count": "count(kube_pod_container_info)",
    "alerts_firing": 'count(ALERTS{alertstate="firing"}) or vector(0)',
    "alerts_pending": 'count(ALERTS{alertstate="pending"}) or vector(0)',
}


class _QueryFailed(Exception):
    pass


def parse_instant_value(payload: object) -> float:
    """Extract the first sample value of an instant-query response.

    An empty result vector means 0. Raises _QueryFailed for error responses.
    """
    if not isinstance(payload, dict) or payload.get("status") != "success":
        raise _QueryFailed("query status was not success")
    data = payload.get("data")
    result = data.get("result") if isinstance(data, dict) else None
    if not result:
        return 0.0
    first = result[0]
    value = first.get("value") if isinstance(first, dict) else None
    if not isinstance(value, list) or len(value) != 2:
        raise _QueryFailed("malformed sample")
    try:
        return float(value[1])
    except (TypeError, ValueError) as exc:
        raise _QueryFailed(f"unparseable sample value {value[1]!r}") from exc


class PrometheusProvider:
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}{_QUERY_PATH}"
        self._timeout = timeout
        self._client = client

    async def _query(self, client: httpx.AsyncClient, name: str, promql: str) -> float | None:
        try:
            response = await client.get(self._url, params={"query": promql}, timeout=self._timeout)
        except httpx.HTTPError as exc:
            _log.debug("prometheus_query_unreachable", query=name, error=str(exc))
            return None
        if not response.is_success:
            _log.debug("prometheus_query_non_2xx", query=name, status_code=response.status_code)
            return 0.0
        try:
            return parse_instant_value(response.json())
        except (ValueError, _QueryFailed) as exc:
            _log.debug("prometheus_query_failed", query=name, error=str(exc))
            return 0.0

    async def metrics(self) -> ClusterMetrics:
        if self._client is not None:
            values = await self._run_all(self._client)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                values = await self._run_all(client)

        if all(v is None for v in values.values()):
            raise ProviderUnavailable("metrics", f"prometheus unreachable at {self._url}")

        # NaN and infinite samples count as 0, like failed queries.
        figures = {
            name: value if value is not None and math.isfinite(value) else 0.0 for name, value in values.items()
        }
        return ClusterMetrics(
            cpu_usage_percent=figures["cpu_usage_percent"],
            memory_usage_percent=figures["memory_usage_percent"],
            memory_usage_bytes=int(figures["memory_usage_bytes"]),
            pod_count=int(figures["pod_count"]),
            node_count=int(figures["node_count"]),
            container_count=int(figures["container_count"]),
            alerts_firing=int(figures["alerts_firing"]),
            alerts_pending=int(figures["alerts_pending"]),
        )

    async def _run_all(self, client: httpx.AsyncClient) -> dict[str, float | None]:
        names = list(QUERIES)
        results = await asyncio.gather(*(self._query(client, n, QUERIES[n]) for n in names))
        return dict(zip(names, results, strict=True))
