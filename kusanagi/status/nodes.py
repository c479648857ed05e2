"""Node readiness and per-node workload health."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from kusanagi.models.snapshots import NodeCondition, NodeInfo, NodesStatus
from kusanagi.observability.logging import get_logger
from kusanagi.status.durations import elapsed_seconds, format_uptime
from kusanagi.status.fields import get_dicts, get_map, get_str, get_str_or, parse_timestamp
from kusanagi.status.pods import detect_pod_error

_logger = get_logger("status.nodes")

_KI = 1024.0


def format_memory(quantity: str) -> str:
    """Render a memory quantity (``16318480Ki``, ``512Mi``, ``8Gi``) as Gi/Mi."""
    if quantity.endswith("Gi"):
        return f"{_as_float(quantity[:-2]):.1f}Gi"
    if quantity.endswith("Mi"):
        return f"{_as_float(quantity[:-2]):.0f}Mi"
    if quantity.endswith("Ki"):
        value = _as_float(quantity[:-2])
        gi = value / _KI / _KI
        if gi >= 1.0:
            return f"{gi:.1f}Gi"
        return f"{value / _KI:.0f}Mi"
    return quantity


def _as_float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        return 0.0


def node_conditions(node: dict[str, Any]) -> list[NodeCondition]:
    return [
        NodeCondition(
            condition_type=get_str_or(c, "type", ""),
            status=get_str_or(c, "status", ""),
            message=get_str(c, "message"),
        )
        for c in get_dicts(node, "status.conditions")
    ]


def is_node_ready(conditions: list[NodeCondition]) -> bool:
    """A node is ready only if its Ready condition is exactly ``"True"``."""
    return any(c.condition_type == "Ready" and c.status == "True" for c in conditions)


def pods_on_node(pods: list[dict[str, Any]], node_name: str) -> list[dict[str, Any]]:
    return [p for p in pods if get_str(p, "spec.nodeName") == node_name]


def build_node_info(node: dict[str, Any], pods: list[dict[str, Any]], now: datetime) -> NodeInfo:
    name = get_str_or(node, "metadata.name", "")
    capacity = get_map(node, "status.capacity")
    allocatable = get_map(node, "status.allocatable")
    conditions = node_conditions(node)

    scheduled = pods_on_node(pods, name)
    error_pod_names = [
        get_str_or(p, "metadata.name", "") for p in scheduled if detect_pod_error(p).is_error
    ]

    uptime: str | None = None
    uptime_seconds: int | None = None
    created = parse_timestamp(get_str(node, "metadata.creationTimestamp"))
    if created is not None:
        uptime_seconds = elapsed_seconds(created, now)
        uptime = format_uptime(uptime_seconds)

    return NodeInfo(
        name=name,
        status="Ready" if is_node_ready(conditions) else "NotReady",
        architecture=get_str_or(node, "status.nodeInfo.architecture", "unknown"),
        os=get_str_or(node, "status.nodeInfo.operatingSystem", "unknown"),
        kernel_version=get_str_or(node, "status.nodeInfo.kernelVersion", "unknown"),
        kubelet_version=get_str_or(node, "status.nodeInfo.kubeletVersion", "unknown"),
        container_runtime=get_str_or(node, "status.nodeInfo.containerRuntimeVersion", "unknown"),
        cpu_capacity=capacity.get("cpu", "0"),
        cpu_allocatable=allocatable.get("cpu", "0"),
        memory_capacity=format_memory(capacity["memory"]) if "memory" in capacity else "0",
        memory_allocatable=format_memory(allocatable["memory"]) if "memory" in allocatable else "0",
        pod_count=len(scheduled),
        pod_capacity=capacity.get("pods", "0"),
        pods_in_error=len(error_pod_names),
        error_pod_names=error_pod_names,
        uptime=uptime,
        uptime_seconds=uptime_seconds,
        conditions=conditions,
        labels=get_map(node, "metadata.labels"),
    )


def build_nodes_status(nodes: list[dict[str, Any]], pods: list[dict[str, Any]], now: datetime) -> NodesStatus:
    infos = sorted((build_node_info(n, pods, now) for n in nodes), key=lambda n: n.name)
    ready = sum(1 for n in infos if n.status == "Ready")

    _logger.debug("nodes_status_built", total=len(infos), ready=ready)

    return NodesStatus(
        total_nodes=len(infos),
        ready_nodes=ready,
        not_ready_nodes=len(infos) - ready,
        nodes=infos,
    )
