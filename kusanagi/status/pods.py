"""Pod error detection.

``detect_pod_error`` decides whether a pod is in error using three rules in
precedence order: failed/unknown phase, a container stuck on a known error
reason, then a high total restart count. The same detector is used for the
cluster-wide pod snapshot and for per-node error counts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from kusanagi.models.snapshots import ContainerInfo, PodInfo, PodsStatus
from kusanagi.observability.logging import get_logger
from kusanagi.status.durations import elapsed_seconds, format_age
from kusanagi.status.fields import (
    UNKNOWN,
    get_bool,
    get_dicts,
    get_int,
    get_str,
    get_str_or,
    parse_timestamp,
)

_logger = get_logger("status.pods")

ERROR_REASONS: frozenset[str] = frozenset(
    {
        "CrashLoopBackOff",
        "ImagePullBackOff",
        "ErrImagePull",
        "CreateContainerConfigError",
        "CreateContainerError",
        "RunContainerError",
        "OOMKilled",
        "Error",
        "InvalidImageName",
        "ContainerCannotRun",
        "DeadlineExceeded",
        "Evicted",
    }
)

HIGH_RESTART_THRESHOLD = 5


@dataclass(frozen=True)
class PodErrorVerdict:
    """Outcome of the error detector for one pod."""

    is_error: bool
    reason: str | None = None
    message: str | None = None
    total_restarts: int = 0


def container_state(container_status: dict[str, Any]) -> tuple[str, str | None, str | None]:
    """Return ``(state, reason, message)`` for a container status entry."""
    if isinstance(container_status.get("state"), dict):
        state = container_status["state"]
        if state.get("running") is not None:
            return "Running", None, None
        if isinstance(state.get("waiting"), dict):
            return "Waiting", get_str(state, "waiting.reason"), get_str(state, "waiting.message")
        if isinstance(state.get("terminated"), dict):
            return "Terminated", get_str(state, "terminated.reason"), get_str(state, "terminated.message")
    return UNKNOWN, None, None


def _all_container_statuses(pod: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
    """Regular containers first, then init containers (name-prefixed)."""
    regular = [(get_str_or(cs, "name", ""), cs) for cs in get_dicts(pod, "status.containerStatuses")]
    init = [(f"init:{get_str_or(cs, 'name', '')}", cs) for cs in get_dicts(pod, "status.initContainerStatuses")]
    return regular + init


def detect_pod_error(pod: dict[str, Any]) -> PodErrorVerdict:
    """Classify a raw Pod object as erroring or not.

    Precedence:
      1. phase Failed/Unknown (missing phase counts as Unknown)
      2. first container whose waiting/terminated reason is in ERROR_REASONS
      3. total restarts > 5 -> ``HighRestartCount (N)``
    """
    phase = get_str_or(pod, "status.phase", UNKNOWN)
    is_error = False
    reason: str | None = None
    message: str | None = None

    if phase in ("Failed", UNKNOWN):
        is_error = True
        reason = get_str(pod, "status.reason")
        message = get_str(pod, "status.message")

    total_restarts = 0
    for _name, cs in _all_container_statuses(pod):
        total_restarts += get_int(cs, "restartCount")
        _state, cs_reason, cs_message = container_state(cs)
        if cs_reason is not None and cs_reason in ERROR_REASONS:
            if not is_error:
                reason, message = cs_reason, cs_message
            elif reason is None:
                # A failed phase without its own reason takes the container's.
                reason, message = cs_reason, cs_message
            is_error = True

    if not is_error and total_restarts > HIGH_RESTART_THRESHOLD:
        return PodErrorVerdict(
            is_error=True,
            reason=f"HighRestartCount ({total_restarts})",
            total_restarts=total_restarts,
        )

    return PodErrorVerdict(is_error=is_error, reason=reason, message=message, total_restarts=total_restarts)


def _containers(pod: dict[str, Any]) -> list[ContainerInfo]:
    infos = []
    for name, cs in _all_container_statuses(pod):
        state, reason, message = container_state(cs)
        infos.append(
            ContainerInfo(
                name=name,
                ready=get_bool(cs, "ready"),
                restart_count=get_int(cs, "restartCount"),
                state=state,
                reason=reason,
                message=message,
            )
        )
    return infos


def _age(obj: dict[str, Any], now: datetime) -> tuple[str, int]:
    created = parse_timestamp(get_str(obj, "metadata.creationTimestamp"))
    if created is None:
        return UNKNOWN, 0
    seconds = elapsed_seconds(created, now)
    return format_age(seconds), seconds


def build_pods_status(pods: list[dict[str, Any]], now: datetime) -> PodsStatus:
    """Phase counts plus the list of erroring pods.

    Erroring pods are ordered by restart count (highest first), then by age
    (newest first).
    """
    phase_counts = {"Running": 0, "Pending": 0, "Succeeded": 0, "Failed": 0}
    in_error: list[PodInfo] = []

    for pod in pods:
        phase = get_str_or(pod, "status.phase", UNKNOWN)
        if phase in phase_counts:
            phase_counts[phase] += 1

        verdict = detect_pod_error(pod)
        if not verdict.is_error:
            continue

        age, age_seconds = _age(pod, now)
        in_error.append(
            PodInfo(
                name=get_str_or(pod, "metadata.name", ""),
                namespace=get_str_or(pod, "metadata.namespace", ""),
                status=phase,
                reason=verdict.reason,
                message=verdict.message,
                node=get_str(pod, "spec.nodeName"),
                restart_count=verdict.total_restarts,
                age=age,
                age_seconds=age_seconds,
                containers=_containers(pod),
            )
        )

    in_error.sort(key=lambda p: (-p.restart_count, p.age_seconds))

    _logger.debug(
        "pods_status_built",
        total=len(pods),
        running=phase_counts["Running"],
        error=len(in_error),
    )

    return PodsStatus(
        total_pods=len(pods),
        running_pods=phase_counts["Running"],
        pending_pods=phase_counts["Pending"],
        succeeded_pods=phase_counts["Succeeded"],
        failed_pods=phase_counts["Failed"],
        error_pods=len(in_error),
        pods_in_error=in_error,
    )
