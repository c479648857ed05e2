"""ArgoCD application classification.

Turns raw ``argoproj.io/v1alpha1`` Application objects into an ArgoStatus
snapshot. The classification itself (``categorize_issue``) is a pure,
ordered decision table: the first matching rule wins, so every input maps to
exactly one IssueCategory.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from kusanagi.models.issues import AppIssue, ArgoStatus, IssueCategory
from kusanagi.observability.logging import get_logger
from kusanagi.status.durations import elapsed_seconds, format_duration
from kusanagi.status.fields import UNKNOWN, get_str, get_str_or, parse_timestamp

_logger = get_logger("status.argocd")

_FLOATING_REVISIONS = frozenset({"*", "latest", "head"})
_COMPLETED_SYNC_MARKERS = ("successfully synced", "no more tasks", "all tasks run")


def categorize_issue(
    health_status: str,
    sync_status: str,
    message: str | None,
    is_helm_chart: bool,
    target_revision: str | None,
) -> IssueCategory:
    """Assign exactly one category to an application issue.

    Rules, first match wins:
      1. Progressing health -> PROGRESSING.
      2. Healthy but OutOfSync:
         a. floating target revision (``*``, ``latest``, ``head``) -> UPGRADE_AVAILABLE
         b. completed-sync message on a Helm chart -> UPGRADE_AVAILABLE
         c. any Helm chart -> UPGRADE_AVAILABLE
      3. Everything else -> REAL_ISSUE.
    """
    if health_status == "Progressing":
        return IssueCategory.PROGRESSING

    if health_status == "Healthy" and sync_status == "OutOfSync":
        if target_revision is not None and target_revision.lower() in _FLOATING_REVISIONS:
            return IssueCategory.UPGRADE_AVAILABLE

        if message is not None and is_helm_chart:
            lowered = message.lower()
            if any(marker in lowered for marker in _COMPLETED_SYNC_MARKERS):
                return IssueCategory.UPGRADE_AVAILABLE

        if is_helm_chart:
            return IssueCategory.UPGRADE_AVAILABLE

    return IssueCategory.REAL_ISSUE


def has_issue(health_status: str, sync_status: str) -> bool:
    """Healthy and synced applications are not reported."""
    return health_status != "Healthy" or sync_status in ("OutOfSync", "Unknown")


def issue_message(status: dict[str, Any]) -> str | None:
    """Health message, falling back to the last operation's message."""
    return get_str(status, "health.message") or get_str(status, "operationState.message")


def error_duration(status: dict[str, Any], now: datetime) -> tuple[str | None, str | None]:
    """Return ``(error_since, error_duration)`` for an application status.

    ``operationState.startedAt`` is preferred over ``reconciledAt``. The first
    present field decides: if it does not parse, its raw value is still
    returned as ``error_since`` and the duration is None.
    """
    for path in ("operationState.startedAt", "reconciledAt"):
        raw = get_str(status, path)
        if raw is None:
            continue
        started = parse_timestamp(raw)
        if started is None:
            return raw, None
        return raw, format_duration(elapsed_seconds(started, now))
    return None, None


def classify_application(
    app: dict[str, Any],
    now: datetime,
    argocd_url: str = "",
    argocd_namespace: str = "argocd",
) -> AppIssue | None:
    """Build the AppIssue for one Application, or None if it is healthy and synced."""
    status = app.get("status") if isinstance(app.get("status"), dict) else {}
    name = get_str_or(app, "metadata.name", "")
    health_status = get_str_or(status, "health.status", UNKNOWN)
    sync_status = get_str_or(status, "sync.status", UNKNOWN)

    if not has_issue(health_status, sync_status):
        return None

    is_helm_chart = get_str(app, "spec.source.chart") is not None
    target_revision = get_str(app, "spec.source.targetRevision")
    message = issue_message(status)
    error_since, duration = error_duration(status, now)

    return AppIssue(
        name=name,
        namespace=get_str_or(app, "spec.destination.namespace", ""),
        health_status=health_status,
        sync_status=sync_status,
        message=message,
        category=categorize_issue(health_status, sync_status, message, is_helm_chart, target_revision),
        error_since=error_since,
        error_duration=duration,
        target_revision=target_revision,
        current_revision=get_str(status, "sync.revision"),
        is_helm_chart=is_helm_chart,
        can_sync=health_status in ("Healthy", "Progressing"),
        argocd_url=f"{argocd_url}/applications/{argocd_namespace}/{name}" if argocd_url else "",
    )


def build_argo_status(
    apps: list[dict[str, Any]],
    now: datetime,
    argocd_url: str = "",
    argocd_namespace: str = "argocd",
) -> ArgoStatus:
    """Count health/sync buckets and classify every application with an issue."""
    healthy = unhealthy = unknown = progressing = 0
    synced = out_of_sync = 0
    issues: list[AppIssue] = []
    upgrades: list[AppIssue] = []

    for app in apps:
        health_status = get_str_or(app, "status.health.status", UNKNOWN)
        sync_status = get_str_or(app, "status.sync.status", UNKNOWN)

        if health_status == "Healthy":
            healthy += 1
        elif health_status == "Progressing":
            progressing += 1
        elif health_status == UNKNOWN:
            unknown += 1
        else:
            unhealthy += 1

        if sync_status == "Synced":
            synced += 1
        elif sync_status == "OutOfSync":
            out_of_sync += 1

        issue = classify_application(app, now, argocd_url, argocd_namespace)
        if issue is None:
            continue
        if issue.category is IssueCategory.UPGRADE_AVAILABLE:
            upgrades.append(issue)
        else:
            issues.append(issue)

    _logger.debug(
        "argocd_status_built",
        total=len(apps),
        healthy=healthy,
        issues=len(issues),
        upgrades=len(upgrades),
    )

    return ArgoStatus(
        total=len(apps),
        healthy=healthy,
        unhealthy=unhealthy,
        synced=synced,
        out_of_sync=out_of_sync,
        unknown=unknown,
        progressing=progressing,
        upgrades_available=len(upgrades),
        apps_with_issues=issues,
        apps_with_upgrades=upgrades,
    )
