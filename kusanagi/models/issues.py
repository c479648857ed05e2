"""Classified application issues produced from ArgoCD status."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class IssueCategory(StrEnum):
    """How urgent/actionable an application issue is."""

    REAL_ISSUE = "real_issue"
    UPGRADE_AVAILABLE = "upgrade_available"
    PROGRESSING = "progressing"


@dataclass(frozen=True)
class AppIssue:
    """A user-facing description of an application that is unhealthy or out of sync.

    Produced only by ``kusanagi.status.argocd``; immutable once created.
    ``error_duration`` is None iff no start/reconcile timestamp could be parsed.
    """

    name: str
    namespace: str
    health_status: str
    sync_status: str
    message: str | None
    category: IssueCategory
    error_since: str | None = None
    error_duration: str | None = None
    target_revision: str | None = None
    current_revision: str | None = None
    is_helm_chart: bool = False
    can_sync: bool = False
    argocd_url: str = ""


@dataclass(frozen=True)
class ArgoStatus:
    """Snapshot of all ArgoCD applications in the configured namespace."""

    total: int
    healthy: int
    unhealthy: int
    synced: int
    out_of_sync: int
    unknown: int
    progressing: int
    upgrades_available: int
    apps_with_issues: list[AppIssue] = field(default_factory=list)
    apps_with_upgrades: list[AppIssue] = field(default_factory=list)
