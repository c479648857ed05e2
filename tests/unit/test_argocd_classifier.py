"""Tests for ArgoCD issue classification and the ArgoStatus snapshot.

Covers the categorize_issue decision table (including a hypothesis check that
every input maps to exactly one category), error-duration extraction and
build_argo_status bucketing.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from hypothesis import given
from hypothesis import strategies as st

from kusanagi.models.issues import IssueCategory
from kusanagi.status.argocd import (
    build_argo_status,
    categorize_issue,
    classify_application,
    error_duration,
    has_issue,
)

_NOW = datetime(2026, 2, 18, 12, 0, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Helper factories
# ---------------------------------------------------------------------------


def _make_app(
    name: str = "my-app",
    health: str | None = "Healthy",
    sync: str | None = "Synced",
    health_message: str | None = None,
    operation_message: str | None = None,
    chart: str | None = None,
    target_revision: str | None = "main",
    started_at: str | None = None,
    reconciled_at: str | None = None,
    revision: str | None = "abc123",
) -> dict[str, Any]:
    status: dict[str, Any] = {"health": {}, "sync": {}}
    if health is not None:
        status["health"]["status"] = health
    if health_message is not None:
        status["health"]["message"] = health_message
    if sync is not None:
        status["sync"]["status"] = sync
    if revision is not None:
        status["sync"]["revision"] = revision
    operation: dict[str, Any] = {}
    if operation_message is not None:
        operation["message"] = operation_message
    if started_at is not None:
        operation["startedAt"] = started_at
    if operation:
        status["operationState"] = operation
    if reconciled_at is not None:
        status["reconciledAt"] = reconciled_at

    source: dict[str, Any] = {"repoURL": "https://charts.example.com"}
    if chart is not None:
        source["chart"] = chart
    if target_revision is not None:
        source["targetRevision"] = target_revision

    return {
        "metadata": {"name": name, "namespace": "argocd"},
        "spec": {"source": source, "destination": {"namespace": "apps"}},
        "status": status,
    }


# ---------------------------------------------------------------------------
# categorize_issue
# ---------------------------------------------------------------------------


class TestCategorizeIssue:
    def test_floating_revision_on_helm_chart_is_upgrade(self) -> None:
        assert categorize_issue("Healthy", "OutOfSync", None, True, "*") is IssueCategory.UPGRADE_AVAILABLE

    def test_progressing_wins_over_out_of_sync(self) -> None:
        assert categorize_issue("Progressing", "OutOfSync", None, True, "*") is IssueCategory.PROGRESSING

    def test_degraded_synced_is_real_issue(self) -> None:
        assert categorize_issue("Degraded", "Synced", None, False, None) is IssueCategory.REAL_ISSUE

    def test_floating_revision_is_case_insensitive(self) -> None:
        for revision in ("LATEST", "Head", "latest"):
            assert categorize_issue("Healthy", "OutOfSync", None, False, revision) is IssueCategory.UPGRADE_AVAILABLE

    def test_pinned_revision_git_app_is_real_issue(self) -> None:
        assert categorize_issue("Healthy", "OutOfSync", None, False, "v1.2.3") is IssueCategory.REAL_ISSUE

    def test_completed_sync_message_on_helm_chart_is_upgrade(self) -> None:
        category = categorize_issue("Healthy", "OutOfSync", "Successfully synced (all tasks run)", True, "1.0.0")
        assert category is IssueCategory.UPGRADE_AVAILABLE

    def test_completed_sync_message_without_chart_is_real_issue(self) -> None:
        category = categorize_issue("Healthy", "OutOfSync", "successfully synced", False, "main")
        assert category is IssueCategory.REAL_ISSUE

    def test_any_helm_chart_out_of_sync_is_upgrade(self) -> None:
        assert categorize_issue("Healthy", "OutOfSync", None, True, "2.0.0") is IssueCategory.UPGRADE_AVAILABLE

    def test_healthy_unknown_sync_is_real_issue(self) -> None:
        assert categorize_issue("Healthy", "Unknown", None, True, "*") is IssueCategory.REAL_ISSUE

    def test_missing_health_is_real_issue(self) -> None:
        assert categorize_issue("Missing", "OutOfSync", None, True, "*") is IssueCategory.REAL_ISSUE

    @given(
        health=st.sampled_from(["Healthy", "Progressing", "Degraded", "Missing", "Suspended", "Unknown", ""]),
        sync=st.sampled_from(["Synced", "OutOfSync", "Unknown", ""]),
        message=st.one_of(st.none(), st.text(max_size=40), st.sampled_from(["No more tasks", "all tasks run"])),
        is_helm_chart=st.booleans(),
        target_revision=st.one_of(st.none(), st.sampled_from(["*", "latest", "HEAD", "main", "1.2.3"])),
    )
    def test_every_input_maps_to_exactly_one_category(
        self,
        health: str,
        sync: str,
        message: str | None,
        is_helm_chart: bool,
        target_revision: str | None,
    ) -> None:
        category = categorize_issue(health, sync, message, is_helm_chart, target_revision)
        assert isinstance(category, IssueCategory)
        if health == "Progressing":
            assert category is IssueCategory.PROGRESSING
        elif not (health == "Healthy" and sync == "OutOfSync"):
            assert category is IssueCategory.REAL_ISSUE


class TestHasIssue:
    def test_healthy_synced_has_no_issue(self) -> None:
        assert has_issue("Healthy", "Synced") is False

    def test_unhealthy_has_issue(self) -> None:
        assert has_issue("Degraded", "Synced") is True

    def test_out_of_sync_or_unknown_sync_has_issue(self) -> None:
        assert has_issue("Healthy", "OutOfSync") is True
        assert has_issue("Healthy", "Unknown") is True


# ---------------------------------------------------------------------------
# error_duration
# ---------------------------------------------------------------------------


class TestErrorDuration:
    def test_prefers_operation_started_at(self) -> None:
        status = {
            "operationState": {"startedAt": "2026-02-18T11:00:00Z"},
            "reconciledAt": "2026-02-18T11:59:00Z",
        }
        since, duration = error_duration(status, _NOW)
        assert since == "2026-02-18T11:00:00Z"
        assert duration == "1h 0m"

    def test_falls_back_to_reconciled_at(self) -> None:
        since, duration = error_duration({"reconciledAt": "2026-02-18T11:55:00Z"}, _NOW)
        assert since == "2026-02-18T11:55:00Z"
        assert duration == "5m"

    def test_no_timestamps_gives_none(self) -> None:
        assert error_duration({}, _NOW) == (None, None)

    def test_unparseable_preferred_field_keeps_raw_value(self) -> None:
        status = {
            "operationState": {"startedAt": "yesterday"},
            "reconciledAt": "2026-02-18T11:55:00Z",
        }
        since, duration = error_duration(status, _NOW)
        assert since == "yesterday"
        assert duration is None

    def test_future_timestamp_is_just_now(self) -> None:
        _since, duration = error_duration({"reconciledAt": "2026-02-18T12:00:05Z"}, _NOW)
        assert duration == "just now"


# ---------------------------------------------------------------------------
# classify_application / build_argo_status
# ---------------------------------------------------------------------------


class TestClassifyApplication:
    def test_healthy_synced_app_yields_none(self) -> None:
        assert classify_application(_make_app(), _NOW) is None

    def test_degraded_app_fields(self) -> None:
        app = _make_app(
            name="payments",
            health="Degraded",
            health_message="Deployment has 0 available replicas",
            reconciled_at="2026-02-17T11:00:00Z",
        )
        issue = classify_application(app, _NOW, argocd_url="https://argocd.local", argocd_namespace="argocd")
        assert issue is not None
        assert issue.name == "payments"
        assert issue.namespace == "apps"
        assert issue.category is IssueCategory.REAL_ISSUE
        assert issue.message == "Deployment has 0 available replicas"
        assert issue.error_duration == "1d 1h"
        assert issue.current_revision == "abc123"
        assert issue.can_sync is False
        assert issue.argocd_url == "https://argocd.local/applications/argocd/payments"

    def test_message_falls_back_to_operation_message(self) -> None:
        app = _make_app(health="Degraded", operation_message="one or more objects failed to apply")
        issue = classify_application(app, _NOW)
        assert issue is not None
        assert issue.message == "one or more objects failed to apply"

    def test_missing_status_defaults_to_unknown(self) -> None:
        app = {"metadata": {"name": "bare"}, "spec": {}}
        issue = classify_application(app, _NOW)
        assert issue is not None
        assert issue.health_status == "Unknown"
        assert issue.sync_status == "Unknown"
        assert issue.error_duration is None

    def test_helm_chart_out_of_sync_can_sync(self) -> None:
        app = _make_app(sync="OutOfSync", chart="redis", target_revision="18.1.0")
        issue = classify_application(app, _NOW)
        assert issue is not None
        assert issue.is_helm_chart is True
        assert issue.can_sync is True
        assert issue.category is IssueCategory.UPGRADE_AVAILABLE


class TestBuildArgoStatus:
    def test_bucket_counts_and_issue_split(self) -> None:
        apps = [
            _make_app(name="ok"),
            _make_app(name="broken", health="Degraded"),
            _make_app(name="rolling", health="Progressing", sync="OutOfSync"),
            _make_app(name="chart", sync="OutOfSync", chart="redis"),
            _make_app(name="mystery", health=None, sync=None),
        ]
        status = build_argo_status(apps, _NOW)

        assert status.total == 5
        assert status.healthy == 2
        assert status.unhealthy == 1
        assert status.progressing == 1
        assert status.unknown == 1
        assert status.synced == 2
        assert status.out_of_sync == 2
        assert status.upgrades_available == 1
        assert [a.name for a in status.apps_with_upgrades] == ["chart"]
        assert sorted(a.name for a in status.apps_with_issues) == ["broken", "mystery", "rolling"]

    def test_empty_list(self) -> None:
        status = build_argo_status([], _NOW)
        assert status.total == 0
        assert status.apps_with_issues == []
