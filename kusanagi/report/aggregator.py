"""Concurrent report aggregation with required/optional source semantics.

ReportAggregator fans out to every provider at once, bounds each call with
its own timeout, and joins them together. Required sources (nodes, argocd,
events, storage) fail the whole report; optional sources (alerts, metrics)
are dropped to ``None``. When several required sources fail, the error names
the first one in that fixed order so the outcome is deterministic.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

import structlog

from kusanagi.models.notifications import rfc3339_now
from kusanagi.models.report import ClusterReport
from kusanagi.observability.metrics import provider_requests_total, reports_total
from kusanagi.observability.telemetry import TelemetrySink
from kusanagi.providers import Provider, ProviderUnavailable, SnapshotProviders, observed

_log = structlog.get_logger(component="report.aggregator")

REQUIRED_SOURCES = ("nodes", "argocd", "events", "storage")
OPTIONAL_SOURCES = ("alerts", "metrics")

_DEFAULT_TIMEOUT = 10.0


class ReportGenerationError(Exception):
    """A required source failed, so no report could be produced."""

    def __init__(self, source: str, cause: ProviderUnavailable) -> None:
        super().__init__(f"Report generation failed: required source '{source}' unavailable: {cause.reason}")
        self.source = source
        self.cause = cause


class ReportAggregator:
    """Builds a ClusterReport from all snapshot providers.

    Args:
        providers:    Provider bundle.
        cluster_name: Name stamped on every report.
        timeout:      Per-call bound in seconds; a timeout is a ProviderUnavailable.
        telemetry:    Optional span sink.
        clock:        Returns the RFC 3339 generation timestamp.
    """

    def __init__(
        self,
        providers: SnapshotProviders,
        cluster_name: str,
        timeout: float = _DEFAULT_TIMEOUT,
        telemetry: TelemetrySink | None = None,
        clock: Callable[[], str] = rfc3339_now,
    ) -> None:
        self._providers = providers
        self._cluster_name = cluster_name
        self._timeout = timeout
        self._telemetry = telemetry
        self._clock = clock

    async def fetch(self, source: str, provider: Provider[Any]) -> Any:
        """Run one provider under the per-call timeout."""
        try:
            return await asyncio.wait_for(observed(source, provider), timeout=self._timeout)
        except TimeoutError as exc:
            provider_requests_total.labels(source=source, outcome="timeout").inc()
            _log.warning("provider_timeout", source=source, timeout=self._timeout)
            raise ProviderUnavailable(source, f"timed out after {self._timeout:g}s") from exc

    async def generate_report(self) -> ClusterReport:
        """Fetch every source concurrently and assemble the report.

        Raises:
            ReportGenerationError: a required source failed.
        """
        started = time.monotonic()
        sources = REQUIRED_SOURCES + OPTIONAL_SOURCES
        results = await asyncio.gather(
            *(self.fetch(source, getattr(self._providers, source)) for source in sources),
            return_exceptions=True,
        )
        outcome: dict[str, Any] = {}
        for source, result in zip(sources, results, strict=True):
            if isinstance(result, BaseException) and not isinstance(result, ProviderUnavailable):
                raise result
            outcome[source] = result

        duration_ms = (time.monotonic() - started) * 1000.0

        for source in REQUIRED_SOURCES:
            failure = outcome[source]
            if isinstance(failure, ProviderUnavailable):
                reports_total.labels(outcome="failed").inc()
                _log.error(
                    "report_generation_failed",
                    source=source,
                    reason=failure.reason,
                    duration_ms=round(duration_ms, 1),
                )
                self._record_span(duration_ms, status="error", error=str(failure))
                raise ReportGenerationError(source, failure)

        missing = [s for s in OPTIONAL_SOURCES if isinstance(outcome[s], ProviderUnavailable)]
        for source in missing:
            outcome[source] = None

        report = ClusterReport(
            generated_at=self._clock(),
            cluster_name=self._cluster_name,
            nodes=outcome["nodes"],
            argocd_apps=outcome["argocd"],
            events=outcome["events"],
            storage=outcome["storage"],
            alerts=outcome["alerts"],
            metrics=outcome["metrics"],
        )

        reports_total.labels(outcome="partial" if missing else "ok").inc()
        _log.info(
            "report_generated",
            cluster=self._cluster_name,
            missing_optional=missing,
            duration_ms=round(duration_ms, 1),
        )
        self._record_span(duration_ms, status="success", items_count=len(sources) - len(missing))
        return report

    def _record_span(self, duration_ms: float, **fields: Any) -> None:
        if self._telemetry is not None and self._telemetry.enabled:
            self._telemetry.record("generate_report", duration_ms, endpoint="/api/v1/report", **fields)
