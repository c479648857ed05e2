"""Integration tests for concurrent report aggregation.

Verifies required/optional source handling, deterministic failure naming,
per-call timeouts, and that summaries are reproducible.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from kusanagi.models.config import TelemetryConfig
from kusanagi.observability.telemetry import TelemetrySink
from kusanagi.providers import ProviderUnavailable
from kusanagi.report import ReportAggregator, ReportGenerationError

from .conftest import make_events, make_nodes, make_providers

_GENERATED_AT = "2026-02-18T12:00:00+00:00"


def _make_aggregator(timeout: float = 1.0, telemetry: TelemetrySink | None = None, **overrides) -> ReportAggregator:
    return ReportAggregator(
        make_providers(**overrides),
        cluster_name="homelab",
        timeout=timeout,
        telemetry=telemetry,
        clock=lambda: _GENERATED_AT,
    )


def _unavailable(source: str) -> AsyncMock:
    return AsyncMock(side_effect=ProviderUnavailable(source, "connection refused"))


class TestGenerateReport:
    async def test_all_sources_available(self) -> None:
        report = await _make_aggregator().generate_report()

        assert report.cluster_name == "homelab"
        assert report.generated_at == _GENERATED_AT
        assert report.alerts is not None
        assert report.metrics is not None
        assert report.summary.total_nodes == 3
        assert report.summary.total_pvcs == 4

    async def test_sources_are_fetched_concurrently(self) -> None:
        async def slow_nodes():
            await asyncio.sleep(0.2)
            return make_nodes()

        async def slow_events():
            await asyncio.sleep(0.2)
            return make_events()

        loop = asyncio.get_running_loop()
        started = loop.time()
        await _make_aggregator(nodes=slow_nodes, events=slow_events).generate_report()
        assert loop.time() - started < 0.35

    async def test_required_failure_fails_report(self) -> None:
        with pytest.raises(ReportGenerationError) as exc_info:
            await _make_aggregator(events=_unavailable("events")).generate_report()
        assert exc_info.value.source == "events"
        assert "events" in str(exc_info.value)

    async def test_optional_failures_are_dropped(self) -> None:
        report = await _make_aggregator(alerts=_unavailable("alerts"), metrics=_unavailable("metrics")).generate_report()
        assert report.alerts is None
        assert report.metrics is None
        assert report.summary.total_alerts == 0

    async def test_first_required_failure_in_fixed_order(self) -> None:
        for _ in range(5):
            with pytest.raises(ReportGenerationError) as exc_info:
                await _make_aggregator(
                    storage=_unavailable("storage"),
                    argocd=_unavailable("argocd"),
                    alerts=_unavailable("alerts"),
                ).generate_report()
            assert exc_info.value.source == "argocd"

    async def test_unexpected_provider_error_is_unavailable(self) -> None:
        with pytest.raises(ReportGenerationError) as exc_info:
            await _make_aggregator(nodes=AsyncMock(side_effect=KeyError("status"))).generate_report()
        assert exc_info.value.source == "nodes"
        assert isinstance(exc_info.value.cause, ProviderUnavailable)

    async def test_summary_is_reproducible(self) -> None:
        aggregator = _make_aggregator()
        first = await aggregator.generate_report()
        second = await aggregator.generate_report()
        assert first.summary == second.summary
        assert first.to_dict() == second.to_dict()


class TestTimeouts:
    async def test_slow_required_source_times_out(self) -> None:
        async def hang():
            await asyncio.sleep(5)

        with pytest.raises(ReportGenerationError) as exc_info:
            await _make_aggregator(timeout=0.05, storage=hang).generate_report()
        assert exc_info.value.source == "storage"
        assert "timed out after 0.05s" in str(exc_info.value)

    async def test_slow_optional_source_is_dropped(self) -> None:
        async def hang():
            await asyncio.sleep(5)

        report = await _make_aggregator(timeout=0.05, metrics=hang).generate_report()
        assert report.metrics is None
        assert report.alerts is not None

    async def test_fetch_single_source_timeout(self) -> None:
        async def hang():
            await asyncio.sleep(5)

        with pytest.raises(ProviderUnavailable) as exc_info:
            await _make_aggregator(timeout=0.05).fetch("pods", hang)
        assert exc_info.value.source == "pods"


class TestTelemetry:
    async def test_report_span_recorded(self) -> None:
        sink = MagicMock(spec=TelemetrySink)
        await _make_aggregator(telemetry=sink).generate_report()

        sink.record.assert_called_once()
        args, kwargs = sink.record.call_args
        assert args[0] == "generate_report"
        assert kwargs["status"] == "success"
        assert kwargs["endpoint"] == "/api/v1/report"
        assert kwargs["items_count"] == 6

    async def test_failed_report_span_has_error(self) -> None:
        sink = TelemetrySink(TelemetryConfig(enabled=True, batch_size=100))
        with pytest.raises(ReportGenerationError):
            await _make_aggregator(telemetry=sink, nodes=_unavailable("nodes")).generate_report()
        assert sink.buffered == 1

    async def test_disabled_sink_is_skipped(self) -> None:
        sink = MagicMock(spec=TelemetrySink)
        sink.enabled = False
        await _make_aggregator(telemetry=sink).generate_report()
        sink.record.assert_not_called()
