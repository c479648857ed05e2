"""Integration tests for batched span telemetry."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from kusanagi.models.config import TelemetryConfig
from kusanagi.observability.telemetry import TelemetrySink, build_telemetry_sink


class _Collector:
    """MockTransport handler that records every posted batch."""

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)

    @property
    def batches(self) -> list[list[dict]]:
        return [json.loads(r.content) for r in self.requests]


def _make_sink(
    collector: _Collector,
    token: str | None = "dXNlcjpwYXNz",
    **config_overrides,
) -> TelemetrySink:
    config = TelemetryConfig(enabled=True, endpoint="https://o2.test/api/default/v1/logs", **config_overrides)
    client = httpx.AsyncClient(transport=httpx.MockTransport(collector))
    return TelemetrySink(config, auth_token=token, client=client)


class TestTelemetrySink:
    async def test_batch_size_triggers_flush(self) -> None:
        collector = _Collector()
        sink = _make_sink(collector, batch_size=3)
        for i in range(3):
            sink.record("list_pods", float(i), items_count=i)

        await asyncio.sleep(0.01)
        assert len(collector.batches) == 1
        batch = collector.batches[0]
        assert [e["duration_ms"] for e in batch] == [0.0, 1.0, 2.0]
        assert batch[0]["service"] == "kusanagi"
        assert batch[0]["event_type"] == "apm"
        assert collector.requests[0].headers["authorization"] == "Basic dXNlcjpwYXNz"
        await sink.stop()

    async def test_stop_flushes_remaining(self) -> None:
        collector = _Collector()
        sink = _make_sink(collector, batch_size=100)
        sink.record("generate_report", 12.5, status="success")
        await sink.stop()
        assert len(collector.batches) == 1
        assert sink.buffered == 0

    async def test_flush_loop(self) -> None:
        collector = _Collector()
        sink = _make_sink(collector, batch_size=100, flush_interval=0.05)
        await sink.start()
        sink.record("list_nodes", 3.0)
        await asyncio.sleep(0.12)
        assert len(collector.batches) >= 1
        await sink.stop()

    async def test_sampling(self) -> None:
        collector = _Collector()
        samples = iter([0.1, 0.9, 0.3, 0.6])
        config = TelemetryConfig(enabled=True, batch_size=100, sample_rate=0.5)
        sink = TelemetrySink(
            config,
            auth_token="t",
            client=httpx.AsyncClient(transport=httpx.MockTransport(collector)),
            sampler=lambda: next(samples),
        )
        for i in range(4):
            sink.record("span", float(i))
        assert sink.buffered == 2
        await sink.stop()

    async def test_disabled_records_nothing(self) -> None:
        sink = TelemetrySink(TelemetryConfig(enabled=False))
        sink.record("span", 1.0)
        assert sink.buffered == 0

    async def test_missing_token_drops_batch(self) -> None:
        collector = _Collector()
        sink = _make_sink(collector, token=None, batch_size=100)
        sink.record("span", 1.0)
        await sink.flush()
        assert collector.requests == []
        assert sink.buffered == 0
        await sink.stop()

    async def test_non_2xx_does_not_raise(self) -> None:
        collector = _Collector(status_code=401)
        sink = _make_sink(collector, batch_size=100)
        sink.record("span", 1.0)
        await sink.flush()
        assert len(collector.requests) == 1
        await sink.stop()

    async def test_span_records_errors(self) -> None:
        sink = _make_sink(_Collector(), batch_size=100)
        with pytest.raises(ValueError):
            with sink.span("list_events", endpoint="/api/v1/events"):
                raise ValueError("bad payload")
        assert sink.buffered == 1
        await sink.stop()


class TestBuildTelemetrySink:
    def test_token_from_named_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("O2_TOKEN", "c2VjcmV0")
        sink = build_telemetry_sink(TelemetryConfig(enabled=True, auth_secret_ref="O2_TOKEN"))
        assert sink._auth_token == "c2VjcmV0"

    def test_missing_env_var_means_no_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("O2_TOKEN", raising=False)
        sink = build_telemetry_sink(TelemetryConfig(enabled=True, auth_secret_ref="O2_TOKEN"))
        assert sink._auth_token is None
