"""Batched APM span telemetry posted to an OpenObserve-compatible endpoint.

TelemetrySink  -- buffers span events, samples them, and flushes them in
                  batches (on size, on a timer, and on stop).
build_telemetry_sink -- factory resolving the auth token from the
                  environment variable named by ``auth_secret_ref``.

The sink is an ordinary object owned by the application; components that
record spans receive it explicitly.
"""

from __future__ import annotations

import asyncio
import os
import random
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import httpx
import structlog

from kusanagi.models.config import TelemetryConfig
from kusanagi.models.notifications import rfc3339_now

_log = structlog.get_logger(component="observability.telemetry")

_SERVICE_NAME = "kusanagi"


class TelemetrySink:
    """Buffers span events and ships them in batches.

    Args:
        config:      Telemetry settings (batch size, interval, sample rate).
        auth_token:  Basic auth token for the endpoint. Without one, flushes
                     are skipped with a warning and the batch is dropped.
        client:      Optional httpx client (injected by tests).
        sampler:     Returns a float in [0, 1); events are kept when it is
                     below ``sample_rate``.
    """

    def __init__(
        self,
        config: TelemetryConfig,
        auth_token: str | None = None,
        client: httpx.AsyncClient | None = None,
        sampler: Callable[[], float] = random.random,
    ) -> None:
        self._config = config
        self._auth_token = auth_token or None
        self._client = client
        self._owns_client = client is None
        self._sampler = sampler
        self._buffer: list[dict[str, Any]] = []
        self._pending: set[asyncio.Task[None]] = set()
        self._flush_task: asyncio.Task[None] | None = None

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def record(
        self,
        span_name: str,
        duration_ms: float,
        status: str = "completed",
        error: str | None = None,
        items_count: int | None = None,
        **extra: Any,
    ) -> None:
        """Queue one span event. Never raises and never blocks."""
        if not self._config.enabled:
            return
        rate = self._config.sample_rate
        if rate < 1.0 and self._sampler() >= rate:
            return

        event: dict[str, Any] = {
            "timestamp": rfc3339_now(),
            "service": _SERVICE_NAME,
            "version": _version(),
            "event_type": "apm",
            "span_name": span_name,
            "duration_ms": duration_ms,
            "status": status,
        }
        if error is not None:
            event["error"] = error
        if items_count is not None:
            event["items_count"] = items_count
        event.update({k: v for k, v in extra.items() if v is not None})
        self._buffer.append(event)

        if len(self._buffer) >= self._config.batch_size:
            self._schedule_flush()

    @contextmanager
    def span(self, span_name: str, **extra: Any) -> Iterator[None]:
        """Time the enclosed block; exceptions are recorded and re-raised."""
        started = time.monotonic()
        try:
            yield
        except Exception as exc:
            self.record(span_name, (time.monotonic() - started) * 1000.0, status="error", error=str(exc), **extra)
            raise
        self.record(span_name, (time.monotonic() - started) * 1000.0, **extra)

    def _schedule_flush(self) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self.flush(), name="telemetry-flush")
        except RuntimeError:
            # No running loop: the batch stays buffered for the next flush.
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush(self) -> None:
        """Send everything currently buffered."""
        if not self._buffer:
            return
        events, self._buffer = self._buffer, []

        if self._auth_token is None:
            _log.warning("telemetry_flush_skipped", reason="no auth token configured", dropped=len(events))
            return

        client = self._client or httpx.AsyncClient(timeout=10.0)
        self._client = client
        try:
            response = await client.post(
                self._config.endpoint,
                json=events,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Basic {self._auth_token}",
                },
            )
        except httpx.HTTPError as exc:
            _log.error("telemetry_flush_failed", error=str(exc), count=len(events))
            return

        if response.is_success:
            _log.debug("telemetry_flushed", count=len(events))
        else:
            _log.warning(
                "telemetry_non_2xx_response",
                status_code=response.status_code,
                body=response.text[:200],
                count=len(events),
            )

    async def start(self) -> None:
        """Launch the periodic flush loop."""
        if not self._config.enabled or self._flush_task is not None:
            return
        self._flush_task = asyncio.create_task(self._flush_loop(), name="telemetry-flush-loop")
        _log.info(
            "telemetry_started",
            endpoint=self._config.endpoint,
            batch_size=self._config.batch_size,
            sample_rate=self._config.sample_rate,
        )

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.flush_interval)
            try:
                await self.flush()
            except Exception as exc:  # noqa: BLE001
                _log.error("telemetry_flush_loop_error", error=str(exc))

    async def stop(self) -> None:
        """Cancel the flush loop, wait for in-flight batches, and flush the rest."""
        if self._flush_task is not None:
            self._flush_task.cancel()
            await asyncio.gather(self._flush_task, return_exceptions=True)
            self._flush_task = None
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        await self.flush()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


def build_telemetry_sink(config: TelemetryConfig) -> TelemetrySink:
    """Build a TelemetrySink, resolving the auth token from the environment.

    ``config.auth_secret_ref`` is the *name* of the environment variable that
    holds the Basic auth token, never the token itself.
    """
    token = ""
    if config.auth_secret_ref:
        token = os.environ.get(config.auth_secret_ref, "")
        if not token:
            _log.debug("telemetry_token_missing", secret_ref=config.auth_secret_ref)
    return TelemetrySink(config=config, auth_token=token or None)


def _version() -> str:
    from kusanagi import __version__

    return __version__
