"""Provider contract shared by every snapshot source.

A provider is a no-argument coroutine function returning one immutable
snapshot. It either returns the snapshot or raises ProviderUnavailable;
malformed payloads never raise because the status builders degrade to
defaults instead.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar

import structlog

from kusanagi.models.actions import ForceDeleteResult, SyncResult
from kusanagi.observability.metrics import provider_duration_seconds, provider_requests_total

_log = structlog.get_logger(component="providers")

T = TypeVar("T")

Provider = Callable[[], Awaitable[T]]


class ClusterActions(Protocol):
    """Mutating operations offered next to the read-only providers."""

    async def sync_application(self, name: str) -> SyncResult: ...

    async def force_delete_pod(self, namespace: str, name: str) -> ForceDeleteResult: ...


class ProviderUnavailable(Exception):
    """A data source could not produce its snapshot.

    Raised for timeouts, connection failures and non-2xx responses.
    """

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source} unavailable: {reason}")
        self.source = source
        self.reason = reason


async def observed(source: str, provider: Provider[T]) -> T:
    """Await *provider*, recording latency and outcome metrics for *source*.

    ProviderUnavailable propagates unchanged; any other exception escaping a
    provider is wrapped into ProviderUnavailable so callers only ever see one
    failure type.
    """
    started = time.monotonic()
    try:
        result = await provider()
    except ProviderUnavailable as exc:
        provider_requests_total.labels(source=source, outcome="unavailable").inc()
        _log.warning("provider_unavailable", source=source, reason=exc.reason)
        raise
    except Exception as exc:
        provider_requests_total.labels(source=source, outcome="error").inc()
        _log.error("provider_unexpected_error", source=source, error=str(exc))
        raise ProviderUnavailable(source, str(exc)) from exc
    finally:
        provider_duration_seconds.labels(source=source).observe(time.monotonic() - started)
    provider_requests_total.labels(source=source, outcome="ok").inc()
    return result
