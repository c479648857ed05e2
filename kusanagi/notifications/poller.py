"""Shared stats poller.

Every notification session needs the same three counts (ArgoCD apps with
issues, pods in error, recent warning events). StatsPoller runs at most one
fetch at a time and hands its result to every caller that asked while it was
in flight. With ``cache_seconds > 0`` a finished result is also reused until
it is that old.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

import structlog

from kusanagi.models.notifications import StatsCounts
from kusanagi.providers import Provider, ProviderUnavailable, SnapshotProviders, observed

_log = structlog.get_logger(component="notifications.poller")


class StatsPoller:
    def __init__(
        self,
        providers: SnapshotProviders,
        timeout: float = 10.0,
        cache_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._providers = providers
        self._timeout = timeout
        self._cache_seconds = cache_seconds
        self._clock = clock
        self._inflight: asyncio.Future[StatsCounts] | None = None
        self._cached: tuple[float, StatsCounts] | None = None

    async def fetch(self) -> StatsCounts:
        """Current counts. Never raises for provider failures; a failed source counts as 0."""
        if self._cached is not None and self._cache_seconds > 0:
            fetched_at, counts = self._cached
            if self._clock() - fetched_at < self._cache_seconds:
                return counts

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._poll())
        # Shielded so one cancelled session does not cancel the fetch others await.
        return await asyncio.shield(self._inflight)

    async def _poll(self) -> StatsCounts:
        try:
            argocd_issues, error_pods, warning_events = await asyncio.gather(
                self._count("argocd", self._providers.argocd, lambda s: s.unhealthy),
                self._count("pods", self._providers.pods, lambda s: s.error_pods),
                self._count("events", self._providers.events, lambda s: s.warning_count),
            )
            counts = StatsCounts(
                argocd_issues=argocd_issues,
                error_pods=error_pods,
                warning_events=warning_events,
            )
            self._cached = (self._clock(), counts)
            _log.debug(
                "stats_polled",
                argocd_issues=argocd_issues,
                error_pods=error_pods,
                warning_events=warning_events,
            )
            return counts
        finally:
            self._inflight = None

    async def _count(self, source: str, provider: Provider[Any], extract: Callable[[Any], int]) -> int:
        try:
            snapshot = await asyncio.wait_for(observed(source, provider), timeout=self._timeout)
        except ProviderUnavailable as exc:
            _log.debug("stats_source_unavailable", source=source, reason=exc.reason)
            return 0
        except TimeoutError:
            _log.warning("stats_source_timeout", source=source, timeout=self._timeout)
            return 0
        return extract(snapshot)
