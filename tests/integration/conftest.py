"""Shared fixtures for Kusanagi integration tests.

Provides snapshot factories, a provider bundle backed by AsyncMocks and an
in-memory session transport, so the aggregator, poller, sessions and REST API
can be exercised end to end without a cluster or a network.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock

import pytest

from kusanagi.models.config import SessionConfig
from kusanagi.models.issues import ArgoStatus
from kusanagi.models.snapshots import (
    AlertsStatus,
    BackupsStatus,
    ClusterMetrics,
    EventsStatus,
    NodesStatus,
    PodsStatus,
    StorageStatus,
)
from kusanagi.notifications.transport import FrameKind, InboundFrame, SessionTransport, TransportClosed
from kusanagi.providers import SnapshotProviders

# ---------------------------------------------------------------------------
# Snapshot factories
# ---------------------------------------------------------------------------


def make_nodes(total: int = 3, ready: int = 3) -> NodesStatus:
    return NodesStatus(total_nodes=total, ready_nodes=ready, not_ready_nodes=total - ready)


def make_pods(error_pods: int = 0) -> PodsStatus:
    return PodsStatus(
        total_pods=20,
        running_pods=20 - error_pods,
        pending_pods=0,
        succeeded_pods=0,
        failed_pods=0,
        error_pods=error_pods,
    )


def make_argo(unhealthy: int = 0) -> ArgoStatus:
    return ArgoStatus(
        total=10,
        healthy=10 - unhealthy,
        unhealthy=unhealthy,
        synced=10,
        out_of_sync=0,
        unknown=0,
        progressing=0,
        upgrades_available=0,
    )


def make_events(warnings: int = 0) -> EventsStatus:
    return EventsStatus(total_events=warnings + 5, warning_count=warnings, normal_count=5)


def make_storage() -> StorageStatus:
    return StorageStatus(pvc_count=4, pvc_total_capacity_bytes=4 * 1024**3, pvc_total_usage_bytes=1024**3)


def make_alerts() -> AlertsStatus:
    return AlertsStatus(total=0, firing=0, pending=0)


def make_backups() -> BackupsStatus:
    return BackupsStatus(total_cronjobs=0, active_jobs=0, succeeded_jobs=0, failed_jobs=0)


def make_providers(**overrides: Any) -> SnapshotProviders:
    """Provider bundle of AsyncMocks; pass ``source=AsyncMock(...)`` to override one."""
    providers: dict[str, Any] = {
        "nodes": AsyncMock(return_value=make_nodes()),
        "pods": AsyncMock(return_value=make_pods()),
        "argocd": AsyncMock(return_value=make_argo()),
        "events": AsyncMock(return_value=make_events()),
        "storage": AsyncMock(return_value=make_storage()),
        "alerts": AsyncMock(return_value=make_alerts()),
        "metrics": AsyncMock(return_value=ClusterMetrics(node_count=3)),
        "backups": AsyncMock(return_value=make_backups()),
    }
    providers.update(overrides)
    return SnapshotProviders(**providers)


# ---------------------------------------------------------------------------
# In-memory transport
# ---------------------------------------------------------------------------


class FakeTransport(SessionTransport):
    """Records sent frames and replays queued inbound frames.

    With ``auto_pong`` every ping is answered immediately, like a live
    browser; without it the client is silent.
    """

    def __init__(self, auto_pong: bool = True) -> None:
        self.auto_pong = auto_pong
        self.inbound: asyncio.Queue[InboundFrame] = asyncio.Queue()
        self.sent: list[str] = []
        self.pings = 0
        self.closed = False
        self.aborted = False

    def messages(self, type_: str | None = None) -> list[dict[str, Any]]:
        decoded = [json.loads(text) for text in self.sent]
        if type_ is None:
            return decoded
        return [m for m in decoded if m["type"] == type_]

    def client_sends(self, text: str) -> None:
        self.inbound.put_nowait(InboundFrame(FrameKind.TEXT, text))

    def client_closes(self) -> None:
        self.inbound.put_nowait(InboundFrame(FrameKind.CLOSE))

    async def receive(self) -> InboundFrame:
        return await self.inbound.get()

    async def send_text(self, text: str) -> None:
        if self.closed:
            raise TransportClosed("connection closed")
        self.sent.append(text)

    async def ping(self) -> None:
        if self.closed:
            raise TransportClosed("connection closed")
        self.pings += 1
        if self.auto_pong:
            self._notify_control(InboundFrame(FrameKind.PONG))

    async def close(self) -> None:
        self.closed = True

    def abort(self) -> None:
        self.aborted = True
        self.closed = True


async def wait_until(predicate: Any, timeout: float = 2.0, interval: float = 0.01) -> None:
    """Poll *predicate* until it is truthy or fail after *timeout* seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def providers() -> SnapshotProviders:
    return make_providers()


@pytest.fixture()
def fast_session_config() -> SessionConfig:
    """Session timers scaled down so lifecycle tests finish in well under a second."""
    return SessionConfig(heartbeat_interval=0.05, client_timeout=0.15, alert_poll_interval=0.3)


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()
