"""Per-connection notification session.

A session is a single owning task that consumes a queue of events:

* timer ticks (heartbeat, alert poll) from two helper tasks,
* inbound frames from a reader task and from the transport's control
  listener (ping/pong),
* stats results from poll tasks.

Helpers only enqueue, so every state transition happens in ``run()`` and
nothing there blocks on provider I/O.

Lifecycle: CONNECTING -> ACTIVE -> CLOSING -> CLOSED. ``Connected`` is the
only message sent while CONNECTING; everything else requires ACTIVE.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import structlog

from kusanagi.models.config import SessionConfig
from kusanagi.models.notifications import (
    Alert,
    Connected,
    Heartbeat,
    NotificationMessage,
    StatsCounts,
    rfc3339_now,
)
from kusanagi.notifications.transport import FrameKind, InboundFrame, SessionTransport, TransportClosed
from kusanagi.observability.metrics import notification_sessions_active, notifications_sent_total

_log = structlog.get_logger(component="notifications.session")

WELCOME_MESSAGE = "Connected to Kusanagi notifications"

StatsFetcher = Callable[[], Awaitable[StatsCounts]]


class SessionPhase(StrEnum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class TickKind(StrEnum):
    HEARTBEAT = "heartbeat"
    POLL = "poll"


class PollReason(StrEnum):
    REQUEST = "request"  # initial poll or client "stats" command
    TICK = "tick"  # alert-poll timer


@dataclass(frozen=True)
class Tick:
    kind: TickKind


@dataclass(frozen=True)
class StatsReady:
    counts: StatsCounts
    reason: PollReason


SessionEvent = Tick | InboundFrame | StatsReady


@dataclass
class SessionState:
    """Mutable per-connection record, owned by exactly one session."""

    last_heartbeat: float
    last_known_counts: StatsCounts = field(default_factory=StatsCounts)


@dataclass(frozen=True)
class _Dimension:
    source: str
    severity: str
    title: str
    template: str


# Order matters: it breaks ties between equal increases.
_DIMENSIONS = (
    _Dimension("argocd", "warning", "ArgoCD Apps Unhealthy", "{n} applications need attention"),
    _Dimension("pods", "error", "Pods in Error", "{n} pods are in error state"),
    _Dimension("events", "warning", "Warning Events Increased", "{n} warning events in the last hour"),
)


def _as_tuple(counts: StatsCounts) -> tuple[int, int, int]:
    return (counts.argocd_issues, counts.error_pods, counts.warning_events)


def alert_for_change(previous: StatsCounts, current: StatsCounts, timestamp: str | None = None) -> Alert | None:
    """One Alert for the dimension that grew the most, or None if nothing grew."""
    best: _Dimension | None = None
    best_increase = 0
    best_count = 0
    for dimension, before, after in zip(_DIMENSIONS, _as_tuple(previous), _as_tuple(current), strict=True):
        increase = after - before
        if increase > best_increase:
            best, best_increase, best_count = dimension, increase, after
    if best is None:
        return None
    return Alert(
        severity=best.severity,
        title=best.title,
        message=best.template.format(n=best_count),
        source=best.source,
        timestamp=timestamp or rfc3339_now(),
    )


class NotificationSession:
    """State machine for one streaming client.

    Args:
        transport: Connection to the client.
        fetch_stats: Returns the current counts; normally ``StatsPoller.fetch``.
        config:    Heartbeat, timeout and alert-poll intervals (seconds).
        clock:     Monotonic clock used for liveness; injected by tests.
    """

    def __init__(
        self,
        transport: SessionTransport,
        fetch_stats: StatsFetcher,
        config: SessionConfig,
        clock: Callable[[], float] = time.monotonic,
        session_id: str | None = None,
    ) -> None:
        self._transport = transport
        self._fetch_stats = fetch_stats
        self._config = config
        self._clock = clock
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self._phase = SessionPhase.CONNECTING
        self._state = SessionState(last_heartbeat=clock())
        self._events: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._helpers: list[asyncio.Task[None]] = []
        self._polls: set[asyncio.Task[None]] = set()
        self._close_reason = ""
        self._log = _log.bind(session_id=self.session_id)

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def close_reason(self) -> str:
        return self._close_reason

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Drive the session until the client leaves or times out."""
        notification_sessions_active.inc()
        self._log.info("session_connected")
        try:
            await self._send(Connected(message=WELCOME_MESSAGE))
            if self._phase is not SessionPhase.CONNECTING:
                return

            self._phase = SessionPhase.ACTIVE
            self._state.last_heartbeat = self._clock()
            self._transport.on_control(self._events.put_nowait)
            self._helpers = [
                self._spawn(self._read_frames(), "reader"),
                self._spawn(self._tick(TickKind.HEARTBEAT, self._config.heartbeat_interval), "heartbeat"),
                self._spawn(self._tick(TickKind.POLL, self._config.alert_poll_interval), "alert-poll"),
            ]
            self._start_poll(PollReason.REQUEST)

            while self._phase is SessionPhase.ACTIVE:
                event = await self._events.get()
                await self._handle(event)
        finally:
            await self._teardown()

    def _begin_close(self, reason: str) -> None:
        if self._phase in (SessionPhase.CLOSING, SessionPhase.CLOSED):
            return
        self._phase = SessionPhase.CLOSING
        self._close_reason = reason

    async def _teardown(self) -> None:
        self._begin_close(self._close_reason or "cancelled")
        tasks = [*self._helpers, *self._polls]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._helpers.clear()
        self._polls.clear()
        try:
            if self._close_reason == "heartbeat_timeout":
                # Silent peer: drop the socket without a close handshake.
                self._transport.abort()
            else:
                await self._transport.close()
        except Exception as exc:  # noqa: BLE001
            self._log.debug("session_transport_close_error", error=str(exc))
        self._phase = SessionPhase.CLOSED
        notification_sessions_active.dec()
        self._log.info("session_closed", reason=self._close_reason)

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    async def _handle(self, event: SessionEvent) -> None:
        if isinstance(event, Tick):
            if event.kind is TickKind.HEARTBEAT:
                await self._on_heartbeat_tick()
            else:
                self._start_poll(PollReason.TICK)
        elif isinstance(event, InboundFrame):
            await self._on_frame(event)
        else:
            await self._on_stats(event)

    async def _on_heartbeat_tick(self) -> None:
        silent_for = self._clock() - self._state.last_heartbeat
        if silent_for > self._config.client_timeout:
            self._log.info("session_heartbeat_timeout", silent_for=round(silent_for, 3))
            self._begin_close("heartbeat_timeout")
            return
        try:
            await self._transport.ping()
        except TransportClosed as exc:
            self._log.debug("session_ping_failed", error=str(exc))
            self._begin_close("send_failed")

    async def _on_frame(self, frame: InboundFrame) -> None:
        if frame.kind is FrameKind.CLOSE:
            self._begin_close("client_closed")
            return
        if frame.kind is FrameKind.ERROR:
            self._log.info("session_protocol_error", error=frame.data)
            self._begin_close("protocol_error")
            return

        self._state.last_heartbeat = self._clock()
        if frame.kind is not FrameKind.TEXT or not isinstance(frame.data, str):
            return

        command = frame.data.strip()
        if command == "ping":
            await self._send(Heartbeat(timestamp=rfc3339_now()))
        elif command == "stats":
            self._start_poll(PollReason.REQUEST)

    async def _on_stats(self, ready: StatsReady) -> None:
        if ready.reason is PollReason.REQUEST:
            await self._send(ready.counts.to_message())
            return

        alert = alert_for_change(self._state.last_known_counts, ready.counts)
        self._state.last_known_counts = ready.counts
        if alert is not None:
            self._log.info("session_alert", source=alert.source, message=alert.message)
            await self._send(alert)

    # ------------------------------------------------------------------
    # Helpers (they only enqueue)
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task[None]:
        return asyncio.create_task(coro, name=f"session-{self.session_id}-{name}")

    async def _read_frames(self) -> None:
        while True:
            frame = await self._transport.receive()
            self._events.put_nowait(frame)
            if frame.kind in (FrameKind.CLOSE, FrameKind.ERROR):
                return

    async def _tick(self, kind: TickKind, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self._events.put_nowait(Tick(kind))

    def _start_poll(self, reason: PollReason) -> None:
        task = self._spawn(self._poll(reason), f"poll-{reason}")
        self._polls.add(task)
        task.add_done_callback(self._polls.discard)

    async def _poll(self, reason: PollReason) -> None:
        try:
            counts = await self._fetch_stats()
        except Exception as exc:  # noqa: BLE001
            self._log.error("session_poll_failed", reason=str(reason), error=str(exc))
            return
        self._events.put_nowait(StatsReady(counts, reason))

    async def _send(self, message: NotificationMessage) -> None:
        if self._phase not in (SessionPhase.CONNECTING, SessionPhase.ACTIVE):
            return
        try:
            await self._transport.send_text(message.to_json())
        except TransportClosed as exc:
            self._log.debug("session_send_failed", type=str(message.type), error=str(exc))
            self._begin_close("send_failed")
            return
        notifications_sent_total.labels(type=str(message.type)).inc()
