"""Integration tests for the notification session lifecycle.

Timers are scaled down (heartbeat 50ms, timeout 150ms, alert poll 300ms) so
every scenario runs against real asyncio scheduling in well under a second.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

from kusanagi.models.config import SessionConfig
from kusanagi.models.notifications import StatsCounts
from kusanagi.notifications.session import WELCOME_MESSAGE, NotificationSession, SessionPhase

from .conftest import FakeTransport, wait_until


def _make_session(
    transport: FakeTransport,
    config: SessionConfig,
    counts: StatsCounts | None = None,
    fetch: AsyncMock | None = None,
) -> NotificationSession:
    return NotificationSession(transport, fetch or AsyncMock(return_value=counts or StatsCounts()), config)


class TestHandshake:
    async def test_connected_then_stats(self, transport: FakeTransport, fast_session_config: SessionConfig) -> None:
        session = _make_session(transport, fast_session_config, StatsCounts(1, 2, 3))
        task = asyncio.create_task(session.run())

        await wait_until(lambda: len(transport.messages("stats_update")) == 1)
        first, second = transport.messages()[:2]
        assert first == {"type": "connected", "message": WELCOME_MESSAGE}
        assert second == {"type": "stats_update", "argocd_issues": 1, "error_pods": 2, "warning_events": 3}
        assert session.phase is SessionPhase.ACTIVE

        transport.client_closes()
        await asyncio.wait_for(task, timeout=1.0)

    async def test_initial_stats_do_not_set_alert_baseline(
        self, transport: FakeTransport, fast_session_config: SessionConfig
    ) -> None:
        session = _make_session(transport, fast_session_config, StatsCounts(4, 4, 4))
        task = asyncio.create_task(session.run())
        await wait_until(lambda: transport.messages("stats_update"))
        assert session.state.last_known_counts == StatsCounts()

        transport.client_closes()
        await asyncio.wait_for(task, timeout=1.0)


class TestLiveness:
    async def test_silent_client_times_out(self, fast_session_config: SessionConfig) -> None:
        transport = FakeTransport(auto_pong=False)
        session = _make_session(transport, fast_session_config)

        await asyncio.wait_for(session.run(), timeout=1.0)

        assert session.phase is SessionPhase.CLOSED
        assert session.close_reason == "heartbeat_timeout"
        assert transport.closed is True
        assert transport.aborted is True
        assert transport.pings >= 1

    async def test_pongs_keep_session_alive(self, transport: FakeTransport, fast_session_config: SessionConfig) -> None:
        session = _make_session(transport, fast_session_config)
        task = asyncio.create_task(session.run())

        # Well past the client timeout; pongs answer every heartbeat ping.
        await asyncio.sleep(0.5)
        assert session.phase is SessionPhase.ACTIVE
        assert transport.pings >= 5

        transport.client_closes()
        await asyncio.wait_for(task, timeout=1.0)
        assert session.close_reason == "client_closed"
        assert transport.aborted is False

    async def test_text_frames_refresh_liveness(self, fast_session_config: SessionConfig) -> None:
        transport = FakeTransport(auto_pong=False)
        session = _make_session(transport, fast_session_config)
        task = asyncio.create_task(session.run())

        for _ in range(6):
            transport.client_sends("hello")
            await asyncio.sleep(0.05)
        assert session.phase is SessionPhase.ACTIVE

        await asyncio.wait_for(task, timeout=1.0)
        assert session.close_reason == "heartbeat_timeout"


class TestClientCommands:
    async def test_ping_command_gets_heartbeat(self, transport: FakeTransport, fast_session_config: SessionConfig) -> None:
        session = _make_session(transport, fast_session_config)
        task = asyncio.create_task(session.run())
        await wait_until(lambda: transport.messages("stats_update"))

        transport.client_sends("ping")
        await wait_until(lambda: transport.messages("heartbeat"))
        assert "timestamp" in transport.messages("heartbeat")[0]

        transport.client_closes()
        await asyncio.wait_for(task, timeout=1.0)

    async def test_stats_command_sends_one_update(
        self, transport: FakeTransport, fast_session_config: SessionConfig
    ) -> None:
        fetch = AsyncMock(return_value=StatsCounts(0, 1, 0))
        session = _make_session(transport, fast_session_config, fetch=fetch)
        task = asyncio.create_task(session.run())
        await wait_until(lambda: len(transport.messages("stats_update")) == 1)

        transport.client_sends("stats")
        await wait_until(lambda: len(transport.messages("stats_update")) == 2)
        await asyncio.sleep(0.05)
        assert len(transport.messages("stats_update")) == 2

        transport.client_closes()
        await asyncio.wait_for(task, timeout=1.0)

    async def test_unknown_command_is_ignored(self, transport: FakeTransport, fast_session_config: SessionConfig) -> None:
        session = _make_session(transport, fast_session_config)
        task = asyncio.create_task(session.run())
        await wait_until(lambda: transport.messages("stats_update"))
        sent_before = len(transport.sent)

        transport.client_sends("subscribe everything")
        await asyncio.sleep(0.05)
        assert len(transport.sent) == sent_before
        assert session.phase is SessionPhase.ACTIVE

        transport.client_closes()
        await asyncio.wait_for(task, timeout=1.0)

    async def test_close_frame_closes_session(self, transport: FakeTransport, fast_session_config: SessionConfig) -> None:
        session = _make_session(transport, fast_session_config)
        task = asyncio.create_task(session.run())
        await wait_until(lambda: session.phase is SessionPhase.ACTIVE)

        transport.client_closes()
        await asyncio.wait_for(task, timeout=1.0)
        assert session.phase is SessionPhase.CLOSED
        assert transport.closed is True

        sent = len(transport.sent)
        await asyncio.sleep(0.1)
        assert len(transport.sent) == sent


class TestAlerts:
    async def test_alert_on_increase_only(self, transport: FakeTransport, fast_session_config: SessionConfig) -> None:
        fetch = AsyncMock(
            side_effect=[
                StatsCounts(0, 0, 0),  # initial request
                StatsCounts(0, 0, 0),  # first tick: nothing changed
                StatsCounts(0, 2, 0),  # second tick: pods grew
                StatsCounts(0, 1, 0),  # third tick: decrease
            ]
            + [StatsCounts(0, 1, 0)] * 20
        )
        session = _make_session(transport, fast_session_config, fetch=fetch)
        task = asyncio.create_task(session.run())

        await wait_until(lambda: fetch.await_count >= 4, timeout=3.0)
        await asyncio.sleep(0.05)

        alerts = transport.messages("alert")
        assert len(alerts) == 1
        assert alerts[0]["source"] == "pods"
        assert alerts[0]["message"] == "2 pods are in error state"
        assert session.state.last_known_counts == StatsCounts(0, 1, 0)

        transport.client_closes()
        await asyncio.wait_for(task, timeout=1.0)

    async def test_failed_poll_keeps_session_open(
        self, transport: FakeTransport, fast_session_config: SessionConfig
    ) -> None:
        fetch = AsyncMock(side_effect=RuntimeError("boom"))
        session = _make_session(transport, fast_session_config, fetch=fetch)
        task = asyncio.create_task(session.run())

        await asyncio.sleep(0.1)
        assert session.phase is SessionPhase.ACTIVE
        assert transport.messages("stats_update") == []

        transport.client_closes()
        await asyncio.wait_for(task, timeout=1.0)
