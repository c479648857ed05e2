"""WebSocket notification server.

Serves ``/ws/notifications`` (configurable) with the ``websockets`` library.
Library keepalive is disabled; liveness is owned by each NotificationSession,
which sends its own pings and tracks every inbound ping, pong and frame.
"""

from __future__ import annotations

from http import HTTPStatus
from urllib.parse import urlsplit

import structlog
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.http11 import Request, Response

from kusanagi.models.config import SessionConfig
from kusanagi.notifications.poller import StatsPoller
from kusanagi.notifications.session import NotificationSession
from kusanagi.notifications.transport import LivenessConnection, WebsocketsTransport

_log = structlog.get_logger(component="notifications.server")


class NotificationServer:
    """Accepts streaming clients and runs one NotificationSession per connection.

    Args:
        poller:  Shared stats poller used by every session.
        config:  Session intervals.
        host:    Bind address.
        port:    Bind port.
        path:    The only path that accepts upgrades; others get 404.
    """

    def __init__(
        self,
        poller: StatsPoller,
        config: SessionConfig,
        host: str = "0.0.0.0",
        port: int = 8081,
        path: str = "/ws/notifications",
    ) -> None:
        self._poller = poller
        self._config = config
        self._host = host
        self._port = port
        self._path = path
        self._server: Server | None = None
        self._sessions: set[NotificationSession] = set()

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    @property
    def port(self) -> int:
        """The bound port once started; differs from the requested one when that was 0."""
        if self._server is not None:
            for sock in self._server.sockets:
                return int(sock.getsockname()[1])
        return self._port

    async def start(self) -> None:
        self._server = await serve(
            self._handle,
            self._host,
            self._port,
            process_request=self._route,
            create_connection=LivenessConnection,
            ping_interval=None,
        )
        _log.info("notification_server_started", host=self._host, port=self.port, path=self._path)

    def _route(self, connection: ServerConnection, request: Request) -> Response | None:
        if urlsplit(request.path).path != self._path:
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        return None

    async def _handle(self, connection: ServerConnection) -> None:
        session = NotificationSession(
            WebsocketsTransport(connection),
            self._poller.fetch,
            self._config,
        )
        self._sessions.add(session)
        _log.debug("notification_client_accepted", session_id=session.session_id, remote=str(connection.remote_address))
        try:
            await session.run()
        finally:
            self._sessions.discard(session)

    async def stop(self) -> None:
        if self._server is None:
            return
        _log.info("notification_server_stopping", active_sessions=self.active_sessions)
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        _log.info("notification_server_stopped")
