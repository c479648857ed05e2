"""Frame transport between a notification session and its client.

SessionTransport      -- ABC a session talks to; tests supply an in-memory one.
WebsocketsTransport   -- adapter over a ``websockets`` server connection.
LivenessConnection    -- ServerConnection that reports inbound ping/pong
                         control frames, which ``recv()`` never surfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK
from websockets.frames import Frame, Opcode


class FrameKind(StrEnum):
    TEXT = "text"
    BINARY = "binary"
    PING = "ping"
    PONG = "pong"
    CLOSE = "close"
    ERROR = "error"


@dataclass(frozen=True)
class InboundFrame:
    """Something received from the client. ``data`` is set for TEXT, BINARY and ERROR."""

    kind: FrameKind
    data: str | bytes | None = None


ControlListener = Callable[[InboundFrame], None]


class TransportClosed(Exception):
    """The peer is gone; nothing more can be sent."""


class SessionTransport(ABC):
    """What a NotificationSession needs from a client connection.

    Data, close and error frames are pulled with ``receive``. Control frames
    (ping/pong) are pushed to the listener registered with ``on_control``
    because they arrive independently of data reads.
    """

    _control_listener: ControlListener | None = None

    def on_control(self, listener: ControlListener) -> None:
        self._control_listener = listener

    def _notify_control(self, frame: InboundFrame) -> None:
        if self._control_listener is not None:
            self._control_listener(frame)

    @abstractmethod
    async def receive(self) -> InboundFrame:
        """Wait for the next data frame. Returns a CLOSE or ERROR frame when the connection ends."""

    @abstractmethod
    async def send_text(self, text: str) -> None:
        """Send one text frame. Raises TransportClosed if the peer is gone."""

    @abstractmethod
    async def ping(self) -> None:
        """Send a protocol-level ping. Raises TransportClosed if the peer is gone."""

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""

    @abstractmethod
    def abort(self) -> None:
        """Drop the connection without a close handshake. Safe to call more than once."""


class LivenessConnection(ServerConnection):
    """Reports every inbound ping and pong to ``control_listener``.

    Pings are still answered with pongs by the library itself.
    """

    control_listener: Callable[[Opcode], None] | None = None

    def process_event(self, event: object) -> None:
        if (
            self.control_listener is not None
            and isinstance(event, Frame)
            and event.opcode in (Opcode.PING, Opcode.PONG)
        ):
            self.control_listener(event.opcode)
        super().process_event(event)  # type: ignore[arg-type]


class WebsocketsTransport(SessionTransport):
    def __init__(self, connection: ServerConnection) -> None:
        self._connection = connection
        if isinstance(connection, LivenessConnection):
            connection.control_listener = self._on_opcode

    def _on_opcode(self, opcode: Opcode) -> None:
        kind = FrameKind.PING if opcode is Opcode.PING else FrameKind.PONG
        self._notify_control(InboundFrame(kind))

    async def receive(self) -> InboundFrame:
        try:
            data = await self._connection.recv()
        except ConnectionClosedOK:
            return InboundFrame(FrameKind.CLOSE)
        except ConnectionClosed as exc:
            return InboundFrame(FrameKind.ERROR, str(exc))
        if isinstance(data, str):
            return InboundFrame(FrameKind.TEXT, data)
        return InboundFrame(FrameKind.BINARY, data)

    async def send_text(self, text: str) -> None:
        try:
            await self._connection.send(text)
        except ConnectionClosed as exc:
            raise TransportClosed(str(exc)) from exc

    async def ping(self) -> None:
        try:
            await self._connection.ping()
        except ConnectionClosed as exc:
            raise TransportClosed(str(exc)) from exc

    async def close(self) -> None:
        await self._connection.close()

    def abort(self) -> None:
        self._connection.transport.abort()
