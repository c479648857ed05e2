"""Streaming notifications for Kusanagi.

Exports:
    NotificationSession -- per-connection state machine (heartbeat, alert
                           polling, client commands).
    StatsPoller         -- single-flight fetch of the three session counts,
                           shared by every session.
    NotificationServer  -- ``websockets`` server running one session per
                           client connection.
    SessionTransport    -- ABC sessions talk through.
"""

from kusanagi.notifications.poller import StatsPoller
from kusanagi.notifications.server import NotificationServer
from kusanagi.notifications.session import (
    NotificationSession,
    SessionPhase,
    SessionState,
    alert_for_change,
)
from kusanagi.notifications.transport import (
    FrameKind,
    InboundFrame,
    SessionTransport,
    TransportClosed,
    WebsocketsTransport,
)

__all__ = [
    "FrameKind",
    "InboundFrame",
    "NotificationServer",
    "NotificationSession",
    "SessionPhase",
    "SessionState",
    "SessionTransport",
    "StatsPoller",
    "TransportClosed",
    "WebsocketsTransport",
    "alert_for_change",
]
