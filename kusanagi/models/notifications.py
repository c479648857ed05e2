"""Wire-level notification messages pushed to streaming clients.

Every message serialises to a JSON object whose ``type`` field is the
discriminant: ``alert``, ``stats_update``, ``connected`` or ``heartbeat``.
Messages are stateless and constructed anew per emission.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import ClassVar


class NotificationType(StrEnum):
    ALERT = "alert"
    STATS_UPDATE = "stats_update"
    CONNECTED = "connected"
    HEARTBEAT = "heartbeat"


def rfc3339_now() -> str:
    """Current UTC time as an RFC 3339 string."""
    return datetime.now(tz=UTC).isoformat()


@dataclass(frozen=True)
class _Message:
    type: ClassVar[NotificationType]

    def to_dict(self) -> dict[str, object]:
        return {"type": self.type.value, **asdict(self)}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class Alert(_Message):
    type: ClassVar[NotificationType] = NotificationType.ALERT

    severity: str
    title: str
    message: str
    source: str
    timestamp: str


@dataclass(frozen=True)
class StatsUpdate(_Message):
    type: ClassVar[NotificationType] = NotificationType.STATS_UPDATE

    argocd_issues: int
    error_pods: int
    warning_events: int


@dataclass(frozen=True)
class Connected(_Message):
    type: ClassVar[NotificationType] = NotificationType.CONNECTED

    message: str


@dataclass(frozen=True)
class Heartbeat(_Message):
    type: ClassVar[NotificationType] = NotificationType.HEARTBEAT

    timestamp: str


NotificationMessage = Alert | StatsUpdate | Connected | Heartbeat


@dataclass(frozen=True)
class StatsCounts:
    """The three scalar counts a session tracks between polls."""

    argocd_issues: int = 0
    error_pods: int = 0
    warning_events: int = 0

    def to_message(self) -> StatsUpdate:
        return StatsUpdate(
            argocd_issues=self.argocd_issues,
            error_pods=self.error_pods,
            warning_events=self.warning_events,
        )
