"""Recent Kubernetes events, warnings first."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from kusanagi.models.snapshots import EventInfo, EventsStatus
from kusanagi.observability.logging import get_logger
from kusanagi.status.durations import elapsed_seconds, format_ago
from kusanagi.status.fields import format_timestamp, get_int, get_str, get_str_or, parse_timestamp

_logger = get_logger("status.events")

RECENT_WINDOW = timedelta(hours=1)


def build_event_info(event: dict[str, Any], now: datetime) -> EventInfo:
    last_seen = parse_timestamp(get_str(event, "lastTimestamp"))
    first_seen = parse_timestamp(get_str(event, "firstTimestamp"))
    return EventInfo(
        name=get_str_or(event, "metadata.name", ""),
        namespace=get_str_or(event, "metadata.namespace", "default"),
        event_type=get_str_or(event, "type", "Normal"),
        reason=get_str_or(event, "reason", ""),
        message=get_str_or(event, "message", ""),
        involved_object_kind=get_str_or(event, "involvedObject.kind", ""),
        involved_object_name=get_str_or(event, "involvedObject.name", ""),
        count=get_int(event, "count", 1),
        first_timestamp=format_timestamp(first_seen),
        last_timestamp=format_timestamp(last_seen),
        age=format_ago(elapsed_seconds(last_seen, now)) if last_seen is not None else None,
    )


def build_events_status(events: list[dict[str, Any]], now: datetime, window: timedelta = RECENT_WINDOW) -> EventsStatus:
    """Keep events seen within *window* (undated events are kept).

    Ordering: Warning events first, then most recent first.
    """
    cutoff = now - window
    infos: list[EventInfo] = []
    for event in events:
        last_seen = parse_timestamp(get_str(event, "lastTimestamp"))
        if last_seen is not None and last_seen < cutoff:
            continue
        infos.append(build_event_info(event, now))

    infos.sort(key=lambda e: e.last_timestamp or "", reverse=True)
    infos.sort(key=lambda e: e.event_type != "Warning")

    warning_count = sum(1 for e in infos if e.event_type == "Warning")
    normal_count = sum(1 for e in infos if e.event_type == "Normal")

    _logger.debug("events_status_built", total=len(infos), warnings=warning_count)

    return EventsStatus(
        total_events=len(infos),
        warning_count=warning_count,
        normal_count=normal_count,
        events=infos,
    )
