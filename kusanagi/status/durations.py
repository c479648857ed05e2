"""Human-readable elapsed-time formatting.

Each domain renders elapsed time slightly differently (the dashboard relies
on the exact shapes), so there is one formatter per style. All of them turn
negative input (clock skew) into a fixed phrase instead of a negative number.
"""

from __future__ import annotations

from datetime import datetime

_DAY = 86400
_HOUR = 3600
_MINUTE = 60


def elapsed_seconds(since: datetime, now: datetime) -> int:
    """Whole seconds from *since* to *now*, truncated toward zero."""
    return int((now - since).total_seconds())


def format_duration(seconds: int) -> str:
    """Bucketed duration: ``1d 1h``, ``1h 1m``, ``5m``, ``45s``."""
    if seconds < 0:
        return "just now"
    days = seconds // _DAY
    hours = (seconds % _DAY) // _HOUR
    minutes = (seconds % _HOUR) // _MINUTE
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m"
    return f"{seconds}s"


def format_age(seconds: int) -> str:
    """Compact pod age: ``1d1h``, ``1h1m``, ``5m``, ``45s``."""
    if seconds < 0:
        return "just now"
    days = seconds // _DAY
    hours = (seconds % _DAY) // _HOUR
    minutes = (seconds % _HOUR) // _MINUTE
    if days > 0:
        return f"{days}d{hours}h"
    if hours > 0:
        return f"{hours}h{minutes}m"
    if minutes > 0:
        return f"{minutes}m"
    return f"{seconds}s"


def format_uptime(seconds: int) -> str:
    if seconds < 0:
        return "just started"
    return format_duration(seconds)


def format_ago(seconds: int) -> str:
    """Event recency: ``2h 5m ago``, ``5m ago``, ``12s ago``."""
    if seconds < 0:
        return "just now"
    hours = seconds // _HOUR
    minutes = (seconds % _HOUR) // _MINUTE
    secs = seconds % _MINUTE
    if hours > 0:
        return f"{hours}h {minutes}m ago"
    if minutes > 0:
        return f"{minutes}m ago"
    return f"{secs}s ago"


def format_job_duration(seconds: int) -> str:
    """Job run time keeps seconds below the hour: ``3m 12s``."""
    if seconds < 0:
        return "just now"
    days = seconds // _DAY
    hours = (seconds % _DAY) // _HOUR
    minutes = (seconds % _HOUR) // _MINUTE
    secs = seconds % _MINUTE
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
