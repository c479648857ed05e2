"""Alertmanager v2 alerts provider."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import httpx
import structlog

from kusanagi.models.snapshots import AlertsStatus
from kusanagi.providers.base import ProviderUnavailable
from kusanagi.status import build_alerts_status

_log = structlog.get_logger(component="providers.alertmanager")

_ALERTS_PATH = "/api/v2/alerts"
_ACTIVE_ONLY = {"active": "true", "silenced": "false", "inhibited": "false"}


class AlertmanagerProvider:
    """Fetches active, unsilenced, uninhibited alerts.

    Args:
        base_url: Alertmanager root URL (no trailing slash).
        timeout:  HTTP timeout in seconds.
        client:   Optional shared httpx client (injected by tests).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(tz=UTC),
    ) -> None:
        self._url = f"{base_url.rstrip('/')}{_ALERTS_PATH}"
        self._timeout = timeout
        self._client = client
        self._clock = clock

    async def alerts(self) -> AlertsStatus:
        try:
            if self._client is not None:
                response = await self._client.get(self._url, params=_ACTIVE_ONLY, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._url, params=_ACTIVE_ONLY)
        except httpx.TimeoutException as exc:
            raise ProviderUnavailable("alerts", "alertmanager request timed out") from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable("alerts", f"alertmanager unreachable: {exc}") from exc

        if not response.is_success:
            raise ProviderUnavailable("alerts", f"alertmanager returned {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderUnavailable("alerts", "alertmanager returned invalid JSON") from exc

        raw_alerts = [a for a in payload if isinstance(a, dict)] if isinstance(payload, list) else []
        status = build_alerts_status(raw_alerts, self._clock())
        _log.debug("alerts_fetched", total=status.total, firing=status.firing)
        return status
