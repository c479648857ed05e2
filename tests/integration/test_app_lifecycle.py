"""Integration tests for KusanagiApp startup and shutdown ordering."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from kusanagi.app import KusanagiApp, _ComponentError
from kusanagi.models.config import KusanagiConfig


class TestStartup:
    async def test_k8s_failure_is_fatal(self) -> None:
        app = KusanagiApp(KusanagiConfig())
        with patch("kusanagi.app.load_kube_api_client", AsyncMock(side_effect=OSError("no kubeconfig"))):
            with pytest.raises(_ComponentError) as exc_info:
                await app.start()
        assert exc_info.value.component == "k8s_client"
        assert app.running is False
        await app.stop()

    async def test_notification_server_failure_is_not_fatal(self) -> None:
        app = KusanagiApp(KusanagiConfig())
        with (
            patch("kusanagi.app.load_kube_api_client", AsyncMock(return_value=AsyncMock())),
            patch(
                "kusanagi.notifications.NotificationServer.start",
                AsyncMock(side_effect=OSError("address already in use")),
            ),
            patch("uvicorn.Server.serve", AsyncMock(return_value=None)),
        ):
            await app.start()
            assert app.running is True
            assert app._notification_server is None
            await app.stop()
        assert app.running is False


class TestStop:
    async def test_stop_before_start_is_safe(self) -> None:
        await KusanagiApp().stop()
