"""Application bootstrap for Kusanagi.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → providers → telemetry
              → aggregator → stats poller → notification server → REST

Shutdown is graceful: components are stopped in reverse startup order.
Each component's stop error is caught and logged independently so that a
single failure does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Any

from kusanagi.config import load_config
from kusanagi.models.config import KusanagiConfig
from kusanagi.models.report import ClusterReport
from kusanagi.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from kusanagi.providers import SnapshotProviders

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


async def load_kube_api_client(log: Any) -> Any:
    """Configure kubernetes-asyncio from in-cluster config or kubeconfig and return an ApiClient."""
    import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
    from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

    try:
        # load_incluster_config() is synchronous in kubernetes-asyncio
        k8s_config.load_incluster_config()
        log.info("k8s client configured from in-cluster service account")
    except k8s_config.ConfigException:
        await k8s_config.load_kube_config()
        log.info("k8s client configured from kubeconfig")
    return k8s_client.ApiClient()


class KusanagiApp:
    """Application root. Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.
    """

    def __init__(self, config: KusanagiConfig | None = None) -> None:
        self.config: KusanagiConfig | None = config

        self._k8s_client: Any = None
        self._providers: SnapshotProviders | None = None
        self._telemetry: object | None = None
        self._aggregator: object | None = None
        self._poller: object | None = None
        self._notification_server: object | None = None
        self._rest_server: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("kusanagi starting", version=_kusanagi_version(), cluster=self.config.cluster_name)

        # --- 3. Kubernetes client ----------------------------------------
        await self._start_k8s_client()

        # --- 4. Snapshot providers ---------------------------------------
        await self._start_providers()

        # --- 5. Telemetry sink (optional) --------------------------------
        await self._start_telemetry()

        # --- 6. Report aggregator ----------------------------------------
        await self._start_aggregator()

        # --- 7. Shared stats poller --------------------------------------
        await self._start_poller()

        # --- 8. Notification server (optional) ---------------------------
        await self._start_notification_server()

        # --- 9. REST API -------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("kusanagi started", port=self.config.api.port, ws_port=self.config.api.ws_port)

    # ------------------------------------------------------------------
    # Component startup helpers
    # ------------------------------------------------------------------

    async def _start_k8s_client(self) -> None:
        assert self._log is not None
        self._log.debug("starting k8s client")
        try:
            self._k8s_client = await load_kube_api_client(self._log)
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_providers(self) -> None:
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting snapshot providers")
        try:
            from kusanagi.providers import build_providers

            self._providers = build_providers(self._k8s_client, self.config.providers)
            self._log.info(
                "snapshot providers started",
                argocd_namespace=self.config.providers.argocd_namespace,
                alertmanager=self.config.providers.alertmanager_url,
                prometheus=self.config.providers.prometheus_url,
            )
        except Exception as exc:
            raise _ComponentError("providers", exc) from exc

    async def _start_telemetry(self) -> None:
        """Start the telemetry flush loop if enabled."""
        assert self._log is not None
        assert self.config is not None
        if not self.config.telemetry.enabled:
            self._log.info("telemetry disabled (telemetry.enabled=false)")
            return
        try:
            from kusanagi.observability.telemetry import build_telemetry_sink

            sink = build_telemetry_sink(self.config.telemetry)
            await sink.start()
            self._telemetry = sink
        except Exception as exc:
            # Telemetry is optional; spans are simply not shipped
            self._log.warning("telemetry failed to start; spans will be dropped", error=str(exc))
            self._telemetry = None

    async def _start_aggregator(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._providers is not None
        try:
            from kusanagi.report import ReportAggregator

            self._aggregator = ReportAggregator(
                providers=self._providers,
                cluster_name=self.config.cluster_name,
                timeout=self.config.providers.timeout_seconds,
                telemetry=self._telemetry,  # type: ignore[arg-type]
            )
            self._log.info("report aggregator started", timeout=self.config.providers.timeout_seconds)
        except Exception as exc:
            raise _ComponentError("aggregator", exc) from exc

    async def _start_poller(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._providers is not None
        try:
            from kusanagi.notifications import StatsPoller

            self._poller = StatsPoller(
                self._providers,
                timeout=self.config.providers.timeout_seconds,
                cache_seconds=self.config.session.stats_cache_seconds,
            )
            self._log.info("stats poller started", cache_seconds=self.config.session.stats_cache_seconds)
        except Exception as exc:
            raise _ComponentError("stats_poller", exc) from exc

    async def _start_notification_server(self) -> None:
        """Start the WebSocket notification server."""
        assert self._log is not None
        assert self.config is not None
        assert self._poller is not None
        try:
            from kusanagi.notifications import NotificationServer

            server = NotificationServer(
                poller=self._poller,  # type: ignore[arg-type]
                config=self.config.session,
                port=self.config.api.ws_port,
                path=self.config.api.ws_path,
            )
            await server.start()
            self._notification_server = server
        except Exception as exc:
            # Streaming is non-fatal; the REST API remains available
            self._log.warning(
                "notification server failed to start; streaming unavailable",
                error=str(exc),
            )
            self._notification_server = None

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn  # type: ignore[import-untyped]

            from kusanagi.api import build_app

            fastapi_app = build_app(
                providers=self._providers,  # type: ignore[arg-type]
                aggregator=self._aggregator,  # type: ignore[arg-type]
                config=self.config,
                telemetry=self._telemetry,  # type: ignore[arg-type]
            )
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kusanagi shutting down")

        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]

        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        await self._stop_component("notification_server", self._notification_server)
        self._notification_server = None
        self._poller = None
        self._aggregator = None
        await self._stop_component("telemetry", self._telemetry)
        self._telemetry = None
        self._providers = None
        await self._stop_k8s_client()

        log.info("kusanagi stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() on a component if it has that method, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._k8s_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._k8s_client.close()
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._k8s_client = None


def _kusanagi_version() -> str:
    from kusanagi import __version__

    return __version__


# ---------------------------------------------------------------------------
# One-shot report (CLI)
# ---------------------------------------------------------------------------


async def generate_report_once(config: KusanagiConfig) -> ClusterReport:
    """Build one ClusterReport against the live cluster, then release the client.

    Raises:
        ReportGenerationError: a required source failed.
    """
    from kusanagi.providers import build_providers
    from kusanagi.report import ReportAggregator

    log = get_logger("app")
    api_client = await load_kube_api_client(log)
    try:
        aggregator = ReportAggregator(
            providers=build_providers(api_client, config.providers),
            cluster_name=config.cluster_name,
            timeout=config.providers.timeout_seconds,
        )
        return await aggregator.generate_report()
    finally:
        await api_client.close()


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: KusanagiConfig | None = None) -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KusanagiApp(config)
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app.running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app.running:
            await app.stop()
