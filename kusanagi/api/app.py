"""FastAPI application factory for Kusanagi.

Usage::

    from kusanagi.api.app import create_app

    app = create_app(providers=providers, aggregator=aggregator, config=config)

Used by the production bootstrap (``kusanagi.app``) and by tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from kusanagi.api.routes import ops_router, router
from kusanagi.api.schemas import ErrorResponse
from kusanagi.observability.telemetry import TelemetrySink
from kusanagi.providers import ProviderUnavailable, SnapshotProviders
from kusanagi.report import ReportAggregator, ReportGenerationError

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(
    providers: SnapshotProviders,
    aggregator: ReportAggregator,
    config: Any = None,
    telemetry: TelemetrySink | None = None,
) -> FastAPI:
    """Create and configure the Kusanagi FastAPI application.

    Args:
        providers:  Snapshot provider bundle backing the per-domain endpoints.
        aggregator: ReportAggregator backing the report endpoints; its
                    per-call timeout also bounds the per-domain endpoints.
        config:     KusanagiConfig. Used for the cluster name.
        telemetry:  Optional span sink; the action endpoints record a span
                    per call.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from kusanagi import __version__

    cluster_name: str = ""
    if config is not None and hasattr(config, "cluster_name"):
        cluster_name = config.cluster_name or ""

    app = FastAPI(
        title="Kusanagi",
        summary="Kubernetes cluster health dashboard API",
        version=__version__,
        description=(
            "Kusanagi aggregates node, workload, GitOps, event, storage and alert "
            "signals into classified issues and cluster reports."
        ),
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    app.state.providers = providers
    app.state.aggregator = aggregator
    app.state.config = config
    app.state.telemetry = telemetry
    app.state.cluster_name = cluster_name

    app.include_router(ops_router)
    app.include_router(router, prefix=_API_PREFIX)

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(ProviderUnavailable)
    async def provider_unavailable_handler(
        request: Request,
        exc: ProviderUnavailable,
    ) -> JSONResponse:
        _log.warning("provider_unavailable_response", path=str(request.url.path), source=exc.source)
        return JSONResponse(
            status_code=502,
            content=ErrorResponse(error="PROVIDER_UNAVAILABLE", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(ReportGenerationError)
    async def report_failed_handler(
        request: Request,
        exc: ReportGenerationError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=502,
            content=ErrorResponse(error="REPORT_FAILED", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Map Pydantic validation errors to our error envelope."""
        errors = exc.errors()
        first_msg = str(errors[0].get("msg", "")) if errors else "invalid request"
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_REQUEST", detail=first_msg).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions. Never exposes stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
