"""Route handlers for the Kusanagi REST API.

Handlers read their collaborators from ``request.app.state`` (providers,
aggregator, config, telemetry). Provider and report failures are raised as-is and
turned into 502 envelopes by the exception handlers in ``kusanagi.api.app``.
"""

from __future__ import annotations

from contextlib import AbstractContextManager, nullcontext
from dataclasses import asdict
from typing import Any

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from kusanagi.api.schemas import ErrorResponse, HealthResponse
from kusanagi.models.actions import ForceDeleteResult, SyncResult
from kusanagi.observability.telemetry import TelemetrySink
from kusanagi.report import ExportFormat, ReportAggregator, export_report
from kusanagi.report.export import export_filename

_log = structlog.get_logger(component="api.routes")

router = APIRouter()
ops_router = APIRouter()


async def _snapshot(request: Request, source: str) -> JSONResponse:
    aggregator: ReportAggregator = request.app.state.aggregator
    provider = getattr(request.app.state.providers, source)
    snapshot: Any = await aggregator.fetch(source, provider)
    return JSONResponse(content=asdict(snapshot))


def _span(request: Request, name: str, **extra: Any) -> AbstractContextManager[None]:
    telemetry: TelemetrySink | None = request.app.state.telemetry
    if telemetry is None or not telemetry.enabled:
        return nullcontext()
    return telemetry.span(name, endpoint=request.url.path, **extra)


def _action_response(result: SyncResult | ForceDeleteResult) -> JSONResponse:
    return JSONResponse(status_code=200 if result.success else 502, content=asdict(result))


def _actions_unavailable() -> JSONResponse:
    return JSONResponse(
        status_code=501,
        content=ErrorResponse(
            error="ACTIONS_UNAVAILABLE",
            detail="This deployment does not offer cluster actions",
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Operational endpoints (unprefixed)
# ---------------------------------------------------------------------------


@ops_router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    from kusanagi import __version__

    return HealthResponse(version=__version__, cluster_name=request.app.state.cluster_name)


@ops_router.get("/metrics", response_class=PlainTextResponse)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


@router.get("/nodes")
async def nodes(request: Request) -> JSONResponse:
    return await _snapshot(request, "nodes")


@router.get("/pods")
async def pods(request: Request) -> JSONResponse:
    return await _snapshot(request, "pods")


@router.get("/argocd")
async def argocd(request: Request) -> JSONResponse:
    return await _snapshot(request, "argocd")


@router.get("/events")
async def events(request: Request) -> JSONResponse:
    return await _snapshot(request, "events")


@router.get("/storage")
async def storage(request: Request) -> JSONResponse:
    return await _snapshot(request, "storage")


@router.get("/alerts")
async def alerts(request: Request) -> JSONResponse:
    return await _snapshot(request, "alerts")


@router.get("/metrics/cluster")
async def cluster_metrics(request: Request) -> JSONResponse:
    return await _snapshot(request, "metrics")


@router.get("/backups")
async def backups(request: Request) -> JSONResponse:
    return await _snapshot(request, "backups")


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@router.get("/report")
async def report(request: Request) -> JSONResponse:
    aggregator: ReportAggregator = request.app.state.aggregator
    generated = await aggregator.generate_report()
    return JSONResponse(content=generated.to_dict())


@router.get("/report/export")
async def export(request: Request, fmt: str = Query("json", alias="format")) -> Response:
    try:
        export_format = ExportFormat(fmt.lower())
    except ValueError:
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error="INVALID_FORMAT",
                detail=f"Unsupported export format {fmt!r}; expected one of: json, csv",
            ).model_dump(),
        )

    aggregator: ReportAggregator = request.app.state.aggregator
    generated = await aggregator.generate_report()
    body = export_report(generated, export_format)
    _log.info("report_exported", format=export_format.value, bytes=len(body))
    return Response(
        content=body,
        media_type=export_format.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export_filename(generated, export_format)}"'},
    )


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@router.post("/argocd/{name}/sync")
async def sync_application(request: Request, name: str) -> JSONResponse:
    actions = request.app.state.providers.actions
    if actions is None:
        return _actions_unavailable()
    with _span(request, "sync_application", application=name):
        result = await actions.sync_application(name)
    _log.info("argocd_sync_requested", application=name, success=result.success)
    return _action_response(result)


@router.post("/pods/{namespace}/{name}/force-delete")
async def force_delete_pod(request: Request, namespace: str, name: str) -> JSONResponse:
    """Clear finalizers and delete with no grace period. The body is returned on failure too."""
    actions = request.app.state.providers.actions
    if actions is None:
        return _actions_unavailable()
    with _span(request, "force_delete_pod", namespace=namespace, pod=name):
        result = await actions.force_delete_pod(namespace, name)
    _log.info("pod_force_delete_requested", namespace=namespace, pod=name, success=result.success)
    return _action_response(result)
