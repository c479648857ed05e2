"""Pydantic response envelopes for the REST API.

Snapshot bodies are the dataclass snapshots serialised as-is; only the
envelopes shared across endpoints are modelled here.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Uniform error body. ``error`` is a stable machine-readable code."""

    error: str = Field(..., examples=["PROVIDER_UNAVAILABLE"])
    detail: str = Field(..., examples=["events unavailable: timed out after 10s"])


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    cluster_name: str = ""
