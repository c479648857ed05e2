"""Outcomes of the mutating cluster actions exposed by the REST API."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SyncResult:
    success: bool
    message: str
    application: str


@dataclass(frozen=True)
class ForceDeleteResult:
    """Returned whether or not the delete went through; ``success`` says which."""

    success: bool
    message: str
    pod_name: str
    namespace: str
