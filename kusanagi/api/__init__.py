"""REST API layer for Kusanagi.

Exposes:
    create_app -- FastAPI application factory.
    build_app  -- Alias for create_app (used by the kusanagi.app bootstrap).
"""

from kusanagi.api.app import create_app

build_app = create_app

__all__ = ["build_app", "create_app"]
