"""Pydantic response schemas for the chromaFM API.

Results themselves are served as the engine models (:class:`ColorResult`,
:class:`ColorBundle`); the schemas here cover health and error bodies.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
