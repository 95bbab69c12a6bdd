"""FastAPI API routes for chromaFM.

Endpoint                       Method  Description
-----------------------------------------------------------------------
/api/v1/results                GET     Color buckets for one time window
/api/v1/results/bundle         GET     Color buckets for all three windows
/api/v1/health                 GET     Health check + provider names

The listener is identified by an already-issued catalog access token, read
from the ``access_token`` cookie or an ``Authorization: Bearer`` header.
Service dependencies are resolved from ``app.state`` (populated at startup
in main.py) via ``Depends`` using the ``Annotated`` pattern.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from chromafm import __version__
from chromafm.api.schemas import HealthResponse
from chromafm.models.catalog import Listener
from chromafm.models.enums import TimeWindow
from chromafm.models.result import ColorBundle, ColorResult
from chromafm.pipeline.orchestrator import DEFAULT_LIMIT, MAX_LIMIT, ColorBucketPipeline

router = APIRouter(prefix="/api/v1")

_TOKEN_COOKIE = "access_token"
_BEARER_PREFIX = "bearer "


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_pipeline(request: Request) -> ColorBucketPipeline:
    return request.app.state.pipeline


def _get_listener(request: Request) -> Listener:
    """Resolve the listener from the token cookie or bearer header, else 401."""
    token = request.cookies.get(_TOKEN_COOKIE, "")
    if not token:
        header = request.headers.get("Authorization", "")
        if header.lower().startswith(_BEARER_PREFIX):
            token = header[len(_BEARER_PREFIX):].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Not logged in")
    return Listener(access_token=token)


PipelineDep = Annotated[ColorBucketPipeline, Depends(_get_pipeline)]
ListenerDep = Annotated[Listener, Depends(_get_listener)]
LimitQuery = Annotated[int, Query(ge=1, le=MAX_LIMIT)]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/results", response_model=ColorResult)
async def get_results(
    pipeline: PipelineDep,
    listener: ListenerDep,
    time_range: str = TimeWindow.SHORT_TERM.value,
    limit: LimitQuery = DEFAULT_LIMIT,
) -> ColorResult:
    """Return the ten color buckets for one listening window."""
    try:
        window = TimeWindow(time_range)
    except ValueError:
        allowed = ", ".join(w.value for w in TimeWindow)
        raise HTTPException(
            status_code=400,
            detail=f"Invalid time_range {time_range!r}; expected one of: {allowed}",
        ) from None
    return await pipeline.compute(listener, window, limit)


@router.get("/results/bundle", response_model=ColorBundle)
async def get_results_bundle(
    pipeline: PipelineDep,
    listener: ListenerDep,
    limit: LimitQuery = DEFAULT_LIMIT,
) -> ColorBundle:
    """Return the color buckets of all three windows at once."""
    return await pipeline.compute_bundle(listener, limit)


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and configured providers."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    status = "healthy" if hasattr(request.app.state, "pipeline") else "starting"
    return HealthResponse(status=status, version=__version__, providers=providers)
