"""chromaFM FastAPI application entry point.

Wires together providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.

Also exposes :func:`build_components` for CLI or scripting usage outside
the web server.
"""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from chromafm import __version__
from chromafm.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from chromafm.api.routes import router as api_router
from chromafm.config.loader import load_config
from chromafm.config.settings import Settings
from chromafm.config.window_profiles import build_window_profiles
from chromafm.pipeline.backfill import BackfillPipeline, default_stages
from chromafm.pipeline.orchestrator import ColorBucketPipeline
from chromafm.providers.cache.memory_cache import SingleFlightCache
from chromafm.providers.catalog.spotify_provider import SpotifyCatalogProvider
from chromafm.providers.image.http_image_provider import HttpImageProvider
from chromafm.services.candidate_aggregator import CandidateAggregator
from chromafm.services.color_sampler import ColorSampler
from chromafm.services.selector import BucketSelector
from chromafm.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
    stream=sys.stderr if settings.log_stream == "stderr" else sys.stdout,
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings,
    config: dict[str, Any] | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    The caller owns ``http_client`` and must close it on shutdown.
    """
    config = config if config is not None else load_config(settings=app_settings)
    profiles = build_window_profiles(config.get("window_profiles"))

    # -- Shared resources --
    http_client = http_client or httpx.AsyncClient(timeout=app_settings.http_timeout)

    # -- Caches --
    lookup_cache = SingleFlightCache(
        name="lookups",
        ttl=app_settings.lookup_cache_ttl,
        max_size=app_settings.lookup_cache_size,
    )
    color_cache = SingleFlightCache(
        name="colors",
        ttl=app_settings.color_cache_ttl,
        max_size=app_settings.color_cache_size,
    )
    result_cache = SingleFlightCache(
        name="results",
        ttl=app_settings.result_cache_ttl,
        max_size=app_settings.result_cache_size,
    )
    bundle_cache = SingleFlightCache(
        name="bundles",
        ttl=app_settings.bundle_debounce,
        max_size=app_settings.bundle_cache_size,
    )

    # -- Providers --
    catalog = SpotifyCatalogProvider(
        http_client=http_client,
        cache=lookup_cache,
        base_url=app_settings.catalog_base_url,
        timeout=app_settings.http_timeout,
        min_retry_wait=app_settings.retry_wait_min,
        max_retry_wait=app_settings.retry_wait_max,
    )
    images = HttpImageProvider(http_client=http_client, timeout=app_settings.image_timeout)

    # -- Services --
    sampler = ColorSampler(images, color_cache, concurrency=app_settings.enrichment_concurrency)
    aggregator = CandidateAggregator(catalog)
    selector = BucketSelector(profiles)
    backfill = BackfillPipeline(default_stages(catalog, sampler, aggregator))

    pipeline = ColorBucketPipeline(
        aggregator=aggregator,
        sampler=sampler,
        selector=selector,
        backfill=backfill,
        profiles=profiles,
        result_cache=result_cache,
        bundle_cache=bundle_cache,
    )

    return {
        "http_client": http_client,
        "pipeline": pipeline,
        "provider_registry": {
            "catalog": catalog.get_provider_name(),
            "images": images.get_provider_name(),
        },
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = build_components(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        catalog=components["provider_registry"]["catalog"],
    )

    yield

    # -- Shutdown: close shared httpx client --
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="chromaFM API",
        version=__version__,
        description=(
            "Rank a listener's albums into ten cover-color buckets, one album "
            "per color, backfilled from saved albums, top artists and other "
            "listening windows when the top tracks run out."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.get_cors_origins())

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()


def main() -> None:
    """Run the API server with uvicorn."""
    uvicorn.run(
        "chromafm.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )


if __name__ == "__main__":
    main()
