"""Central orchestrator for one color-bucket computation.

Coordinates the phases of a request:

    1. Gather    -- one page of top tracks for the requested window, merged
                    into album candidates, plus a small top-artist bonus.
    2. Enrich    -- sample cover colors of the capped primary pool.
    3. Select    -- one top per bucket, unique across buckets.
    4. Backfill  -- staged search for every bucket still empty.

Whole results are memoized in the result cache (short TTL, single-flight),
so a burst of identical requests computes once.  Bundles compute the three
windows concurrently and are memoized separately, which debounces repeated
bundle requests from the same listener.

All collaborators are injected at construction time; the orchestrator never
creates them.
"""

from __future__ import annotations

import asyncio

import structlog

from chromafm.config.window_profiles import WindowProfile
from chromafm.interfaces.cache_provider import ICacheProvider
from chromafm.models.catalog import Listener
from chromafm.models.enums import ColorBucket, FillStage, TimeWindow
from chromafm.models.result import ColorBundle, ColorResult
from chromafm.pipeline.backfill import BackfillPipeline, BackfillState
from chromafm.services.candidate_aggregator import CandidateAggregator
from chromafm.services.color_sampler import ColorSampler
from chromafm.services.selector import BucketSelector
from chromafm.utils.errors import ChromaFMError, PipelineError
from chromafm.utils.logging import get_logger

DEFAULT_LIMIT = 50
MAX_LIMIT = 50


class ColorBucketPipeline:
    """Computes :class:`ColorResult` objects and bundles for listeners.

    Parameters
    ----------
    aggregator:
        Builds candidate lists from the catalog.
    sampler:
        Enriches candidates with cover colors.
    selector:
        First-pass bucket selection.
    backfill:
        Stage list run for empty buckets.
    profiles:
        Strictness profile per window.
    result_cache, bundle_cache:
        Single-flight caches for whole results and bundles.
    """

    def __init__(
        self,
        aggregator: CandidateAggregator,
        sampler: ColorSampler,
        selector: BucketSelector,
        backfill: BackfillPipeline,
        profiles: dict[TimeWindow, WindowProfile],
        result_cache: ICacheProvider,
        bundle_cache: ICacheProvider,
    ) -> None:
        self._aggregator = aggregator
        self._sampler = sampler
        self._selector = selector
        self._backfill = backfill
        self._profiles = profiles
        self._result_cache = result_cache
        self._bundle_cache = bundle_cache
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def compute(
        self,
        listener: Listener,
        window: TimeWindow,
        limit: int = DEFAULT_LIMIT,
    ) -> ColorResult:
        """Return the memoized color buckets of *listener* for *window*.

        Raises
        ------
        ValueError
            If *limit* is outside 1..50.
        ChromaFMError
            If the primary top-tracks lookup fails (unauthenticated,
            rate limited or catalog unavailable).
        """
        if not 1 <= limit <= MAX_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_LIMIT}")
        key = f"{listener.cache_key}:range:{window.value}:limit:{limit}"
        return await self._result_cache.get_or_compute(
            key, lambda: self._compute_uncached(listener, window, limit)
        )

    async def compute_bundle(self, listener: Listener, limit: int = DEFAULT_LIMIT) -> ColorBundle:
        """Return results for all three windows, computed concurrently."""
        key = f"{listener.cache_key}:bundle:limit:{limit}"
        return await self._bundle_cache.get_or_compute(
            key, lambda: self._compute_bundle_uncached(listener, limit)
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _compute_bundle_uncached(self, listener: Listener, limit: int) -> ColorBundle:
        short, medium, long = await asyncio.gather(
            *(self.compute(listener, window, limit) for window in TimeWindow)
        )
        return ColorBundle(short_term=short, medium_term=medium, long_term=long)

    async def _compute_uncached(
        self,
        listener: Listener,
        window: TimeWindow,
        limit: int,
    ) -> ColorResult:
        log = self._logger.bind(window=window.value, limit=limit)
        log.info("compute_start")

        try:
            # --- Gather ---
            candidates = await self._aggregator.gather(listener, window, pages=1, page_size=limit)
            await self._aggregator.add_top_artist_bonus(listener, candidates)
            pool = self._aggregator.finalize(candidates)

            # --- Enrich + Select ---
            await self._sampler.enrich(pool)
            result = self._selector.select(pool, window)

            # --- Backfill ---
            state = BackfillState(
                listener=listener,
                window=window,
                profile=self._profiles[window],
                result=result,
            )
            await self._backfill.run(state)
        except ChromaFMError:
            log.warning("compute_failed")
            raise
        except Exception as exc:
            log.error("compute_failed", error=str(exc))
            raise PipelineError(message=f"Color computation failed: {exc}") from exc

        result.meta.backfilled_colors = [
            color
            for color in ColorBucket
            if result.meta.filled_by.get(color) not in (None, FillStage.TOP_TRACKS)
        ]
        log.info(
            "compute_complete",
            analyzed=result.analyzed,
            filled=len(result.meta.filled_by),
            backfilled=[c.value for c in result.meta.backfilled_colors],
        )
        return result
