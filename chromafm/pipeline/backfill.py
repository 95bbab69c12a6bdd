"""Staged backfill for buckets the primary selection left empty.

The backfill is an explicit, ordered list of :class:`BackfillStage`
objects, from the strictest source to the loosest:

    saved            -> the listener's saved albums
    artist           -> catalogs of the listener's top artists
    widened          -> saved + artist again with deeper scans and a lower
                        confidence floor (only when two or more buckets are
                        still empty)
    wide_top_tracks  -> a deep top-tracks pool across all windows (only
                        after widening ran), finishing with an
                        ``ultra_loose`` pass that accepts any confidence
    other_ranges_last -> top tracks of the other windows, any confidence

:class:`BackfillPipeline` runs the stages while buckets are empty.  A
stage's fills land only in buckets that are still empty, so a bucket set by
an earlier stage is never overwritten, and uniqueness is re-enforced after
every stage.  Lookup or sampling failures inside a stage are logged and
count as "no match from that source"; the backfill itself never raises.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import structlog

from chromafm.config.window_profiles import LAST_RESORT_WINDOW_WEIGHTS, WindowProfile
from chromafm.interfaces.catalog_provider import ICatalogProvider
from chromafm.models.album import AlbumPick, Candidate
from chromafm.models.catalog import CatalogAlbum, Listener
from chromafm.models.enums import ColorBucket, FillStage, TimeWindow
from chromafm.models.result import Bucket, ColorResult
from chromafm.services.bucket_classifier import classify
from chromafm.services.candidate_aggregator import CandidateAggregator, PoolSource
from chromafm.services.color_sampler import ColorSampler
from chromafm.services.selector import enforce_unique_tops, pick_best_matching
from chromafm.utils.errors import ChromaFMError
from chromafm.utils.logging import get_logger

SAVED_PAGE_SIZE = 50

# Widened artist search grows every artist-stage dimension by these amounts.
WIDE_EXTRA_ARTISTS = 4
WIDE_EXTRA_ALBUMS = 6
WIDE_EXTRA_CANDIDATES = 80

# Deep top-tracks pool.
WIDE_EXTRA_PAGES = 2
WIDE_REQUESTED_MAX_UNIQUE = 340
WIDE_OTHER_PAGES = 2
WIDE_OTHER_MAX_UNIQUE = 240
WIDE_OTHER_WEIGHT = 0.55

# Last-resort pool of the other windows.
LAST_RESORT_PAGES = 2
LAST_RESORT_MAX_UNIQUE = 260
LAST_RESORT_ENRICH = 420

Fills = dict[ColorBucket, AlbumPick]


@dataclass
class BackfillState:
    """Mutable state shared by the stages of one computation."""

    listener: Listener
    window: TimeWindow
    profile: WindowProfile
    result: ColorResult
    widened: bool = False

    def missing(self) -> list[ColorBucket]:
        return self.result.missing()

    def used_ids(self) -> set[str]:
        return set(self.result.top_ids())


class BackfillStage(ABC):
    """One backfill source.

    ``run`` receives the buckets still empty and the ids already placed,
    and returns proposed picks.  It must not mutate ``state.result``; the
    pipeline decides which fills are applied.
    """

    name: str

    def should_run(self, state: BackfillState, missing: list[ColorBucket]) -> bool:
        return bool(missing)

    @abstractmethod
    async def run(
        self,
        state: BackfillState,
        missing: list[ColorBucket],
        used_ids: set[str],
    ) -> Fills:
        ...


def _is_eligible(album: CatalogAlbum, used_ids: set[str]) -> bool:
    return bool(album.id) and album.id not in used_ids and not album.is_single_track and bool(album.image_url)


def _most_confident(
    candidates: list[Candidate],
    bucket: ColorBucket,
    min_conf: float,
) -> Candidate | None:
    """Highest-confidence candidate of *bucket* at or above *min_conf*; first wins ties."""
    best: Candidate | None = None
    for candidate in candidates:
        if candidate.hex is None or candidate.confidence is None:
            continue
        if candidate.confidence < min_conf or classify(candidate.hex) is not bucket:
            continue
        if best is None or candidate.confidence > (best.confidence or 0.0):
            best = candidate
    return best


class LibrarySearch:
    """Per-bucket searches over saved albums and top-artist catalogs."""

    def __init__(self, catalog: ICatalogProvider, sampler: ColorSampler) -> None:
        self._catalog = catalog
        self._sampler = sampler
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def find_saved(
        self,
        listener: Listener,
        bucket: ColorBucket,
        used_ids: set[str],
        max_to_scan: int,
        min_conf: float,
    ) -> Candidate | None:
        """Best saved album for *bucket*, scanning up to *max_to_scan* albums.

        A failing page lookup ends the scan; the best match from the pages
        already read is still returned.
        """
        pages = -(-max_to_scan // SAVED_PAGE_SIZE)
        best: Candidate | None = None

        for page in range(pages):
            offset = page * SAVED_PAGE_SIZE
            try:
                albums = await self._catalog.get_saved_albums(
                    listener, limit=SAVED_PAGE_SIZE, offset=offset
                )
            except ChromaFMError as exc:
                self._logger.warning(
                    "backfill_source_failed",
                    source="saved_albums",
                    bucket=bucket.value,
                    offset=offset,
                    error=str(exc),
                )
                break
            candidates = [Candidate.from_album(a) for a in albums if _is_eligible(a, used_ids)]
            await self._sampler.enrich(candidates)

            page_best = _most_confident(candidates, bucket, min_conf)
            if page_best is not None and (
                best is None or (page_best.confidence or 0.0) > (best.confidence or 0.0)
            ):
                best = page_best

            if len(albums) < SAVED_PAGE_SIZE:
                break

        return best

    async def find_in_artist_catalogs(
        self,
        listener: Listener,
        bucket: ColorBucket,
        used_ids: set[str],
        artists_n: int,
        albums_per_artist: int,
        candidate_cap: int,
        min_conf: float,
    ) -> Candidate | None:
        """Best album for *bucket* among the top artists' releases.

        A failing top-artists lookup propagates.  A failing album lookup ends
        the artist scan, and the albums collected so far are still ranked.
        """
        artists = await self._catalog.get_top_artists(listener, limit=artists_n)

        seen: set[str] = set()
        candidates: list[Candidate] = []
        for artist in artists:
            if len(candidates) >= candidate_cap:
                break
            try:
                albums = await self._catalog.get_artist_albums(
                    listener, artist.id, limit=albums_per_artist
                )
            except ChromaFMError as exc:
                self._logger.warning(
                    "backfill_source_failed",
                    source="artist_albums",
                    bucket=bucket.value,
                    artist_id=artist.id,
                    error=str(exc),
                )
                break
            for album in albums:
                if album.id in seen or not _is_eligible(album, used_ids):
                    continue
                seen.add(album.id)
                candidates.append(Candidate.from_album(album))
                if len(candidates) >= candidate_cap:
                    break

        await self._sampler.enrich(candidates)
        return _most_confident(candidates, bucket, min_conf)


class SavedAlbumsStage(BackfillStage):
    """Fill each empty bucket from the listener's saved albums."""

    def __init__(self, search: LibrarySearch, wide: bool = False) -> None:
        self._search = search
        self._wide = wide
        self.name = (FillStage.SAVED_WIDE if wide else FillStage.SAVED).value
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def run(self, state: BackfillState, missing: list[ColorBucket], used_ids: set[str]) -> Fills:
        profile = state.profile
        scan = profile.saved_scan_wide if self._wide else profile.saved_scan
        min_conf = profile.min_conf_wide if self._wide else profile.min_conf
        stage = FillStage(self.name)

        fills: Fills = {}
        used = set(used_ids)
        for bucket in missing:
            try:
                pick = await self._search.find_saved(state.listener, bucket, used, scan, min_conf)
            except Exception as exc:  # noqa: BLE001 -- a failing source is "no match"
                self._logger.warning(
                    "backfill_source_failed", stage=self.name, bucket=bucket.value, error=str(exc)
                )
                continue
            if pick is not None:
                fills[bucket] = pick.freeze(stage)
                used.add(pick.id)
        return fills


class ArtistCatalogStage(BackfillStage):
    """Fill each empty bucket from the top artists' album catalogs."""

    def __init__(self, search: LibrarySearch, wide: bool = False) -> None:
        self._search = search
        self._wide = wide
        self.name = (FillStage.ARTIST_WIDE if wide else FillStage.ARTIST).value
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def run(self, state: BackfillState, missing: list[ColorBucket], used_ids: set[str]) -> Fills:
        profile = state.profile
        extra_artists, extra_albums, extra_cap = (
            (WIDE_EXTRA_ARTISTS, WIDE_EXTRA_ALBUMS, WIDE_EXTRA_CANDIDATES) if self._wide else (0, 0, 0)
        )
        min_conf = profile.min_conf_wide if self._wide else profile.min_conf
        stage = FillStage(self.name)

        fills: Fills = {}
        used = set(used_ids)
        for bucket in missing:
            try:
                pick = await self._search.find_in_artist_catalogs(
                    state.listener,
                    bucket,
                    used,
                    artists_n=profile.top_artists_n + extra_artists,
                    albums_per_artist=min(50, profile.albums_per_artist + extra_albums),
                    candidate_cap=profile.candidate_cap + extra_cap,
                    min_conf=min_conf,
                )
            except Exception as exc:  # noqa: BLE001
                self._logger.warning(
                    "backfill_source_failed", stage=self.name, bucket=bucket.value, error=str(exc)
                )
                continue
            if pick is not None:
                fills[bucket] = pick.freeze(stage)
                used.add(pick.id)
        return fills


class WidenedSearchStage(BackfillStage):
    """Saved and artist searches again, deeper and looser.

    Runs only when at least two buckets are empty.  Marks the state as
    widened, which unlocks :class:`WideTopTracksStage`.
    """

    name = "widened"

    def __init__(self, search: LibrarySearch) -> None:
        self._saved = SavedAlbumsStage(search, wide=True)
        self._artist = ArtistCatalogStage(search, wide=True)

    def should_run(self, state: BackfillState, missing: list[ColorBucket]) -> bool:
        return len(missing) >= 2

    async def run(self, state: BackfillState, missing: list[ColorBucket], used_ids: set[str]) -> Fills:
        state.widened = True
        fills = await self._saved.run(state, missing, used_ids)

        still_missing = [b for b in missing if b not in fills]
        if still_missing:
            used = set(used_ids) | {pick.id for pick in fills.values()}
            fills.update(await self._artist.run(state, still_missing, used))
        return fills


class WideTopTracksStage(BackfillStage):
    """Deep top-tracks pool across every window, enriched in batches.

    First pass: enrich ``first_enrich`` candidates and accept matches at
    ``min_conf_wide`` (``wide_top_tracks``).  Then enrich further batches
    of ``enrich_batch`` up to ``max_total_enrich``, accepting any
    confidence (``ultra_loose``), until nothing is missing.
    """

    name = FillStage.WIDE_TOP_TRACKS.value

    def __init__(self, aggregator: CandidateAggregator, sampler: ColorSampler) -> None:
        self._aggregator = aggregator
        self._sampler = sampler
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def should_run(self, state: BackfillState, missing: list[ColorBucket]) -> bool:
        return state.widened and bool(missing)

    async def run(self, state: BackfillState, missing: list[ColorBucket], used_ids: set[str]) -> Fills:
        profile = state.profile
        sources = [
            PoolSource(
                state.window,
                profile.top_track_pages_wide + WIDE_EXTRA_PAGES,
                WIDE_REQUESTED_MAX_UNIQUE,
                1.0,
            )
        ]
        sources += [
            PoolSource(other, WIDE_OTHER_PAGES, WIDE_OTHER_MAX_UNIQUE, WIDE_OTHER_WEIGHT)
            for other in state.window.others()
        ]
        pool = await self._aggregator.gather_pool(state.listener, sources)

        first = min(profile.first_enrich, len(pool))
        await self._sampler.enrich(pool[:first])

        fills: Fills = {}
        used = set(used_ids)
        remaining = list(missing)
        self._accept(pool, remaining, used, profile.min_conf_wide, FillStage.WIDE_TOP_TRACKS, fills)

        index = first
        max_total = min(profile.max_total_enrich, len(pool))
        while remaining and index < max_total:
            await self._sampler.enrich(pool[index : index + profile.enrich_batch])
            index += profile.enrich_batch
            self._accept(pool, remaining, used, 0.0, FillStage.ULTRA_LOOSE, fills)

        self._logger.debug("wide_pool_scanned", pool=len(pool), enriched_upto=min(index, len(pool)))
        return fills

    @staticmethod
    def _accept(
        pool: list[Candidate],
        remaining: list[ColorBucket],
        used: set[str],
        min_conf: float,
        stage: FillStage,
        fills: Fills,
    ) -> None:
        for bucket in list(remaining):
            pick = pick_best_matching(pool, bucket, used, min_conf)
            if pick is None:
                continue
            fills[bucket] = pick.freeze(stage)
            used.add(pick.id)
            remaining.remove(bucket)


class OtherWindowsStage(BackfillStage):
    """Last resort: top tracks of the other windows, any confidence."""

    name = FillStage.OTHER_RANGES_LAST.value

    def __init__(self, aggregator: CandidateAggregator, sampler: ColorSampler) -> None:
        self._aggregator = aggregator
        self._sampler = sampler

    async def run(self, state: BackfillState, missing: list[ColorBucket], used_ids: set[str]) -> Fills:
        sources = [
            PoolSource(other, LAST_RESORT_PAGES, LAST_RESORT_MAX_UNIQUE, LAST_RESORT_WINDOW_WEIGHTS[other])
            for other in state.window.others()
        ]
        pool = await self._aggregator.gather_pool(state.listener, sources)
        await self._sampler.enrich(pool[:LAST_RESORT_ENRICH])

        fills: Fills = {}
        used = set(used_ids)
        for bucket in missing:
            pick = pick_best_matching(pool, bucket, used, 0.0)
            if pick is not None:
                fills[bucket] = pick.freeze(FillStage.OTHER_RANGES_LAST)
                used.add(pick.id)
        return fills


def default_stages(
    catalog: ICatalogProvider,
    sampler: ColorSampler,
    aggregator: CandidateAggregator,
) -> list[BackfillStage]:
    """The standard stage order, strictest first."""
    search = LibrarySearch(catalog, sampler)
    return [
        SavedAlbumsStage(search),
        ArtistCatalogStage(search),
        WidenedSearchStage(search),
        WideTopTracksStage(aggregator, sampler),
        OtherWindowsStage(aggregator, sampler),
    ]


class BackfillPipeline:
    """Runs backfill stages in order until every bucket is filled."""

    def __init__(self, stages: list[BackfillStage]) -> None:
        self._stages = stages
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @staticmethod
    def apply_fills(result: ColorResult, fills: Fills) -> list[ColorBucket]:
        """Place each fill whose bucket is still empty.  Returns the buckets filled."""
        applied: list[ColorBucket] = []
        for bucket in ColorBucket:
            pick = fills.get(bucket)
            if pick is None or result.buckets[bucket].top is not None:
                continue
            result.buckets[bucket] = Bucket(top=pick)
            result.meta.filled_by[bucket] = pick.source
            applied.append(bucket)
        return applied

    async def run(self, state: BackfillState) -> ColorResult:
        """Run every applicable stage; returns ``state.result`` (mutated in place)."""
        for stage in self._stages:
            missing = state.missing()
            if not missing:
                break
            if not stage.should_run(state, missing):
                continue

            try:
                fills = await stage.run(state, missing, state.used_ids())
            except Exception as exc:  # noqa: BLE001 -- backfill never fails a request
                self._logger.warning(
                    "backfill_stage_failed",
                    stage=stage.name,
                    window=state.window.value,
                    error=str(exc),
                )
                continue

            applied = self.apply_fills(state.result, fills)
            cleared = enforce_unique_tops(state.result)
            self._logger.info(
                "backfill_stage_complete",
                stage=stage.name,
                window=state.window.value,
                filled=[b.value for b in applied if b not in cleared],
                missing=len(state.missing()),
            )

        return state.result
