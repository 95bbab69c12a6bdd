"""Candidate aggregation from ranked top tracks.

Each top track mentions its album.  A mention at global rank ``i`` out of
``total`` contributes ``rank_weight(i, total) * time_weight`` to that
album's score, so albums with several highly ranked tracks rise to the top.
Mentions are merged under :func:`album_merge_key`, which folds reissues and
deluxe editions into one candidate (the first-seen edition supplies the id
and cover).
"""

from __future__ import annotations

from typing import NamedTuple

from chromafm.interfaces.catalog_provider import ICatalogProvider
from chromafm.models.album import Candidate
from chromafm.models.catalog import CatalogArtist, Listener
from chromafm.models.enums import TimeWindow
from chromafm.utils.errors import ChromaFMError
from chromafm.utils.logging import get_logger
from chromafm.utils.text_normalizer import album_merge_key

DEFAULT_PAGE_SIZE = 50
DEFAULT_MAX_UNIQUE = 260

# Score ceiling applied before the primary pool is truncated, so one album
# with many tracks in the chart cannot dwarf the rest.
DOMINANCE_CAP = 3.0
PRIMARY_POOL_SIZE = 35

ARTIST_BONUS_DIVISOR = 22.0
BONUS_ARTIST_COUNT = 12

logger = get_logger(__name__)


class PoolSource(NamedTuple):
    """One window's contribution to a multi-window candidate pool."""

    window: TimeWindow
    pages: int
    max_unique: int
    time_weight: float


def rank_weight(index: int, total: int) -> float:
    """Quadratic decay from 1.0 at rank 0 to 0.0 at rank ``total - 1``."""
    if total <= 1:
        return 1.0
    return (1.0 - index / (total - 1)) ** 2


def _by_score(candidates: list[Candidate]) -> list[Candidate]:
    # sorted() is stable: equal scores keep first-seen order.
    return sorted(candidates, key=lambda c: c.score, reverse=True)


class CandidateAggregator:
    """Builds weighted, deduplicated candidate lists from the catalog."""

    def __init__(self, catalog: ICatalogProvider) -> None:
        self._catalog = catalog

    async def gather(
        self,
        listener: Listener,
        window: TimeWindow,
        pages: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_unique: int = DEFAULT_MAX_UNIQUE,
        time_weight: float = 1.0,
        keep_partial: bool = False,
    ) -> list[Candidate]:
        """Page through top tracks of *window* and merge album mentions.

        Paging stops early on a short page.  Catalog errors propagate unless
        *keep_partial* is set, in which case paging stops at the failing page
        and the pages already fetched are kept.

        Returns:
            Candidates sorted by score descending, at most *max_unique*.
        """
        total = max(1, pages * page_size)
        merged: dict[str, Candidate] = {}

        for page in range(pages):
            offset = page * page_size
            try:
                tracks = await self._catalog.get_top_tracks(
                    listener, window, limit=page_size, offset=offset
                )
            except ChromaFMError as exc:
                if not keep_partial:
                    raise
                logger.warning(
                    "backfill_source_failed",
                    source="top_tracks",
                    window=window.value,
                    offset=offset,
                    error=str(exc),
                )
                break
            for index, track in enumerate(tracks):
                album = track.album
                if album is None or not album.id or album.is_single_track:
                    continue

                key = album_merge_key(album.name, album.primary_artist)
                candidate = merged.get(key)
                if candidate is None:
                    candidate = Candidate.from_album(album)
                    merged[key] = candidate
                candidate.score += rank_weight(offset + index, total) * time_weight
                candidate.appearances += 1

            if len(tracks) < page_size:
                break

        ranked = _by_score(list(merged.values()))[:max_unique]
        logger.debug(
            "candidates_gathered",
            window=window.value,
            pages=pages,
            unique=len(merged),
            kept=len(ranked),
        )
        return ranked

    async def gather_pool(self, listener: Listener, sources: list[PoolSource]) -> list[Candidate]:
        """Concatenate per-window candidate lists, in *sources* order.

        Each window is gathered and ranked independently; the same album may
        appear once per window.  A failing lookup ends that window's paging
        only; what it already yielded and every other window still count.
        """
        pool: list[Candidate] = []
        for source in sources:
            pool.extend(
                await self.gather(
                    listener,
                    source.window,
                    pages=source.pages,
                    max_unique=source.max_unique,
                    time_weight=source.time_weight,
                    keep_partial=True,
                )
            )
        return pool

    @staticmethod
    def apply_artist_bonus(candidates: list[Candidate], top_artists: list[CatalogArtist]) -> None:
        """Add ``(n - i) / 22`` to candidates whose primary artist ranks ``i`` of ``n``.

        Matching is exact on the artist display name.  The first occurrence
        of a name sets its rank.
        """
        n = len(top_artists)
        bonus: dict[str, float] = {}
        for i, artist in enumerate(top_artists):
            bonus.setdefault(artist.name, (n - i) / ARTIST_BONUS_DIVISOR)
        for candidate in candidates:
            candidate.score += bonus.get(candidate.primary_artist, 0.0)

    async def add_top_artist_bonus(self, listener: Listener, candidates: list[Candidate]) -> None:
        """Fetch the top artists and apply the bonus; failures leave scores as-is."""
        try:
            artists = await self._catalog.get_top_artists(listener, limit=BONUS_ARTIST_COUNT)
        except Exception as exc:  # noqa: BLE001 -- the bonus is optional
            logger.info("artist_bonus_skipped", error=str(exc))
            return
        self.apply_artist_bonus(candidates, artists)

    @staticmethod
    def finalize(
        candidates: list[Candidate],
        cap: float = DOMINANCE_CAP,
        pool_size: int = PRIMARY_POOL_SIZE,
    ) -> list[Candidate]:
        """Cap every score at *cap*, re-sort and keep the first *pool_size*."""
        for candidate in candidates:
            candidate.score = min(candidate.score, cap)
        return _by_score(candidates)[:pool_size]
