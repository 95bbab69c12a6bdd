"""Result models returned by the ranking engine.

A :class:`ColorResult` always lists all ten buckets, filled or not, plus
metadata recording which stage filled each bucket.  A :class:`ColorBundle`
composes one result per canonical time window.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from chromafm.models.album import AlbumPick
from chromafm.models.enums import ColorBucket, FillStage, TimeWindow

MAX_OTHERS = 6


class Bucket(BaseModel):
    """One color bucket: the selected album plus runner-up listings."""

    top: AlbumPick | None = None
    others: list[AlbumPick] = Field(default_factory=list, max_length=MAX_OTHERS)

    def clear(self) -> None:
        self.top = None
        self.others = []


def empty_buckets() -> dict[ColorBucket, Bucket]:
    """Return a fresh mapping with every bucket present and empty."""
    return {color: Bucket() for color in ColorBucket}


class ResultMeta(BaseModel):
    """Provenance of a result."""

    time_range: TimeWindow
    filled_by: dict[ColorBucket, FillStage] = Field(default_factory=dict)
    backfilled_colors: list[ColorBucket] = Field(default_factory=list)


class ColorResult(BaseModel):
    """Ten color buckets computed for one listener and time window."""

    analyzed: int = 0
    buckets: dict[ColorBucket, Bucket] = Field(default_factory=empty_buckets)
    meta: ResultMeta

    def top_ids(self) -> list[str]:
        return [b.top.id for b in self.buckets.values() if b.top is not None]

    def missing(self) -> list[ColorBucket]:
        return [c for c in ColorBucket if self.buckets[c].top is None]


class ColorBundle(BaseModel):
    """Results for all three canonical windows."""

    short_term: ColorResult
    medium_term: ColorResult
    long_term: ColorResult
