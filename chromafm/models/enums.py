"""Enumerations shared by the ranking engine.

All enums inherit from ``(str, Enum)`` so members serialize as plain strings
in JSON, which Pydantic and FastAPI handle natively.  Declaration order is
significant for every enum in this module.
"""

from __future__ import annotations

from enum import Enum


class TimeWindow(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Listening-history windows exposed by the catalog service.

    Declaration order is the canonical order used when composing bundles.
    """

    SHORT_TERM = "short_term"    # roughly the last four weeks
    MEDIUM_TERM = "medium_term"  # roughly the last six months
    LONG_TERM = "long_term"      # several years

    def others(self) -> list[TimeWindow]:
        """Return the other windows in canonical order."""
        return [w for w in TimeWindow if w is not self]


class ColorBucket(str, Enum):  # noqa: UP042
    """The ten perceptual color buckets, in the fixed scan order.

    The order matters: uniqueness enforcement scans buckets in this order and
    results are always listed in it.
    """

    RED = "red"
    ORANGE = "orange"
    YELLOW = "yellow"
    GREEN = "green"
    BLUE = "blue"
    PURPLE = "purple"
    PINK = "pink"
    WHITE = "white"
    GREY = "grey"
    BLACK = "black"


class FillStage(str, Enum):  # noqa: UP042
    """Pipeline stage that filled a bucket.

    Members are declared from strictest to loosest.  When two stages claim
    the same album, the earlier stage keeps it.
    """

    TOP_TRACKS = "top_tracks"
    SAVED = "saved"
    ARTIST = "artist"
    SAVED_WIDE = "saved_wide"
    ARTIST_WIDE = "artist_wide"
    WIDE_TOP_TRACKS = "wide_top_tracks"
    ULTRA_LOOSE = "ultra_loose"
    OTHER_RANGES_LAST = "other_ranges_last"

    @property
    def rank(self) -> int:
        """Position in strictness order (0 = strictest)."""
        return _FILL_STAGE_ORDER.index(self)


_FILL_STAGE_ORDER: list[FillStage] = list(FillStage)
