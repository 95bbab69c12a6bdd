"""chromaFM domain models -- re-exports all public model classes.

The models are organized across four submodules by domain concern:
    - enums.py   -- time windows, color buckets, fill stages
    - catalog.py -- catalog-side records (listener, tracks, albums, artists)
    - album.py   -- working candidates, frozen picks, color samples
    - result.py  -- buckets, per-window results and the three-window bundle
"""

from __future__ import annotations

from chromafm.models.album import NO_COLOR, AlbumPick, Candidate, ColorSample
from chromafm.models.catalog import CatalogAlbum, CatalogArtist, CatalogTrack, Listener
from chromafm.models.enums import ColorBucket, FillStage, TimeWindow
from chromafm.models.result import (
    MAX_OTHERS,
    Bucket,
    ColorBundle,
    ColorResult,
    ResultMeta,
    empty_buckets,
)

__all__ = [
    "MAX_OTHERS",
    "NO_COLOR",
    "AlbumPick",
    "Bucket",
    "Candidate",
    "CatalogAlbum",
    "CatalogArtist",
    "CatalogTrack",
    "ColorBucket",
    "ColorBundle",
    "ColorResult",
    "ColorSample",
    "FillStage",
    "Listener",
    "ResultMeta",
    "TimeWindow",
    "empty_buckets",
]
