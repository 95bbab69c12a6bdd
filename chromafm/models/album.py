"""Album candidate models.

A :class:`Candidate` is the mutable working record the aggregator builds and
the color sampler enriches.  Once the selector or a backfill stage places a
candidate into a bucket it is frozen into an :class:`AlbumPick`, which is
what results carry.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from chromafm.models.catalog import CatalogAlbum
from chromafm.models.enums import FillStage
from chromafm.utils.text_normalizer import join_artist_names


class ColorSample(BaseModel):
    """Average cover color and how trustworthy it is.

    ``hex`` is ``None`` when the image could not be fetched or decoded, or
    when no pixel was opaque enough to sample; confidence is then 0.0.
    """

    model_config = ConfigDict(frozen=True)

    hex: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


NO_COLOR = ColorSample()


class Candidate(BaseModel):
    """A scored album eligible for bucket assignment.

    ``confidence is None`` means the candidate has not been enriched yet.
    After enrichment ``hex`` may still be ``None`` (sampling failed), in
    which case the candidate is excluded from bucket matching.
    """

    id: str
    name: str
    artist: str = ""            # joined display names ("A, B")
    primary_artist: str = ""
    image_url: str | None = None
    total_tracks: int | None = None
    score: float = 0.0
    appearances: int = 0
    hex: str | None = None
    confidence: float | None = None

    @classmethod
    def from_album(cls, album: CatalogAlbum) -> Candidate:
        return cls(
            id=album.id,
            name=album.name,
            artist=join_artist_names(album.artists),
            primary_artist=album.primary_artist,
            image_url=album.image_url,
            total_tracks=album.total_tracks,
        )

    @property
    def is_enriched(self) -> bool:
        return self.confidence is not None

    def apply_color(self, sample: ColorSample) -> None:
        self.hex = sample.hex
        self.confidence = sample.confidence

    def freeze(self, source: FillStage) -> AlbumPick:
        """Snapshot this candidate as the immutable pick of *source*."""
        return AlbumPick(
            id=self.id,
            name=self.name,
            artist=self.artist,
            primary_artist=self.primary_artist,
            image_url=self.image_url,
            total_tracks=self.total_tracks,
            score=self.score,
            appearances=self.appearances,
            hex=self.hex,
            confidence=self.confidence or 0.0,
            source=source,
        )


class AlbumPick(BaseModel):
    """An album placed in a bucket, frozen at the moment it was placed."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    artist: str = ""
    primary_artist: str = ""
    image_url: str | None = None
    total_tracks: int | None = None
    score: float = 0.0
    appearances: int = 0
    hex: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source: FillStage = FillStage.TOP_TRACKS

    @model_validator(mode="after")
    def _colored(self) -> AlbumPick:
        if self.hex is None:
            raise ValueError("a placed album must carry a sampled color")
        return self
