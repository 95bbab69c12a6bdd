"""Catalog-side data structures consumed by the engine.

These models mirror the subset of the catalog service's JSON that the
ranking engine reads: albums with their cover image, tracks pointing at an
album, and artists.  Provider adapters map raw JSON into them so nothing
downstream touches raw payloads.
"""

from __future__ import annotations

import hashlib

from pydantic import BaseModel, ConfigDict, Field

# Hex digits of the token digest used as the listener cache identity.
_LISTENER_KEY_LENGTH = 16


class Listener(BaseModel):
    """The listener a computation runs for.

    Holds the catalog access token.  The token never appears in ``repr`` or
    logs; ``cache_key`` (a SHA-256 digest prefix of the whole token)
    identifies the listener in cache keys.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(repr=False)

    @property
    def cache_key(self) -> str:
        if not self.access_token:
            return "no_token"
        digest = hashlib.sha256(self.access_token.encode("utf-8")).hexdigest()
        return digest[:_LISTENER_KEY_LENGTH]


class CatalogArtist(BaseModel):
    """An artist as listed by the catalog (top-artists list)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class CatalogAlbum(BaseModel):
    """An album with its cover image reference."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    artists: list[str] = Field(default_factory=list)  # display names, catalog order
    image_url: str | None = None                      # largest cover image
    total_tracks: int | None = None

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""

    @property
    def is_single_track(self) -> bool:
        """Single-track releases never represent a bucket."""
        return self.total_tracks is not None and self.total_tracks <= 1


class CatalogTrack(BaseModel):
    """A ranked top track and the album it belongs to."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    album: CatalogAlbum | None = None
