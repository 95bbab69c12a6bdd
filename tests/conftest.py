"""Shared pytest fixtures for the chromaFM test suite."""

from __future__ import annotations

import io
from collections import Counter

import pytest
from PIL import Image

from chromafm.config.window_profiles import DEFAULT_WINDOW_PROFILES
from chromafm.interfaces.catalog_provider import ICatalogProvider
from chromafm.interfaces.image_provider import IImageProvider
from chromafm.models.album import NO_COLOR, Candidate, ColorSample
from chromafm.models.catalog import CatalogAlbum, CatalogArtist, CatalogTrack, Listener
from chromafm.models.enums import TimeWindow
from chromafm.utils.errors import ImageFetchError, ProviderUnavailableError

# One representative color per bucket, well inside its HSV region.
BUCKET_HEX = {
    "red": "#DC1414",
    "orange": "#E68214",
    "yellow": "#E6DC14",
    "green": "#14C828",
    "blue": "#143CDC",
    "purple": "#8C1EDC",
    "pink": "#E628B4",
    "white": "#F5F5F5",
    "grey": "#808080",
    "black": "#0A0A0A",
}


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def png_bytes(
    color: tuple[int, ...],
    size: tuple[int, int] = (50, 50),
    mode: str = "RGB",
) -> bytes:
    """Encode a solid-color PNG."""
    img = Image.new(mode, size, color=color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def hex_rgb(hex_color: str) -> tuple[int, int, int]:
    return int(hex_color[1:3], 16), int(hex_color[3:5], 16), int(hex_color[5:7], 16)


def make_album(
    album_id: str,
    name: str | None = None,
    artist: str = "Artist",
    image_url: str | None = None,
    total_tracks: int | None = 10,
) -> CatalogAlbum:
    return CatalogAlbum(
        id=album_id,
        name=name or f"Album {album_id}",
        artists=[artist],
        image_url=image_url if image_url is not None else f"https://img.test/{album_id}.png",
        total_tracks=total_tracks,
    )


def make_track(album: CatalogAlbum | None, track_id: str = "t") -> CatalogTrack:
    return CatalogTrack(id=track_id, name=f"Track {track_id}", album=album)


def make_candidate(
    album_id: str,
    score: float = 1.0,
    appearances: int = 1,
    hex_color: str | None = "#DC1414",
    confidence: float | None = 0.9,
    artist: str = "Artist",
) -> Candidate:
    return Candidate(
        id=album_id,
        name=f"Album {album_id}",
        artist=artist,
        primary_artist=artist,
        image_url=f"https://img.test/{album_id}.png",
        score=score,
        appearances=appearances,
        hex=hex_color,
        confidence=confidence,
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeCatalog(ICatalogProvider):
    """In-memory catalog that pages like the real one and counts calls.

    Methods listed in ``failing`` raise :class:`ProviderUnavailableError`.
    """

    def __init__(
        self,
        top_tracks: dict[TimeWindow, list[CatalogTrack]] | None = None,
        saved_albums: list[CatalogAlbum] | None = None,
        top_artists: list[CatalogArtist] | None = None,
        artist_albums: dict[str, list[CatalogAlbum]] | None = None,
        failing: set[str] | None = None,
    ) -> None:
        self.top_tracks = top_tracks or {}
        self.saved_albums = saved_albums or []
        self.top_artists = top_artists or []
        self.artist_albums = artist_albums or {}
        self.failing = failing or set()
        self.calls: Counter[str] = Counter()

    def _check(self, method: str) -> None:
        self.calls[method] += 1
        if method in self.failing:
            raise ProviderUnavailableError(message=f"{method} down", provider_name="fake")

    async def get_top_tracks(self, listener, window, limit=50, offset=0):  # noqa: ANN001, ANN201
        self._check("get_top_tracks")
        return self.top_tracks.get(window, [])[offset : offset + limit]

    async def get_top_artists(self, listener, limit=10):  # noqa: ANN001, ANN201
        self._check("get_top_artists")
        return self.top_artists[:limit]

    async def get_saved_albums(self, listener, limit=50, offset=0):  # noqa: ANN001, ANN201
        self._check("get_saved_albums")
        return self.saved_albums[offset : offset + limit]

    async def get_artist_albums(self, listener, artist_id, limit=12):  # noqa: ANN001, ANN201
        self._check("get_artist_albums")
        return self.artist_albums.get(artist_id, [])[:limit]

    def get_provider_name(self) -> str:
        return "fake_catalog"


class FakeImages(IImageProvider):
    """Serves image bytes by URL; unknown URLs answer like a 404."""

    def __init__(self, images: dict[str, bytes] | None = None) -> None:
        self.images = images or {}
        self.fetches: Counter[str] = Counter()

    async def fetch_image(self, url: str) -> bytes:
        self.fetches[url] += 1
        if url not in self.images:
            raise ImageFetchError(message=f"404 for {url}", provider_name="fake_images")
        return self.images[url]

    def get_provider_name(self) -> str:
        return "fake_images"


class StubSampler:
    """Stands in for ColorSampler: colors come from a URL -> sample table."""

    def __init__(self, samples: dict[str, ColorSample] | None = None) -> None:
        self.samples = samples or {}
        self.enriched = 0

    async def enrich(self, candidates: list[Candidate]) -> int:
        pending = [c for c in candidates if not c.is_enriched]
        for candidate in pending:
            candidate.apply_color(self.samples.get(candidate.image_url or "", NO_COLOR))
        self.enriched += len(pending)
        return len(pending)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def listener() -> Listener:
    return Listener(access_token="test-token-abcdefghijkl")


@pytest.fixture
def profiles():  # noqa: ANN201
    return dict(DEFAULT_WINDOW_PROFILES)
