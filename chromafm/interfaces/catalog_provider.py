"""Abstract base class for music catalog providers.

Defines the listener-scoped lookups the ranking engine needs from the
catalog service: ranked top tracks per time window, the top-artists list,
saved library albums, and an artist's album catalog.  Paged lookups take a
``limit``/``offset`` pair; a page shorter than ``limit`` is the last one.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from chromafm.models.catalog import CatalogAlbum, CatalogArtist, CatalogTrack, Listener
from chromafm.models.enums import TimeWindow


class ICatalogProvider(ABC):
    """Contract for catalog services used to source album candidates."""

    @abstractmethod
    async def get_top_tracks(
        self,
        listener: Listener,
        window: TimeWindow,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CatalogTrack]:
        """Return one page of the listener's top tracks for *window*.

        Tracks are ranked: index 0 is the most-played track of the page.

        Raises
        ------
        chromafm.utils.errors.ProviderUnavailableError
            If the lookup fails (including rate limiting and auth errors).
        """

    @abstractmethod
    async def get_top_artists(self, listener: Listener, limit: int = 10) -> list[CatalogArtist]:
        """Return the listener's top artists, strongest first."""

    @abstractmethod
    async def get_saved_albums(
        self,
        listener: Listener,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CatalogAlbum]:
        """Return one page of the listener's saved (library) albums."""

    @abstractmethod
    async def get_artist_albums(
        self,
        listener: Listener,
        artist_id: str,
        limit: int = 12,
    ) -> list[CatalogAlbum]:
        """Return albums, singles and compilations released by *artist_id*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this catalog provider."""
