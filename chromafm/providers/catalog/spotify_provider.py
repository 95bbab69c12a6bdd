"""Spotify Web API catalog provider.

Implements :class:`ICatalogProvider` on an injected ``httpx.AsyncClient``.
Every lookup goes through the lookup cache, keyed by the listener identity
plus the logical request (``top_tracks:short_term:50:0``), so bursts of
identical lookups during one computation, or from concurrent requests, cost
a single upstream call.

Rate limiting: a 429 answer is retried exactly once after the delay named
by ``Retry-After`` (clamped to a sane range).  A second 429 surfaces as
:class:`RateLimitError` to the caller of that lookup.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from chromafm.interfaces.cache_provider import ICacheProvider
from chromafm.interfaces.catalog_provider import ICatalogProvider
from chromafm.models.catalog import CatalogAlbum, CatalogArtist, CatalogTrack, Listener
from chromafm.models.enums import TimeWindow
from chromafm.utils.errors import AuthenticationError, ProviderUnavailableError, RateLimitError
from chromafm.utils.logging import get_logger

_API_BASE_URL = "https://api.spotify.com/v1"
_PROVIDER_NAME = "spotify"
_ARTIST_ALBUM_GROUPS = "album,single,compilation"
_DEFAULT_TIMEOUT = 30.0
_MIN_RETRY_WAIT = 0.2  # seconds
_MAX_RETRY_WAIT = 5.0  # seconds


class SpotifyCatalogProvider(ICatalogProvider):
    """Catalog provider backed by the Spotify Web API.

    Parameters
    ----------
    http_client:
        Injected ``httpx.AsyncClient`` for testability and connection pooling.
    cache:
        Lookup cache (short TTL) shared by every listener.
    base_url:
        API root, overridable for tests and proxies.
    min_retry_wait, max_retry_wait:
        Bounds applied to the ``Retry-After`` delay before the single retry.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        cache: ICacheProvider,
        base_url: str = _API_BASE_URL,
        timeout: float = _DEFAULT_TIMEOUT,
        min_retry_wait: float = _MIN_RETRY_WAIT,
        max_retry_wait: float = _MAX_RETRY_WAIT,
    ) -> None:
        self._http = http_client
        self._cache = cache
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._min_retry_wait = min_retry_wait
        self._max_retry_wait = max_retry_wait
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _retry_wait(self, response: httpx.Response) -> float:
        try:
            retry_after = float(response.headers.get("Retry-After", "1"))
        except ValueError:
            retry_after = 1.0
        return min(self._max_retry_wait, max(self._min_retry_wait, retry_after))

    async def _get(self, listener: Listener, url: str, params: dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {listener.access_token}"}
        return await self._http.get(url, params=params, headers=headers, timeout=self._timeout)

    async def _request(self, listener: Listener, path: str, params: dict[str, Any]) -> Any:
        """Issue one GET (plus at most one 429 retry) and return decoded JSON."""
        url = f"{self._base_url}{path}"
        try:
            response = await self._get(listener, url, params)
            if response.status_code == 429:
                wait = self._retry_wait(response)
                self._logger.warning("spotify_rate_limited", path=path, backoff_s=wait)
                await asyncio.sleep(wait)
                response = await self._get(listener, url, params)
        except httpx.HTTPError as exc:
            self._logger.warning("spotify_request_failed", path=path, error=str(exc))
            raise ProviderUnavailableError(
                message=f"Spotify request to {path} failed: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        if response.status_code == 429:
            raise RateLimitError(
                message=f"Spotify rate limit persisted for {path}",
                provider_name=_PROVIDER_NAME,
            )
        if response.status_code == 401:
            raise AuthenticationError(
                message="Spotify rejected the access token",
                provider_name=_PROVIDER_NAME,
            )
        if not response.is_success:
            raise ProviderUnavailableError(
                message=f"Spotify API failed ({response.status_code}) for {path}",
                provider_name=_PROVIDER_NAME,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderUnavailableError(
                message=f"Spotify returned a non-JSON body for {path}",
                provider_name=_PROVIDER_NAME,
                status_code=response.status_code,
            ) from exc

    async def _fetch_json(
        self,
        listener: Listener,
        path: str,
        params: dict[str, Any],
        cache_key: str,
    ) -> Any:
        if not listener.access_token:
            raise AuthenticationError(provider_name=_PROVIDER_NAME)
        key = f"{listener.cache_key}:{cache_key}"
        return await self._cache.get_or_compute(
            key, lambda: self._request(listener, path, params)
        )

    @staticmethod
    def _items(payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, dict):
            return []
        return [item for item in payload.get("items") or [] if isinstance(item, dict)]

    @staticmethod
    def _album_from_data(data: dict[str, Any] | None) -> CatalogAlbum | None:
        """Map an album object to ``CatalogAlbum``; ``None`` when it has no id."""
        if not data or not data.get("id"):
            return None
        images = data.get("images") or []
        image_url = images[0].get("url") if images and isinstance(images[0], dict) else None
        total_tracks = data.get("total_tracks")
        return CatalogAlbum(
            id=data["id"],
            name=data.get("name") or "",
            artists=[a.get("name") or "" for a in data.get("artists") or [] if isinstance(a, dict)],
            image_url=image_url,
            total_tracks=total_tracks if isinstance(total_tracks, int) else None,
        )

    # ------------------------------------------------------------------
    # ICatalogProvider implementation
    # ------------------------------------------------------------------

    async def get_top_tracks(
        self,
        listener: Listener,
        window: TimeWindow,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CatalogTrack]:
        """Return one page of top tracks for *window*."""
        payload = await self._fetch_json(
            listener,
            "/me/top/tracks",
            {"limit": limit, "offset": offset, "time_range": window.value},
            f"top_tracks:{window.value}:{limit}:{offset}",
        )
        tracks: list[CatalogTrack] = []
        for item in self._items(payload):
            tracks.append(
                CatalogTrack(
                    id=item.get("id") or "",
                    name=item.get("name") or "",
                    album=self._album_from_data(item.get("album")),
                )
            )
        return tracks

    async def get_top_artists(self, listener: Listener, limit: int = 10) -> list[CatalogArtist]:
        """Return the listener's top artists."""
        payload = await self._fetch_json(
            listener, "/me/top/artists", {"limit": limit}, f"top_artists:{limit}"
        )
        return [
            CatalogArtist(id=item["id"], name=item.get("name") or "")
            for item in self._items(payload)
            if item.get("id")
        ]

    async def get_saved_albums(
        self,
        listener: Listener,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CatalogAlbum]:
        """Return one page of the listener's saved albums."""
        payload = await self._fetch_json(
            listener,
            "/me/albums",
            {"limit": limit, "offset": offset},
            f"saved_albums:{limit}:{offset}",
        )
        albums: list[CatalogAlbum] = []
        for item in self._items(payload):
            album = self._album_from_data(item.get("album"))
            if album is not None:
                albums.append(album)
        return albums

    async def get_artist_albums(
        self,
        listener: Listener,
        artist_id: str,
        limit: int = 12,
    ) -> list[CatalogAlbum]:
        """Return *artist_id*'s albums, singles and compilations."""
        payload = await self._fetch_json(
            listener,
            f"/artists/{artist_id}/albums",
            {"include_groups": _ARTIST_ALBUM_GROUPS, "limit": limit, "market": "from_token"},
            f"artist_albums:{artist_id}:{limit}",
        )
        albums: list[CatalogAlbum] = []
        for item in self._items(payload):
            album = self._album_from_data(item)
            if album is not None:
                albums.append(album)
        return albums

    def get_provider_name(self) -> str:
        """Return the provider identifier."""
        return _PROVIDER_NAME
