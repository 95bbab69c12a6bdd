"""Cover image provider fetching raw bytes over HTTP.

Cover art lives on the catalog's CDN.  Fetches carry a browser User-Agent;
anything other than a 2xx answer is reported as :class:`ImageFetchError`,
while connection-level failures surface as
:class:`ProviderUnavailableError` so callers can tell "this image is
missing" apart from "the CDN is unreachable".
"""

from __future__ import annotations

import httpx

from chromafm.interfaces.image_provider import IImageProvider
from chromafm.utils.errors import ImageFetchError, ProviderUnavailableError
from chromafm.utils.logging import get_logger

_USER_AGENT = "Mozilla/5.0"
_PROVIDER_NAME = "image_cdn"
_DEFAULT_TIMEOUT = 15.0


class HttpImageProvider(IImageProvider):
    """Downloads cover images with an injected ``httpx.AsyncClient``."""

    def __init__(self, http_client: httpx.AsyncClient, timeout: float = _DEFAULT_TIMEOUT) -> None:
        self._http = http_client
        self._timeout = timeout
        self._logger = get_logger(__name__)

    async def fetch_image(self, url: str) -> bytes:
        """Return the raw bytes of the image at *url*."""
        try:
            response = await self._http.get(
                url,
                headers={"User-Agent": _USER_AGENT},
                timeout=self._timeout,
                follow_redirects=True,
            )
        except httpx.HTTPError as exc:
            self._logger.warning("image_fetch_failed", url=url, error=str(exc))
            raise ProviderUnavailableError(
                message=f"Image request failed for {url}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        if not response.is_success:
            self._logger.debug("image_fetch_bad_status", url=url, status=response.status_code)
            raise ImageFetchError(
                message=f"Image fetch returned {response.status_code} for {url}",
                provider_name=_PROVIDER_NAME,
            )
        return response.content

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME
