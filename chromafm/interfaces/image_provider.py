"""Abstract base class for cover image providers."""

from __future__ import annotations

from abc import ABC, abstractmethod


class IImageProvider(ABC):
    """Contract for fetching raw cover image bytes."""

    @abstractmethod
    async def fetch_image(self, url: str) -> bytes:
        """Download the image at *url* and return its raw bytes.

        Raises
        ------
        chromafm.utils.errors.ImageFetchError
            If the image host answers with a non-success status.
        chromafm.utils.errors.ProviderUnavailableError
            If the image host cannot be reached.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this image provider."""
