"""Cover image providers."""

from chromafm.providers.image.http_image_provider import HttpImageProvider

__all__ = ["HttpImageProvider"]
