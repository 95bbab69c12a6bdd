"""Catalog providers.

The Spotify Web API adapter is the only catalog source today; anything that
implements ICatalogProvider can stand in for it.
"""

from chromafm.providers.catalog.spotify_provider import SpotifyCatalogProvider

__all__ = ["SpotifyCatalogProvider"]
