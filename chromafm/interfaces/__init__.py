"""Provider interfaces (abstract base classes) for chromaFM.

Services depend on these contracts rather than on concrete adapters, so the
catalog client, image client and cache backend can be swapped (or faked in
tests) without touching ranking logic.
"""

from chromafm.interfaces.cache_provider import ICacheProvider
from chromafm.interfaces.catalog_provider import ICatalogProvider
from chromafm.interfaces.image_provider import IImageProvider

__all__ = ["ICacheProvider", "ICatalogProvider", "IImageProvider"]
