"""Utility modules for chromaFM.

Available utility modules (all re-exported here for convenience):

- **confidence** -- clamping and the weighted coverage/saturation blend that
  rates how trustworthy a sampled cover color is.
- **errors** -- Domain-specific exception hierarchy rooted at ChromaFMError.
- **concurrency** -- semaphore-gated fan-out helpers that bound simultaneous
  outbound image fetches.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- album title normalization and the merge key that
  unifies reissues and deluxe editions.
"""

from chromafm.utils.concurrency import bounded_map, throttled_gather
from chromafm.utils.confidence import calculate_confidence, clamp01, color_confidence
from chromafm.utils.errors import (
    AuthenticationError,
    ChromaFMError,
    ConfigurationError,
    ImageDecodeError,
    ImageFetchError,
    PipelineError,
    ProviderUnavailableError,
    RateLimitError,
)
from chromafm.utils.logging import configure_logging, get_logger
from chromafm.utils.text_normalizer import album_merge_key, normalize_album_name

__all__ = [
    "AuthenticationError",
    "ChromaFMError",
    "ConfigurationError",
    "ImageDecodeError",
    "ImageFetchError",
    "PipelineError",
    "ProviderUnavailableError",
    "RateLimitError",
    "album_merge_key",
    "bounded_map",
    "calculate_confidence",
    "clamp01",
    "color_confidence",
    "configure_logging",
    "get_logger",
    "normalize_album_name",
    "throttled_gather",
]
