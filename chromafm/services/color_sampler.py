"""Average cover color sampling with a confidence score.

The sampler downsizes a cover to 50x50, averages the channels of every
pixel that is opaque enough to count, and rates how trustworthy that
average is from two signals: pixel coverage and mean HSV saturation (see
:mod:`chromafm.utils.confidence`).

Results are memoized per image URL in the color cache.  Unreachable or
undecodable images are memoized as :data:`NO_COLOR` so a broken cover is
not re-fetched on every request; transport failures are *not* memoized and
get retried by the next caller.  Pillow decoding is CPU-bound, so it runs
in a worker thread via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import io
import math

import numpy as np
from PIL import Image, UnidentifiedImageError

from chromafm.interfaces.cache_provider import ICacheProvider
from chromafm.interfaces.image_provider import IImageProvider
from chromafm.models.album import NO_COLOR, Candidate, ColorSample
from chromafm.services.bucket_classifier import rgb_to_hex
from chromafm.utils.concurrency import DEFAULT_CONCURRENCY, bounded_map
from chromafm.utils.confidence import color_confidence
from chromafm.utils.errors import ImageDecodeError, ImageFetchError
from chromafm.utils.logging import get_logger

SAMPLE_SIZE = (50, 50)
MIN_ALPHA = 10  # pixels below this alpha are ignored

_ALPHA_MODES = frozenset({"RGBA", "LA", "PA", "RGBa", "La"})

logger = get_logger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in _ALPHA_MODES or (image.mode == "P" and "transparency" in image.info)


def sample_image_bytes(data: bytes) -> ColorSample:
    """Compute the average color and confidence of encoded image *data*.

    Returns :data:`NO_COLOR` when no pixel is opaque enough to sample.

    Raises:
        ImageDecodeError: If Pillow cannot decode *data*.
    """
    try:
        with Image.open(io.BytesIO(data)) as opened:
            alpha = _has_alpha(opened)
            image = opened.convert("RGBA" if alpha else "RGB")
        image = image.resize(SAMPLE_SIZE, Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageDecodeError(message=f"Cannot decode cover image: {exc}") from exc

    pixels = np.asarray(image, dtype=np.float64).reshape(-1, 4 if alpha else 3)
    total = pixels.shape[0]
    if alpha:
        pixels = pixels[pixels[:, 3] >= MIN_ALPHA]
    rgb = pixels[:, :3]
    used = rgb.shape[0]
    if used == 0 or total == 0:
        return NO_COLOR

    r, g, b = (_round_half_up(float(m)) for m in rgb.mean(axis=0))

    high = rgb.max(axis=1)
    low = rgb.min(axis=1)
    saturation = np.divide(high - low, high, out=np.zeros_like(high), where=high > 0)
    avg_saturation = float(saturation.mean())

    return ColorSample(
        hex=rgb_to_hex(r, g, b),
        confidence=color_confidence(used / total, avg_saturation),
    )


class ColorSampler:
    """Samples cover colors through the image provider and color cache.

    Parameters
    ----------
    image_provider:
        Source of raw cover image bytes.
    cache:
        Color cache keyed by image URL (long TTL).
    concurrency:
        Maximum simultaneous image fetches during :meth:`enrich`.
    """

    def __init__(
        self,
        image_provider: IImageProvider,
        cache: ICacheProvider,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self._images = image_provider
        self._cache = cache
        self._concurrency = concurrency

    async def sample(self, image_url: str | None) -> ColorSample:
        """Return the (memoized) color sample for *image_url*."""
        if not image_url:
            return NO_COLOR
        return await self._cache.get_or_compute(
            f"color:{image_url}", lambda: self._sample_uncached(image_url)
        )

    async def _sample_uncached(self, image_url: str) -> ColorSample:
        try:
            data = await self._images.fetch_image(image_url)
        except ImageFetchError as exc:
            logger.debug("cover_fetch_failed", url=image_url, error=str(exc))
            return NO_COLOR

        try:
            return await asyncio.to_thread(sample_image_bytes, data)
        except ImageDecodeError as exc:
            logger.debug("cover_decode_failed", url=image_url, error=str(exc))
            return NO_COLOR

    async def _sample_candidate(self, candidate: Candidate) -> ColorSample:
        try:
            return await self.sample(candidate.image_url)
        except Exception as exc:  # noqa: BLE001 -- one bad cover never fails a batch
            logger.warning("cover_sample_failed", album_id=candidate.id, error=str(exc))
            return NO_COLOR

    async def enrich(self, candidates: list[Candidate]) -> int:
        """Attach a color sample to every not-yet-enriched candidate.

        Candidates without an image URL are marked as sampled with no
        color.  Returns the number of candidates enriched by this call.
        """
        pending = [c for c in candidates if not c.is_enriched]
        if not pending:
            return 0
        samples = await bounded_map(pending, self._sample_candidate, limit=self._concurrency)
        for candidate, sample in zip(pending, samples, strict=True):
            candidate.apply_color(sample)
        logger.debug("candidates_enriched", count=len(pending))
        return len(pending)
