"""Confidence scoring utilities for sampled cover colors.

Every sampled cover color carries a numeric confidence (0.0--1.0) that
estimates how trustworthy the averaged color is as the album's dominant
color.  Two signals feed it:

1. **coverage** -- the fraction of sampled pixels that were opaque enough
   to count.  Covers with transparent padding average over fewer pixels.
2. **saturation** -- the mean HSV saturation of those pixels, normalised
   against a reference.  Washed-out averages (muddy browns, greys produced
   by mixing complementary colors) are less representative.
"""

# Weights of the two signals.  They sum to 1.0 so the weighted average
# equals the linear blend ``0.6 * coverage + 0.4 * saturation_score``.
COVERAGE_WEIGHT = 0.6
SATURATION_WEIGHT = 0.4

# Mean saturation at which the saturation signal is considered complete.
REFERENCE_SATURATION = 0.25


def clamp01(value: float) -> float:
    """Clamp *value* to the closed interval [0.0, 1.0]."""
    return max(0.0, min(1.0, value))


def calculate_confidence(
    scores: list[float],
    weights: list[float] | None = None,
) -> float:
    """Compute a weighted average confidence score.

    Args:
        scores: Individual confidence signals, each in [0.0, 1.0].
        weights: Optional weights for each score. Defaults to equal weighting.

    Returns:
        Weighted average clamped to [0.0, 1.0].

    Raises:
        ValueError: If scores is empty or lengths of scores and weights differ.
    """
    if not scores:
        raise ValueError("scores must not be empty")

    if weights is None:
        weights = [1.0] * len(scores)

    if len(scores) != len(weights):
        raise ValueError("scores and weights must have the same length")

    total_weight = sum(weights)
    if total_weight == 0:
        return 0.0

    weighted_sum = sum(s * w for s, w in zip(scores, weights, strict=True))
    return clamp01(weighted_sum / total_weight)


def color_confidence(coverage: float, avg_saturation: float) -> float:
    """Confidence of a sampled average color.

    Args:
        coverage: Fraction of sampled pixels that were opaque, in [0.0, 1.0].
        avg_saturation: Mean HSV saturation of the opaque pixels.

    Returns:
        ``clamp01(0.6 * coverage + 0.4 * min(1, avg_saturation / 0.25))``.
    """
    saturation_score = min(1.0, avg_saturation / REFERENCE_SATURATION)
    return calculate_confidence(
        [clamp01(coverage), saturation_score],
        weights=[COVERAGE_WEIGHT, SATURATION_WEIGHT],
    )
