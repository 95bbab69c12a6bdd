"""Perceptual color bucket classification.

Maps an ``#RRGGBB`` color to one of the ten :class:`ColorBucket` labels
using HSV thresholds.  Achromatic colors are resolved first (very dark is
black, very bright and unsaturated is white, otherwise weakly saturated is
grey); everything else falls on a hue arc.  The mapping is pure and total:
every well-formed hex yields exactly one bucket.
"""

from __future__ import annotations

import colorsys
import re

from chromafm.models.enums import ColorBucket

_HEX_PATTERN = re.compile(r"^#?([0-9a-fA-F]{6})$")

BLACK_MAX_VALUE = 0.14
WHITE_MIN_VALUE = 0.9
WHITE_MAX_SATURATION = 0.1
GREY_MAX_SATURATION = 0.18

# Upper (exclusive) hue bound in degrees for each chromatic bucket, scanned
# in order.  Red wraps around: it owns [330, 360) as well as [0, 15).
HUE_ARCS: list[tuple[float, ColorBucket]] = [
    (15.0, ColorBucket.RED),
    (45.0, ColorBucket.ORANGE),
    (75.0, ColorBucket.YELLOW),
    (160.0, ColorBucket.GREEN),
    (250.0, ColorBucket.BLUE),
    (290.0, ColorBucket.PURPLE),
    (330.0, ColorBucket.PINK),
    (360.0, ColorBucket.RED),
]


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Parse ``#RRGGBB`` (leading ``#`` optional, any case) into an RGB tuple.

    Raises:
        ValueError: If *hex_color* is not a six-digit hex color.
    """
    match = _HEX_PATTERN.match(hex_color.strip()) if isinstance(hex_color, str) else None
    if match is None:
        raise ValueError(f"malformed hex color: {hex_color!r}")
    digits = match.group(1)
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def rgb_to_hex(r: int, g: int, b: int) -> str:
    """Format channel values as uppercase ``#RRGGBB``."""
    return f"#{r:02X}{g:02X}{b:02X}"


def rgb_to_hsv(r: int, g: int, b: int) -> tuple[float, float, float]:
    """Return ``(hue_degrees, saturation, value)`` for 8-bit channels."""
    h, s, v = colorsys.rgb_to_hsv(r / 255.0, g / 255.0, b / 255.0)
    return h * 360.0, s, v


def classify_hsv(hue: float, saturation: float, value: float) -> ColorBucket:
    """Classify an HSV triple (hue in degrees)."""
    if value < BLACK_MAX_VALUE:
        return ColorBucket.BLACK
    if value > WHITE_MIN_VALUE and saturation < WHITE_MAX_SATURATION:
        return ColorBucket.WHITE
    if saturation < GREY_MAX_SATURATION:
        return ColorBucket.GREY

    hue = hue % 360.0
    for upper, bucket in HUE_ARCS:
        if hue < upper:
            return bucket
    return ColorBucket.RED


def classify(hex_color: str) -> ColorBucket:
    """Classify an ``#RRGGBB`` color into its perceptual bucket.

    Raises:
        ValueError: If *hex_color* is malformed.
    """
    return classify_hsv(*rgb_to_hsv(*hex_to_rgb(hex_color)))
