"""Text normalization for album identity merging.

Catalog services list the same record several times: the original, a
remaster, a deluxe edition, an anniversary reissue.  For ranking purposes
these are one album, so the aggregator merges them under a key built from a
normalized title and the lowercase primary artist.
"""

import re

# Edition markers stripped from titles before merging.
_EDITION_WORDS = re.compile(
    r"\b(deluxe|remaster(ed)?|edition|anniversary|expanded|reissue|bonus|mono|stereo)\b"
)
_PARENTHESISED = re.compile(r"\(.*?\)")
_BRACKETED = re.compile(r"\[.*?\]")
_WHITESPACE = re.compile(r"\s+")


def normalize_album_name(name: str | None) -> str:
    """Normalize an album title so reissues share one identity.

    Lowercases, drops parenthesised and bracketed suffixes, removes edition
    words and collapses whitespace, so that "Blue (Remastered 2011)",
    "Blue [Deluxe Edition]" and "blue" all normalize to "blue".

    Args:
        name: Raw album title (``None`` is treated as empty).

    Returns:
        Normalized title.
    """
    normalized = (name or "").lower()
    normalized = _PARENTHESISED.sub("", normalized)
    normalized = _BRACKETED.sub("", normalized)
    normalized = _EDITION_WORDS.sub("", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def album_merge_key(name: str | None, primary_artist: str | None) -> str:
    """Return the identity key used to merge mentions of one album."""
    return f"{normalize_album_name(name)}::{(primary_artist or '').lower()}"


def join_artist_names(names: list[str]) -> str:
    """Join artist names for display (``"A, B"``)."""
    return ", ".join(n for n in names if n)
