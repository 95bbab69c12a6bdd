"""Per-bucket top selection and global uniqueness.

Selection rules for one bucket, candidates ordered by strength (score,
then confidence, then appearances, all descending):

1. **Appearance gap** -- if the two leaders differ by two or more
   appearances, the one that shows up more often wins outright.
2. **Dominance** -- otherwise, if the leader's score beats the runner-up by
   the window's dominance margin (or the runner-up scores nothing), the
   leader keeps the bucket.
3. **Variety** -- otherwise one of the first ``pick_window`` candidates is
   chosen by :func:`stable_hash` of ``"{window}:{bucket}:primary"``.  The
   choice is deterministic for a given window and bucket, yet differs
   between windows and buckets.

After selection no album may be the top of two buckets; see
:func:`enforce_unique_tops`.
"""

from __future__ import annotations

from typing import Protocol

from chromafm.config.window_profiles import WindowProfile
from chromafm.models.album import Candidate
from chromafm.models.enums import ColorBucket, FillStage, TimeWindow
from chromafm.models.result import MAX_OTHERS, Bucket, ColorResult, ResultMeta
from chromafm.services.bucket_classifier import classify
from chromafm.utils.logging import get_logger

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
APPEARANCE_GAP = 2

logger = get_logger(__name__)


class _Ranked(Protocol):
    score: float
    confidence: float | None
    appearances: int


def stable_hash(key: str) -> int:
    """32-bit FNV-1a hash of *key*'s code points.

    Stable across processes and platforms (unlike ``hash()``), which keeps
    variety picks reproducible for identical inputs.
    """
    h = FNV_OFFSET_BASIS
    for ch in key:
        h ^= ord(ch)
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return h


def strength_key(item: _Ranked) -> tuple[float, float, int]:
    """Sort key placing the strongest album first."""
    return (-item.score, -(item.confidence or 0.0), -item.appearances)


def sort_by_strength(items: list[Candidate]) -> list[Candidate]:
    return sorted(items, key=strength_key)


def variety_key(window: TimeWindow, bucket: ColorBucket) -> str:
    return f"{window.value}:{bucket.value}:primary"


def pick_top_for_bucket(
    ranked: list[Candidate],
    key: str,
    pick_window: int,
    dominance_margin: float,
) -> Candidate | None:
    """Choose the top of one bucket from strength-ordered *ranked*."""
    if not ranked:
        return None
    if len(ranked) == 1:
        return ranked[0]

    best, runner_up = ranked[0], ranked[1]
    if abs(best.appearances - runner_up.appearances) >= APPEARANCE_GAP:
        return best if best.appearances >= runner_up.appearances else runner_up

    if runner_up.score <= 0 or best.score >= runner_up.score * (1 + dominance_margin):
        return best

    window = max(1, min(pick_window, len(ranked)))
    return ranked[stable_hash(key) % window]


def bucketize(candidates: list[Candidate]) -> dict[ColorBucket, list[Candidate]]:
    """Group colored candidates by bucket, each list strength-ordered."""
    grouped: dict[ColorBucket, list[Candidate]] = {color: [] for color in ColorBucket}
    for candidate in candidates:
        if candidate.hex is None:
            continue
        grouped[classify(candidate.hex)].append(candidate)
    return {color: sort_by_strength(items) for color, items in grouped.items()}


def pick_best_matching(
    pool: list[Candidate],
    bucket: ColorBucket,
    used_ids: set[str],
    min_conf: float,
) -> Candidate | None:
    """Strongest enriched, unused candidate of *bucket* with confidence >= *min_conf*.

    On equal strength the earliest pool entry wins.
    """
    best: Candidate | None = None
    for candidate in pool:
        if not candidate.id or candidate.id in used_ids or candidate.hex is None:
            continue
        if (candidate.confidence or 0.0) < min_conf:
            continue
        if classify(candidate.hex) is not bucket:
            continue
        if best is None or strength_key(candidate) < strength_key(best):
            best = candidate
    return best


def enforce_unique_tops(result: ColorResult) -> list[ColorBucket]:
    """Clear buckets whose top repeats an album already placed elsewhere.

    Buckets are scanned in label order.  On a repeat, the pick from the
    earlier :class:`FillStage` stays; within one stage the stronger pick
    stays, and a full tie keeps the earlier bucket.  The losing bucket is
    emptied (top, others and fill mark).

    Returns:
        The buckets that were cleared.
    """
    filled_by = result.meta.filled_by
    owner: dict[str, ColorBucket] = {}
    cleared: list[ColorBucket] = []

    for color in ColorBucket:
        top = result.buckets[color].top
        if top is None:
            continue
        holder = owner.get(top.id)
        if holder is None:
            owner[top.id] = color
            continue

        held = result.buckets[holder].top
        if held is None:
            owner[top.id] = color
            continue
        held_rank = (filled_by.get(holder, held.source).rank, strength_key(held))
        new_rank = (filled_by.get(color, top.source).rank, strength_key(top))
        loser = color if new_rank >= held_rank else holder
        if loser is holder:
            owner[top.id] = color

        result.buckets[loser].clear()
        filled_by.pop(loser, None)
        cleared.append(loser)
        logger.debug("duplicate_top_cleared", album_id=top.id, bucket=loser.value)

    return cleared


class BucketSelector:
    """Turns an enriched primary pool into a first-pass :class:`ColorResult`."""

    def __init__(self, profiles: dict[TimeWindow, WindowProfile]) -> None:
        self._profiles = profiles

    def select(self, candidates: list[Candidate], window: TimeWindow) -> ColorResult:
        """Pick a top (plus up to six others) per bucket, then de-duplicate tops."""
        profile = self._profiles[window]
        result = ColorResult(
            analyzed=len(candidates),
            meta=ResultMeta(time_range=window),
        )

        for color, ranked in bucketize(candidates).items():
            top = pick_top_for_bucket(
                ranked,
                variety_key(window, color),
                profile.pick_window,
                profile.dominance_margin,
            )
            if top is None:
                continue
            others = [c for c in ranked if c.id != top.id][:MAX_OTHERS]
            result.buckets[color] = Bucket(
                top=top.freeze(FillStage.TOP_TRACKS),
                others=[c.freeze(FillStage.TOP_TRACKS) for c in others],
            )
            result.meta.filled_by[color] = FillStage.TOP_TRACKS

        enforce_unique_tops(result)
        logger.info(
            "primary_selection_complete",
            window=window.value,
            analyzed=result.analyzed,
            filled=len(result.meta.filled_by),
        )
        return result
