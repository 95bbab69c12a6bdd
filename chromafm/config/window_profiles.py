"""Per-window strictness profiles.

Longer listening windows hold more history but flatter preferences, so each
window gets its own thresholds: how confident a sampled color must be to be
accepted, how deep the library scans go, and how aggressively the selector
varies its pick.  Defaults live here; ``config/config.yaml`` may override
any field per window under ``window_profiles``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chromafm.models.enums import TimeWindow
from chromafm.utils.errors import ConfigurationError


class WindowProfile(BaseModel):
    """Strictness parameters for one time window."""

    model_config = ConfigDict(frozen=True)

    min_conf: float = Field(ge=0.0, le=1.0)
    min_conf_wide: float = Field(ge=0.0, le=1.0)
    saved_scan: int = Field(ge=0)
    saved_scan_wide: int = Field(ge=0)
    top_artists_n: int = Field(ge=0)
    albums_per_artist: int = Field(ge=1, le=50)
    candidate_cap: int = Field(ge=0)
    top_track_pages_wide: int = Field(ge=1)
    first_enrich: int = Field(ge=0)
    enrich_batch: int = Field(ge=1)
    max_total_enrich: int = Field(ge=0)
    pick_window: int = Field(ge=1)          # variety window N
    dominance_margin: float = Field(ge=0.0)


DEFAULT_WINDOW_PROFILES: dict[TimeWindow, WindowProfile] = {
    TimeWindow.SHORT_TERM: WindowProfile(
        min_conf=0.26,
        min_conf_wide=0.14,
        saved_scan=450,
        saved_scan_wide=900,
        top_artists_n=10,
        albums_per_artist=16,
        candidate_cap=180,
        top_track_pages_wide=3,
        first_enrich=520,
        enrich_batch=200,
        max_total_enrich=1200,
        pick_window=2,
        dominance_margin=0.55,
    ),
    TimeWindow.MEDIUM_TERM: WindowProfile(
        min_conf=0.22,
        min_conf_wide=0.12,
        saved_scan=650,
        saved_scan_wide=1200,
        top_artists_n=12,
        albums_per_artist=18,
        candidate_cap=200,
        top_track_pages_wide=3,
        first_enrich=520,
        enrich_batch=220,
        max_total_enrich=1400,
        pick_window=4,
        dominance_margin=0.42,
    ),
    TimeWindow.LONG_TERM: WindowProfile(
        min_conf=0.18,
        min_conf_wide=0.10,
        saved_scan=900,
        saved_scan_wide=1600,
        top_artists_n=14,
        albums_per_artist=22,
        candidate_cap=240,
        top_track_pages_wide=4,
        first_enrich=520,
        enrich_batch=240,
        max_total_enrich=1600,
        pick_window=6,
        dominance_margin=0.32,
    ),
}

# Time weight applied to each window when it serves as a last-resort source
# for a different requested window.
LAST_RESORT_WINDOW_WEIGHTS: dict[TimeWindow, float] = {
    TimeWindow.SHORT_TERM: 0.6,
    TimeWindow.MEDIUM_TERM: 0.55,
    TimeWindow.LONG_TERM: 0.5,
}


def build_window_profiles(
    overrides: dict[str, Any] | None = None,
) -> dict[TimeWindow, WindowProfile]:
    """Return the profile table with *overrides* applied field by field.

    *overrides* is the ``window_profiles`` mapping from config.yaml, e.g.
    ``{"short_term": {"min_conf": 0.3}}``.

    Raises:
        ConfigurationError: On an unknown window name or an invalid value.
    """
    profiles = dict(DEFAULT_WINDOW_PROFILES)
    for name, fields in (overrides or {}).items():
        try:
            window = TimeWindow(name)
        except ValueError as exc:
            raise ConfigurationError(message=f"Unknown time window in profiles: {name!r}") from exc
        if not isinstance(fields, dict):
            raise ConfigurationError(message=f"Profile for {name} must be a mapping")
        merged = {**profiles[window].model_dump(), **fields}
        try:
            profiles[window] = WindowProfile(**merged)
        except ValidationError as exc:
            raise ConfigurationError(message=f"Invalid profile for {name}: {exc}") from exc
    return profiles
