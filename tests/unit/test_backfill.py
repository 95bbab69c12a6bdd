"""Unit tests for the staged backfill pipeline."""

from __future__ import annotations

import pytest

from chromafm.models.album import ColorSample
from chromafm.models.catalog import CatalogArtist
from chromafm.models.enums import ColorBucket, FillStage, TimeWindow
from chromafm.models.result import Bucket, ColorResult, ResultMeta
from chromafm.pipeline.backfill import (
    BackfillPipeline,
    BackfillStage,
    BackfillState,
    default_stages,
)
from chromafm.services.candidate_aggregator import CandidateAggregator
from chromafm.utils.errors import RateLimitError
from tests.conftest import BUCKET_HEX, FakeCatalog, StubSampler, make_album, make_candidate, make_track

WINDOW = TimeWindow.MEDIUM_TERM  # min_conf 0.22, min_conf_wide 0.12


def _url(album_id: str) -> str:
    return f"https://img.test/{album_id}.png"


def _sample(color: str, confidence: float) -> ColorSample:
    return ColorSample(hex=BUCKET_HEX[color], confidence=confidence)


def _state(listener, profile, missing: list[str]) -> BackfillState:  # noqa: ANN001
    result = ColorResult(meta=ResultMeta(time_range=WINDOW))
    for color in ColorBucket:
        if color.value in missing:
            continue
        top = make_candidate(f"top-{color.value}", hex_color=BUCKET_HEX[color.value])
        result.buckets[color] = Bucket(top=top.freeze(FillStage.TOP_TRACKS))
        result.meta.filled_by[color] = FillStage.TOP_TRACKS
    return BackfillState(listener=listener, window=WINDOW, profile=profile, result=result)


def _pipeline(catalog: FakeCatalog, sampler: StubSampler) -> BackfillPipeline:
    return BackfillPipeline(default_stages(catalog, sampler, CandidateAggregator(catalog)))


class _FixedStage(BackfillStage):
    def __init__(self, name: str, fills) -> None:  # noqa: ANN001
        self.name = name
        self._fills = fills
        self.runs = 0

    async def run(self, state, missing, used_ids):  # noqa: ANN001, ANN201
        self.runs += 1
        return dict(self._fills)


class _BrokenStage(BackfillStage):
    name = "broken"

    async def run(self, state, missing, used_ids):  # noqa: ANN001, ANN201
        raise RuntimeError("stage exploded")


class _FlakyCatalog(FakeCatalog):
    """Rate-limits one top-tracks window, saved pages past an offset, or one artist."""

    def __init__(
        self,
        *args,  # noqa: ANN002
        down_window: TimeWindow | None = None,
        saved_down_from: int | None = None,
        down_artist: str | None = None,
        **kwargs,  # noqa: ANN003
    ) -> None:
        super().__init__(*args, **kwargs)
        self.down_window = down_window
        self.saved_down_from = saved_down_from
        self.down_artist = down_artist

    async def get_top_tracks(self, listener, window, limit=50, offset=0):  # noqa: ANN001, ANN201
        if window is self.down_window:
            raise RateLimitError(provider_name="fake")
        return await super().get_top_tracks(listener, window, limit=limit, offset=offset)

    async def get_saved_albums(self, listener, limit=50, offset=0):  # noqa: ANN001, ANN201
        if self.saved_down_from is not None and offset >= self.saved_down_from:
            raise RateLimitError(provider_name="fake")
        return await super().get_saved_albums(listener, limit=limit, offset=offset)

    async def get_artist_albums(self, listener, artist_id, limit=12):  # noqa: ANN001, ANN201
        if artist_id == self.down_artist:
            raise RateLimitError(provider_name="fake")
        return await super().get_artist_albums(listener, artist_id, limit=limit)


class TestSavedAndArtistStages:
    @pytest.mark.asyncio
    async def test_pink_filled_from_saved_and_skipped_later(self, listener, profiles) -> None:  # noqa: ANN001
        catalog = FakeCatalog(
            saved_albums=[make_album("pink-lp")],
            top_artists=[CatalogArtist(id="ar1", name="Artist")],
            artist_albums={"ar1": [make_album("pink-alt")]},
        )
        sampler = StubSampler(
            {_url("pink-lp"): _sample("pink", 0.4), _url("pink-alt"): _sample("pink", 0.9)}
        )
        state = _state(listener, profiles[WINDOW], missing=["pink"])

        result = await _pipeline(catalog, sampler).run(state)

        pink = result.buckets[ColorBucket.PINK].top
        assert pink is not None and pink.id == "pink-lp"
        assert pink.source is FillStage.SAVED
        assert result.meta.filled_by[ColorBucket.PINK] is FillStage.SAVED
        assert catalog.calls["get_top_artists"] == 0
        assert catalog.calls["get_top_tracks"] == 0

    @pytest.mark.asyncio
    async def test_saved_below_floor_falls_through_to_artist(self, listener, profiles) -> None:  # noqa: ANN001
        catalog = FakeCatalog(
            saved_albums=[
                make_album("weak"),
                make_album("single", total_tracks=1),
                make_album("top-red"),
            ],
            top_artists=[CatalogArtist(id="ar1", name="Artist")],
            artist_albums={"ar1": [make_album("artist-pink")]},
        )
        sampler = StubSampler(
            {
                _url("weak"): _sample("pink", 0.2),
                _url("single"): _sample("pink", 0.9),
                _url("top-red"): _sample("pink", 0.9),
                _url("artist-pink"): _sample("pink", 0.5),
            }
        )
        state = _state(listener, profiles[WINDOW], missing=["pink"])

        result = await _pipeline(catalog, sampler).run(state)

        pink = result.buckets[ColorBucket.PINK].top
        assert pink is not None and pink.id == "artist-pink"
        assert pink.source is FillStage.ARTIST

    @pytest.mark.asyncio
    async def test_highest_confidence_saved_album_wins(self, listener, profiles) -> None:  # noqa: ANN001
        catalog = FakeCatalog(saved_albums=[make_album("ok"), make_album("best"), make_album("also")])
        sampler = StubSampler(
            {
                _url("ok"): _sample("grey", 0.3),
                _url("best"): _sample("grey", 0.8),
                _url("also"): _sample("grey", 0.8),
            }
        )
        state = _state(listener, profiles[WINDOW], missing=["grey"])

        result = await _pipeline(catalog, sampler).run(state)

        assert result.buckets[ColorBucket.GREY].top.id == "best"

    @pytest.mark.asyncio
    async def test_failed_saved_lookup_does_not_stop_artist_stage(self, listener, profiles) -> None:  # noqa: ANN001
        catalog = FakeCatalog(
            top_artists=[CatalogArtist(id="ar1", name="Artist")],
            artist_albums={"ar1": [make_album("artist-pink")]},
            failing={"get_saved_albums"},
        )
        sampler = StubSampler({_url("artist-pink"): _sample("pink", 0.5)})
        state = _state(listener, profiles[WINDOW], missing=["pink"])

        result = await _pipeline(catalog, sampler).run(state)

        assert result.meta.filled_by[ColorBucket.PINK] is FillStage.ARTIST

    @pytest.mark.asyncio
    async def test_failed_second_saved_page_keeps_first_page_match(self, listener, profiles) -> None:  # noqa: ANN001
        saved = [make_album("pink-lp")] + [make_album(f"plain{i}") for i in range(59)]
        catalog = _FlakyCatalog(saved_albums=saved, saved_down_from=50)
        sampler = StubSampler({_url("pink-lp"): _sample("pink", 0.4)})
        state = _state(listener, profiles[WINDOW], missing=["pink"])

        result = await _pipeline(catalog, sampler).run(state)

        assert result.buckets[ColorBucket.PINK].top.id == "pink-lp"
        assert result.meta.filled_by[ColorBucket.PINK] is FillStage.SAVED
        assert catalog.calls["get_top_artists"] == 0

    @pytest.mark.asyncio
    async def test_failed_artist_keeps_albums_already_collected(self, listener, profiles) -> None:  # noqa: ANN001
        catalog = _FlakyCatalog(
            top_artists=[
                CatalogArtist(id="ar1", name="First"),
                CatalogArtist(id="ar2", name="Second"),
            ],
            artist_albums={"ar1": [make_album("artist-pink")]},
            down_artist="ar2",
        )
        sampler = StubSampler({_url("artist-pink"): _sample("pink", 0.5)})
        state = _state(listener, profiles[WINDOW], missing=["pink"])

        result = await _pipeline(catalog, sampler).run(state)

        assert result.buckets[ColorBucket.PINK].top.id == "artist-pink"
        assert result.meta.filled_by[ColorBucket.PINK] is FillStage.ARTIST


class TestWidening:
    @pytest.mark.asyncio
    async def test_single_gap_skips_widening(self, listener, profiles) -> None:  # noqa: ANN001
        catalog = FakeCatalog(
            saved_albums=[make_album("faint")],
            top_tracks={TimeWindow.LONG_TERM: [make_track(make_album("old-pink"))]},
        )
        sampler = StubSampler(
            {_url("faint"): _sample("pink", 0.15), _url("old-pink"): _sample("pink", 0.05)}
        )
        state = _state(listener, profiles[WINDOW], missing=["pink"])

        result = await _pipeline(catalog, sampler).run(state)

        assert state.widened is False
        assert result.buckets[ColorBucket.PINK].top.id == "old-pink"
        assert result.meta.filled_by[ColorBucket.PINK] is FillStage.OTHER_RANGES_LAST

    @pytest.mark.asyncio
    async def test_two_gaps_widen_saved_then_artist(self, listener, profiles) -> None:  # noqa: ANN001
        catalog = FakeCatalog(
            saved_albums=[make_album("faint-pink")],
            top_artists=[CatalogArtist(id="ar1", name="Artist")],
            artist_albums={"ar1": [make_album("faint-grey")]},
        )
        sampler = StubSampler(
            {
                _url("faint-pink"): _sample("pink", 0.15),
                _url("faint-grey"): _sample("grey", 0.13),
            }
        )
        state = _state(listener, profiles[WINDOW], missing=["pink", "grey"])

        result = await _pipeline(catalog, sampler).run(state)

        assert state.widened is True
        assert result.meta.filled_by[ColorBucket.PINK] is FillStage.SAVED_WIDE
        assert result.meta.filled_by[ColorBucket.GREY] is FillStage.ARTIST_WIDE

    @pytest.mark.asyncio
    async def test_wide_top_tracks_then_ultra_loose(self, listener, profiles) -> None:  # noqa: ANN001
        profile = profiles[WINDOW].model_copy(
            update={"first_enrich": 1, "enrich_batch": 1, "max_total_enrich": 10}
        )
        catalog = FakeCatalog(
            top_tracks={
                WINDOW: [
                    make_track(make_album("deep-pink"), "t1"),
                    make_track(make_album("dull-grey"), "t2"),
                ]
            }
        )
        sampler = StubSampler(
            {_url("deep-pink"): _sample("pink", 0.5), _url("dull-grey"): _sample("grey", 0.01)}
        )
        state = _state(listener, profile, missing=["pink", "grey"])

        result = await _pipeline(catalog, sampler).run(state)

        assert result.meta.filled_by[ColorBucket.PINK] is FillStage.WIDE_TOP_TRACKS
        assert result.meta.filled_by[ColorBucket.GREY] is FillStage.ULTRA_LOOSE
        assert result.buckets[ColorBucket.GREY].top.source is FillStage.ULTRA_LOOSE

    @pytest.mark.asyncio
    async def test_failing_window_keeps_the_rest_of_the_wide_pool(self, listener, profiles) -> None:  # noqa: ANN001
        catalog = _FlakyCatalog(
            top_tracks={WINDOW: [make_track(make_album("deep-pink"), "t1")]},
            down_window=TimeWindow.LONG_TERM,
        )
        sampler = StubSampler({_url("deep-pink"): _sample("pink", 0.5)})
        state = _state(listener, profiles[WINDOW], missing=["pink", "grey"])

        result = await _pipeline(catalog, sampler).run(state)

        assert result.buckets[ColorBucket.PINK].top.id == "deep-pink"
        assert result.meta.filled_by[ColorBucket.PINK] is FillStage.WIDE_TOP_TRACKS
        assert result.missing() == [ColorBucket.GREY]


class TestPipelineGuarantees:
    @pytest.mark.asyncio
    async def test_later_stage_never_overwrites_earlier_fill(self, listener, profiles) -> None:  # noqa: ANN001
        first_pink = make_candidate("first-pink", hex_color=BUCKET_HEX["pink"]).freeze(FillStage.SAVED)
        later_pink = make_candidate("later-pink", hex_color=BUCKET_HEX["pink"]).freeze(FillStage.ARTIST)
        grey = make_candidate("grey", hex_color=BUCKET_HEX["grey"]).freeze(FillStage.ARTIST)
        stages = [
            _FixedStage("saved", {ColorBucket.PINK: first_pink}),
            _FixedStage("artist", {ColorBucket.PINK: later_pink, ColorBucket.GREY: grey}),
        ]
        state = _state(listener, profiles[WINDOW], missing=["pink", "grey"])

        result = await BackfillPipeline(stages).run(state)

        assert result.buckets[ColorBucket.PINK].top.id == "first-pink"
        assert result.meta.filled_by[ColorBucket.PINK] is FillStage.SAVED
        assert result.buckets[ColorBucket.GREY].top.id == "grey"

    @pytest.mark.asyncio
    async def test_duplicate_of_earlier_stage_is_cleared_and_refilled(self, listener, profiles) -> None:  # noqa: ANN001
        duplicate = make_candidate("top-red", hex_color=BUCKET_HEX["pink"]).freeze(FillStage.SAVED)
        fresh = make_candidate("fresh-pink", hex_color=BUCKET_HEX["pink"]).freeze(FillStage.ARTIST)
        stages = [
            _FixedStage("saved", {ColorBucket.PINK: duplicate}),
            _FixedStage("artist", {ColorBucket.PINK: fresh}),
        ]
        state = _state(listener, profiles[WINDOW], missing=["pink"])

        result = await BackfillPipeline(stages).run(state)

        assert result.buckets[ColorBucket.RED].top.id == "top-red"
        assert result.buckets[ColorBucket.PINK].top.id == "fresh-pink"
        assert len(result.top_ids()) == len(set(result.top_ids()))

    @pytest.mark.asyncio
    async def test_failing_stage_is_isolated(self, listener, profiles) -> None:  # noqa: ANN001
        pink = make_candidate("pink", hex_color=BUCKET_HEX["pink"]).freeze(FillStage.OTHER_RANGES_LAST)
        state = _state(listener, profiles[WINDOW], missing=["pink"])

        result = await BackfillPipeline(
            [_BrokenStage(), _FixedStage("other_ranges_last", {ColorBucket.PINK: pink})]
        ).run(state)

        assert result.buckets[ColorBucket.PINK].top.id == "pink"

    @pytest.mark.asyncio
    async def test_unavailable_catalog_leaves_bucket_empty(self, listener, profiles) -> None:  # noqa: ANN001
        catalog = FakeCatalog(
            failing={"get_saved_albums", "get_top_artists", "get_top_tracks", "get_artist_albums"}
        )
        state = _state(listener, profiles[WINDOW], missing=["pink", "grey"])

        result = await _pipeline(catalog, StubSampler()).run(state)

        assert result.missing() == [ColorBucket.PINK, ColorBucket.GREY]
        assert ColorBucket.PINK not in result.meta.filled_by

    @pytest.mark.asyncio
    async def test_stops_when_nothing_is_missing(self, listener, profiles) -> None:  # noqa: ANN001
        stage = _FixedStage("saved", {})
        state = _state(listener, profiles[WINDOW], missing=[])

        await BackfillPipeline([stage]).run(state)

        assert stage.runs == 0
