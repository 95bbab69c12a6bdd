"""Unit tests for the analyze CLI."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from chromafm.cli import analyze
from chromafm.models.enums import ColorBucket, FillStage, TimeWindow
from chromafm.models.result import Bucket, ColorBundle, ColorResult, ResultMeta
from chromafm.utils.errors import AuthenticationError
from tests.conftest import BUCKET_HEX, make_candidate


# ======================================================================
# Shared helpers
# ======================================================================


def _result(window: TimeWindow = TimeWindow.SHORT_TERM) -> ColorResult:
    result = ColorResult(analyzed=12, meta=ResultMeta(time_range=window))
    red = make_candidate("r1", hex_color=BUCKET_HEX["red"], confidence=0.83)
    pink = make_candidate("p1", hex_color=BUCKET_HEX["pink"], confidence=0.41)
    result.buckets[ColorBucket.RED] = Bucket(top=red.freeze(FillStage.TOP_TRACKS))
    result.buckets[ColorBucket.PINK] = Bucket(top=pink.freeze(FillStage.SAVED))
    result.meta.filled_by = {ColorBucket.RED: FillStage.TOP_TRACKS, ColorBucket.PINK: FillStage.SAVED}
    result.meta.backfilled_colors = [ColorBucket.PINK]
    return result


def _components(pipeline: MagicMock) -> dict:
    return {"pipeline": pipeline, "http_client": AsyncMock(), "provider_registry": {}}


# ======================================================================
# Formatting
# ======================================================================


class TestFormatting:
    def test_text_lists_every_bucket(self) -> None:
        text = analyze.format_text_output(_result())
        for color in ColorBucket:
            assert color.value in text
        assert "Album r1" in text
        assert "[saved, conf 0.41]" in text
        assert "backfilled: pink" in text
        assert "(empty)" in text

    def test_bundle_text_has_three_sections(self) -> None:
        bundle = ColorBundle(
            short_term=_result(TimeWindow.SHORT_TERM),
            medium_term=_result(TimeWindow.MEDIUM_TERM),
            long_term=_result(TimeWindow.LONG_TERM),
        )
        text = analyze.format_text_output(bundle)
        assert text.count("Time range:") == 3
        assert "long_term" in text

    def test_json_output(self) -> None:
        data = json.loads(analyze.format_json_output(_result()))
        assert data["analyzed"] == 12
        assert data["buckets"]["red"]["top"]["id"] == "r1"
        assert data["meta"]["filled_by"]["pink"] == "saved"


# ======================================================================
# Entry point
# ======================================================================


class TestMain:
    def test_missing_token(self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
        monkeypatch.delenv("CHROMAFM_ACCESS_TOKEN", raising=False)
        assert analyze.main([]) == 1
        assert "no access token" in capsys.readouterr().err

    def test_limit_out_of_range(self) -> None:
        assert analyze.main(["--token", "t", "--limit", "51"]) == 1

    def test_invalid_time_range_exits(self) -> None:
        with pytest.raises(SystemExit):
            analyze.main(["--token", "t", "--time-range", "yearly"])

    def test_arguments_forwarded(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHROMAFM_ACCESS_TOKEN", "env-token")
        run = AsyncMock(return_value=0)
        with patch.object(analyze, "_run", run):
            assert analyze.main(["--time-range", "long_term", "--limit", "20", "--bundle"]) == 0

        run.assert_called_once_with(
            token="env-token",
            window=TimeWindow.LONG_TERM,
            limit=20,
            bundle=True,
            json_output=False,
            output_file=None,
        )


class TestRun:
    @pytest.mark.asyncio
    async def test_writes_json_file(self, tmp_path: Path) -> None:
        pipeline = MagicMock()
        pipeline.compute = AsyncMock(return_value=_result())
        components = _components(pipeline)
        out = tmp_path / "buckets.json"

        with patch("chromafm.main.build_components", return_value=components):
            code = await analyze._run("tok", TimeWindow.SHORT_TERM, 50, False, True, str(out))

        assert code == 0
        assert json.loads(out.read_text())["buckets"]["pink"]["top"]["id"] == "p1"
        components["http_client"].aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bundle_uses_bundle_entry_point(self, capsys: pytest.CaptureFixture) -> None:
        bundle = ColorBundle(
            short_term=_result(TimeWindow.SHORT_TERM),
            medium_term=_result(TimeWindow.MEDIUM_TERM),
            long_term=_result(TimeWindow.LONG_TERM),
        )
        pipeline = MagicMock()
        pipeline.compute_bundle = AsyncMock(return_value=bundle)

        with patch("chromafm.main.build_components", return_value=_components(pipeline)):
            code = await analyze._run("tok", TimeWindow.SHORT_TERM, 30, True, False, None)

        assert code == 0
        assert pipeline.compute_bundle.await_args.args[1] == 30
        assert capsys.readouterr().out.count("Time range:") == 3

    @pytest.mark.asyncio
    async def test_upstream_error_returns_one(self, capsys: pytest.CaptureFixture) -> None:
        pipeline = MagicMock()
        pipeline.compute = AsyncMock(side_effect=AuthenticationError(provider_name="spotify"))
        components = _components(pipeline)

        with patch("chromafm.main.build_components", return_value=components):
            code = await analyze._run("tok", TimeWindow.SHORT_TERM, 50, False, False, None)

        assert code == 1
        assert "Not logged in" in capsys.readouterr().err
        components["http_client"].aclose.assert_awaited_once()
