"""Standalone CLI for computing a listener's color buckets.

Usage::

    python -m chromafm.cli.analyze --token <access-token>
    python -m chromafm.cli.analyze --token <t> --time-range long_term --json
    python -m chromafm.cli.analyze --bundle --output buckets.json

The token may also come from the ``CHROMAFM_ACCESS_TOKEN`` environment
variable.  Runs the same orchestrator as the API server and prints a
formatted table or JSON to stdout; progress messages go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
import time
from pathlib import Path

from chromafm.models.catalog import Listener
from chromafm.models.enums import ColorBucket, TimeWindow
from chromafm.models.result import ColorBundle, ColorResult
from chromafm.utils.errors import ChromaFMError

_TOKEN_ENV = "CHROMAFM_ACCESS_TOKEN"


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_result(result: ColorResult) -> str:
    """Render one result as an aligned, human-readable table."""
    lines = [
        f"Time range: {result.meta.time_range.value}   analyzed: {result.analyzed}",
        "",
    ]
    for color in ColorBucket:
        top = result.buckets[color].top
        if top is None:
            lines.append(f"  {color.value:<7} (empty)")
            continue
        source = result.meta.filled_by.get(color, top.source).value
        lines.append(
            f"  {color.value:<7} {top.hex}  {top.name} - {top.artist}"
            f"  [{source}, conf {top.confidence:.2f}]"
        )
    if result.meta.backfilled_colors:
        backfilled = ", ".join(c.value for c in result.meta.backfilled_colors)
        lines.extend(["", f"  backfilled: {backfilled}"])
    return "\n".join(lines)


def format_text_output(payload: ColorResult | ColorBundle) -> str:
    if isinstance(payload, ColorBundle):
        sections = [
            _format_result(payload.short_term),
            _format_result(payload.medium_term),
            _format_result(payload.long_term),
        ]
        return "\n\n".join(sections)
    return _format_result(payload)


def format_json_output(payload: ColorResult | ColorBundle) -> str:
    return json.dumps(payload.model_dump(mode="json"), indent=2)


def _suppress_logs() -> None:
    """Send all log output to stderr at WARNING+ so stdout stays clean.

    Must run before ``chromafm.main`` is imported: that module configures
    logging at import time and structlog caches loggers on first use.
    """
    os.environ["LOG_LEVEL"] = "WARNING"
    os.environ["LOG_STREAM"] = "stderr"

    from chromafm.utils.logging import configure_logging

    configure_logging(log_level="WARNING", json_output=False, stream=sys.stderr)


async def _run(
    token: str,
    window: TimeWindow,
    limit: int,
    bundle: bool,
    json_output: bool,
    output_file: str | None,
) -> int:
    """Compute buckets and write them out.  Returns the process exit code."""
    # Deferred: chromafm.main bootstraps settings, logging and the app.
    from chromafm.main import build_components, settings

    components = build_components(settings)
    pipeline = components["pipeline"]
    listener = Listener(access_token=token)

    what = "bundle" if bundle else window.value
    print(f"Computing color buckets ({what}, limit {limit})...", file=sys.stderr)
    start = time.monotonic()
    try:
        if bundle:
            payload: ColorResult | ColorBundle = await pipeline.compute_bundle(listener, limit)
        else:
            payload = await pipeline.compute(listener, window, limit)
    except ChromaFMError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await components["http_client"].aclose()

    print(f"Done in {time.monotonic() - start:.1f}s", file=sys.stderr)

    text = format_json_output(payload) if json_output else format_text_output(payload)
    if output_file:
        Path(output_file).write_text(text, encoding="utf-8")
        print(f"Results written to: {output_file}", file=sys.stderr)
    else:
        print(text)
    return 0


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m chromafm.cli.analyze",
        description="Rank a listener's albums into ten cover-color buckets.",
    )
    parser.add_argument(
        "--token",
        type=str,
        default=None,
        help=f"Catalog access token (default: ${_TOKEN_ENV}).",
    )
    parser.add_argument(
        "--time-range",
        choices=[w.value for w in TimeWindow],
        default=TimeWindow.SHORT_TERM.value,
        help="Listening window to analyze (default: short_term).",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Top tracks to consider, 1-50 (default: 50).",
    )
    parser.add_argument(
        "--bundle",
        action="store_true",
        help="Compute all three windows instead of one.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output results as JSON instead of formatted text.",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Write results to a file instead of stdout.",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress log output (implied by --json).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.  Returns 0 on success, 1 on usage or upstream errors."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    token = args.token or os.environ.get(_TOKEN_ENV, "")
    if not token:
        print(f"Error: no access token (use --token or set {_TOKEN_ENV})", file=sys.stderr)
        return 1
    if not 1 <= args.limit <= 50:
        print("Error: --limit must be between 1 and 50", file=sys.stderr)
        return 1

    # JSON mode implies quiet: log lines never mix into JSON output.
    if args.quiet or args.json_output:
        _suppress_logs()

    return asyncio.run(
        _run(
            token=token,
            window=TimeWindow(args.time_range),
            limit=args.limit,
            bundle=args.bundle,
            json_output=args.json_output,
            output_file=args.output,
        )
    )


if __name__ == "__main__":
    sys.exit(main())
