"""Command-line interface for trackheat."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from trackheat import __version__
from trackheat.config import load_config_file, merge_config
from trackheat.encoders import encoder_names
from trackheat.errors import ConfigError
from trackheat.gradient import INTERPOLATIONS
from trackheat.grid import DECAY_POLICIES
from trackheat.logging_utils import LogOptions, configure_logging
from trackheat.palettes import format_palette, list_palettes, serialize_palettes
from trackheat.render import run_render

LOGGER = logging.getLogger("trackheat.cli")

# argparse dest -> RenderConfig field, for options whose names differ.
_RENAMED_OPTIONS = {
    "top_lat": "top",
    "left_lng": "left",
    "bottom_lat": "bottom",
    "right_lng": "right",
    "input": "input_dir",
    "title": "show_title",
    "date": "show_date",
}
_NON_CONFIG_OPTIONS = {"command", "config", "verbose", "quiet", "log_json", "log_file", "no_report"}


def _overrides_from_args(args: argparse.Namespace) -> dict[str, Any]:
    """Normalize CLI args into RenderConfig overrides; unset options stay None."""
    overrides: dict[str, Any] = {}
    for key, value in vars(args).items():
        if key in _NON_CONFIG_OPTIONS:
            continue
        overrides[_RENAMED_OPTIONS.get(key, key)] = value
    if args.no_report:
        overrides["report"] = False
    return overrides


def _add_render_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the render subcommand and its arguments."""
    render = subparsers.add_parser("render", help="Render a heatmap from a directory of GPX files.")
    render.add_argument("--config", help="JSON render config; CLI options override it.")
    render.add_argument("--top-lat", type=float, default=None, help="Top latitude of the viewport.")
    render.add_argument("--left-lng", type=float, default=None, help="Left longitude of the viewport.")
    render.add_argument(
        "--bottom-lat", type=float, default=None, help="Bottom latitude of the viewport."
    )
    render.add_argument(
        "--right-lng", type=float, default=None, help="Right longitude of the viewport."
    )
    render.add_argument("--width", type=int, default=None, help="Output width in pixels.")
    render.add_argument(
        "--height",
        type=int,
        default=None,
        help="Force output height in pixels (default: derived from the viewport aspect).",
    )
    render.add_argument("--input", default=None, help="Directory containing track files.")
    render.add_argument("--pattern", default=None, help="Glob for track files (default: *.gpx).")
    render.add_argument(
        "--output",
        default=None,
        help="Cumulative heatmap image path (.png, .tif, .ppm; default: heatmap.png).",
    )
    render.add_argument("--frames-dir", default=None, help="Write video frames into this directory.")
    render.add_argument(
        "--frames-stdout",
        action="store_true",
        default=None,
        help="Stream video frames to stdout (e.g. pipe into ffmpeg).",
    )
    render.add_argument(
        "--frame-format",
        choices=encoder_names(),
        default=None,
        help="Frame encoding (default: png for --frames-dir, ppm for --frames-stdout).",
    )
    render.add_argument(
        "--points-per-frame",
        type=int,
        default=None,
        help="Emit a frame every N accumulated on-screen points.",
    )
    render.add_argument(
        "--decay",
        type=int,
        default=None,
        help="Subtract N from every pixel after each activity.",
    )
    render.add_argument(
        "--decay-policy",
        choices=DECAY_POLICIES,
        default=None,
        help="How the normalizer follows decay (default: fixed).",
    )
    render.add_argument(
        "--title",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Overlay the activity title on frames.",
    )
    render.add_argument(
        "--date",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Overlay the activity date on frames.",
    )
    render.add_argument(
        "--overlay-final",
        action="store_true",
        default=None,
        help="Also overlay the last activity's text on the final image.",
    )
    render.add_argument("--overlay-color", default=None, help="Overlay text color (#rrggbb).")
    render.add_argument(
        "--background",
        default=None,
        help="Background color for empty pixels (black, white, #rrggbb).",
    )
    render.add_argument("--palette", default=None, help="Gradient palette name.")
    render.add_argument(
        "--interpolation",
        choices=INTERPOLATIONS,
        default=None,
        help="Gradient interpolation space (default: rgb).",
    )
    render.add_argument("--font", default=None, help="TrueType font for overlays.")
    render.add_argument(
        "--jobs",
        type=int,
        default=None,
        help="Worker threads for parsing and colorizing (default: 1).",
    )
    render.add_argument(
        "--profile",
        action="store_true",
        default=None,
        help="Capture timing metrics in the render report.",
    )
    render.add_argument("--metrics-json", default=None, help="Path to write timing metrics JSON.")
    render.add_argument(
        "--no-report",
        action="store_true",
        help="Skip writing render_report.json next to the output.",
    )


def _add_palettes_parser(subparsers: argparse._SubParsersAction) -> None:
    palettes = subparsers.add_parser("palettes", help="List available gradient palettes.")
    palettes.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Output format.",
    )


def _add_version_parser(subparsers: argparse._SubParsersAction) -> None:
    subparsers.add_parser("version", help="Print the trackheat version.")


def _run_render(args: argparse.Namespace) -> int:
    try:
        file_values = load_config_file(Path(args.config)) if args.config else None
        config = merge_config(file_values, _overrides_from_args(args))
        result = run_render(config)
    except ConfigError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2
    except FileNotFoundError as exc:
        LOGGER.error("%s", exc)
        return 2
    for warning in result.warnings:
        LOGGER.warning("Render warning: %s", warning)
    LOGGER.info(
        "Rendered %d activities (%d skipped) into %s.",
        result.timeline.activities,
        result.timeline.skipped_activities,
        result.output,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the CLI entrypoint and return an exit code."""
    parser = argparse.ArgumentParser(
        prog="trackheat",
        description="Trackheat GPS track heatmap renderer",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (repeatable).",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce log output to warnings and errors.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON on stderr.",
    )
    parser.add_argument(
        "--log-file",
        help="Optional path for JSON log output.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_render_parser(subparsers)
    _add_palettes_parser(subparsers)
    _add_version_parser(subparsers)

    args = parser.parse_args(argv)
    log_file_value = getattr(args, "log_file", None)
    configure_logging(
        LogOptions(
            verbose=getattr(args, "verbose", 0) or 0,
            quiet=bool(getattr(args, "quiet", False)),
            log_file=Path(log_file_value) if log_file_value else None,
            json_console=bool(getattr(args, "log_json", False)),
        )
    )

    if args.command == "version":
        print(__version__)
        return 0
    if args.command == "palettes":
        palettes = list_palettes()
        if args.format == "json":
            print(json.dumps(serialize_palettes({p.name: p for p in palettes}), indent=2))
        else:
            for palette in palettes:
                print(format_palette(palette))
        return 0
    if args.command == "render":
        return _run_render(args)
    parser.error(f"Unknown command: {args.command}")
    return 2
