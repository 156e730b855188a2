"""Render orchestration: config in, heatmap image (and frames) out."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, BinaryIO

from trackheat.colorize import ColorMapper
from trackheat.config import RenderConfig
from trackheat.contracts import validate_render_report
from trackheat.encoders import (
    DirectoryFrameSink,
    FrameSink,
    StreamFrameSink,
    encoder_for_path,
    get_encoder,
    write_image,
)
from trackheat.errors import ConfigError
from trackheat.grid import DensityGrid
from trackheat.overlay import OverlayRenderer, PillowGlyphRasterizer
from trackheat.palettes import get_palette
from trackheat.perf import PerfTracker, resolve_metrics_path
from trackheat.reporting import build_render_report
from trackheat.timeline import TimelineDriver, TimelineOptions, TimelineResult
from trackheat.tracks import load_activities
from trackheat.viewport import Viewport

LOGGER = logging.getLogger(__name__)

REPORT_NAME = "render_report.json"


@dataclass
class RenderResult:
    """Outputs of a render run."""

    output: Path
    timeline: TimelineResult
    report: dict[str, Any]
    artifacts: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def _build_frame_sink(
    config: RenderConfig, viewport: Viewport, frame_stream: BinaryIO | None
) -> FrameSink | None:
    if config.frames_dir:
        encoder = get_encoder(config.frame_format or "png")
        return DirectoryFrameSink(Path(config.frames_dir), encoder, viewport=viewport)
    if config.frames_stdout:
        encoder = get_encoder(config.frame_format or "ppm")
        stream = frame_stream if frame_stream is not None else sys.stdout.buffer
        return StreamFrameSink(stream, encoder, viewport=viewport)
    return None


def _build_overlay(config: RenderConfig, viewport: Viewport) -> OverlayRenderer | None:
    if not (config.show_title or config.show_date):
        return None
    if config.font and not Path(config.font).exists():
        raise ConfigError(f"Font file not found: {config.font}")
    rasterizer = PillowGlyphRasterizer(config.font)
    rasterizer.load(OverlayRenderer.scale_for(viewport.height))
    return OverlayRenderer(rasterizer, color=config.overlay_color)


def run_render(
    config: RenderConfig, *, frame_stream: BinaryIO | None = None
) -> RenderResult:
    """Load tracks, accumulate them, and write the heatmap plus any frames."""
    config.validate()
    viewport = config.viewport()
    palette = get_palette(config.palette)
    if palette is None:
        raise ConfigError(f"Unknown palette: {config.palette}")
    gradient = palette.gradient(interpolation=config.interpolation)
    background = config.background or palette.background
    output = Path(config.output)
    try:
        output_encoder = encoder_for_path(output)
    except KeyError as exc:
        raise ConfigError(f"Unsupported output image type: {output.name}") from exc
    overlay = _build_overlay(config, viewport)

    ground_width, ground_height = viewport.ground_extent_m()
    LOGGER.info(
        "Viewport %dx%d px covering %.1f x %.1f km.",
        viewport.width,
        viewport.height,
        ground_width / 1000.0,
        ground_height / 1000.0,
    )

    perf = PerfTracker(enabled=config.profile)
    perf.start()
    with perf.span("load"):
        loaded = load_activities(Path(config.input_dir), jobs=config.jobs, pattern=config.pattern)
    warnings = [f"{skipped.path.name}: {skipped.reason}" for skipped in loaded.skipped]

    grid = DensityGrid(viewport.width, viewport.height, decay_policy=config.decay_policy)
    mapper = ColorMapper(gradient, background=background, jobs=config.jobs)
    frame_sink = _build_frame_sink(config, viewport, frame_stream)
    driver = TimelineDriver(
        viewport,
        grid,
        mapper,
        options=TimelineOptions(
            points_per_frame=config.points_per_frame if frame_sink is not None else None,
            decay=config.decay,
            show_title=config.show_title,
            show_date=config.show_date,
            overlay_final=config.overlay_final,
        ),
        frame_sink=frame_sink,
        overlay=overlay,
        perf=perf,
    )
    final_frame, timeline = driver.run(loaded.activities)
    timeline = replace(
        timeline, skipped_activities=timeline.skipped_activities + len(loaded.skipped)
    )
    if timeline.points_accumulated == 0:
        warnings.append("No track points fell inside the viewport.")
        LOGGER.warning("No track points fell inside the viewport.")

    with perf.span("write_output"):
        write_image(final_frame, output, encoder=output_encoder, viewport=viewport)
    perf.stop()
    LOGGER.info(
        "Wrote %s from %d activities (%d frames).",
        output,
        timeline.activities,
        timeline.frames_emitted,
    )

    artifacts: dict[str, Any] = {"image": str(output)}
    if config.frames_dir:
        artifacts["frames_dir"] = config.frames_dir
    perf_summary = perf.summary()
    report = build_render_report(
        config=config.as_dict(),
        viewport=viewport,
        timeline=timeline,
        artifacts=artifacts,
        warnings=warnings,
        perf=perf_summary,
    )
    validate_render_report(report)
    if config.report:
        report_path = output.with_name(REPORT_NAME)
        report_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
        artifacts["report"] = str(report_path)

    metrics_path = resolve_metrics_path(config.metrics_json)
    if metrics_path and perf_summary:
        metrics_path.parent.mkdir(parents=True, exist_ok=True)
        metrics_path.write_text(json.dumps(perf_summary, indent=2), encoding="utf-8")
        artifacts["metrics"] = str(metrics_path)

    return RenderResult(
        output=output,
        timeline=timeline,
        report=report,
        artifacts=artifacts,
        warnings=warnings,
    )
