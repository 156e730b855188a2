"""Drive activities through the grid and emit frames on a point cadence."""

from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Iterable

from trackheat.colorize import ColorMapper
from trackheat.encoders import Frame, FrameSink
from trackheat.grid import DensityGrid
from trackheat.logging_utils import activity_context
from trackheat.overlay import OverlayRenderer
from trackheat.perf import PerfTracker
from trackheat.tracks import Activity, sort_activities
from trackheat.viewport import Viewport

LOGGER = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class TimelineOptions:
    """Cadence, decay, and overlay switches for one run."""

    points_per_frame: int | None = None
    decay: int | None = None
    show_title: bool = True
    show_date: bool = True
    overlay_final: bool = False


@dataclass(frozen=True)
class TimelineResult:
    """Counts describing a finished run."""

    activities: int
    skipped_activities: int
    points_accumulated: int
    points_dropped: int
    frames_emitted: int
    max_value: int

    def as_dict(self) -> dict[str, int]:
        return {
            "activities": self.activities,
            "skipped_activities": self.skipped_activities,
            "points_accumulated": self.points_accumulated,
            "points_dropped": self.points_dropped,
            "frames_emitted": self.frames_emitted,
            "max_value": self.max_value,
        }


class TimelineDriver:
    """Accumulate activities in timestamp order.

    Every ``points_per_frame`` on-screen points a frame is colorized,
    overlaid with the current activity's title and date, and pushed to
    ``frame_sink``. The point counter carries over between activities.
    Decay runs once after each activity. ``run`` always finishes with a
    cumulative frame, which is returned rather than sent to the sink.
    A driver handles a single run.
    """

    def __init__(
        self,
        viewport: Viewport,
        grid: DensityGrid,
        mapper: ColorMapper,
        *,
        options: TimelineOptions | None = None,
        frame_sink: FrameSink | None = None,
        overlay: OverlayRenderer | None = None,
        perf: PerfTracker | None = None,
    ) -> None:
        if (grid.width, grid.height) != (viewport.width, viewport.height):
            raise ValueError("Grid size must match the viewport raster size.")
        self.viewport = viewport
        self.grid: DensityGrid | None = grid
        self.mapper = mapper
        self.options = options or TimelineOptions()
        self.frame_sink = frame_sink
        self.overlay = overlay
        self.perf = perf
        self._since_frame = 0
        self._frames_emitted = 0
        self._activities = 0
        self._skipped = 0
        self._accumulated = 0
        self._dropped = 0

    def _span(self, name: str):
        return self.perf.span(name) if self.perf is not None else nullcontext()

    def _count(self, name: str, amount: int = 1) -> None:
        if self.perf is not None:
            self.perf.count(name, amount)

    def _require_grid(self) -> DensityGrid:
        if self.grid is None:
            raise RuntimeError("Timeline already finalized; create a new driver per run.")
        return self.grid

    def _overlay_lines(self, activity: Activity | None) -> list[str]:
        if activity is None:
            return []
        lines = []
        if self.options.show_title:
            lines.append(activity.name)
        if self.options.show_date:
            lines.append(activity.timestamp.strftime(DATE_FORMAT))
        return lines

    def render_frame(self, activity: Activity | None = None) -> Frame:
        """Colorize the current grid and overlay text for ``activity``."""
        grid = self._require_grid()
        with self._span("colorize"):
            pixels = self.mapper.colorize(grid.snapshot())
        lines = self._overlay_lines(activity)
        if self.overlay is not None and lines:
            with self._span("overlay"):
                pixels = self.overlay.overlay(pixels, lines)
        return Frame(pixels=pixels, index=self._frames_emitted + 1)

    def _emit(self, activity: Activity) -> None:
        self._since_frame = 0
        if self.frame_sink is None:
            return
        frame = self.render_frame(activity)
        with self._span("encode"):
            self.frame_sink.emit(frame)
        self._frames_emitted += 1
        self._count("frames")

    def process_activity(self, activity: Activity) -> int:
        """Accumulate one activity and return its on-screen point count."""
        grid = self._require_grid()
        with activity_context(activity.name):
            return self._accumulate(grid, activity)

    def _accumulate(self, grid: DensityGrid, activity: Activity) -> int:
        if activity.point_count == 0:
            LOGGER.warning("Skipping activity with no points.")
            self._skipped += 1
            return 0
        LOGGER.info("Processing %d points.", activity.point_count)
        with self._span("project"):
            pixels = self.viewport.project_many(activity.points)
        on_screen = len(pixels)
        self._dropped += activity.point_count - on_screen

        cadence = self.options.points_per_frame or 0
        with self._span("accumulate"):
            if cadence <= 0:
                grid.increment_many(pixels)
            else:
                start = 0
                while start < on_screen:
                    stop = min(on_screen, start + cadence - self._since_frame)
                    grid.increment_many(pixels[start:stop])
                    self._since_frame += stop - start
                    start = stop
                    if self._since_frame >= cadence:
                        self._emit(activity)

        if self.options.decay:
            with self._span("decay"):
                grid.decay(self.options.decay)

        self._activities += 1
        self._accumulated += on_screen
        self._count("points", on_screen)
        LOGGER.debug("Accumulated %d of %d points.", on_screen, activity.point_count)
        return on_screen

    def finalize(self, last: Activity | None = None) -> tuple[Frame, TimelineResult]:
        """Render the cumulative frame and release the grid."""
        grid = self._require_grid()
        frame = self.render_frame(last if self.options.overlay_final else None)
        result = TimelineResult(
            activities=self._activities,
            skipped_activities=self._skipped,
            points_accumulated=self._accumulated,
            points_dropped=self._dropped,
            frames_emitted=self._frames_emitted,
            max_value=grid.max_value,
        )
        self.grid = None
        return frame, result

    def run(self, activities: Iterable[Activity]) -> tuple[Frame, TimelineResult]:
        """Process every activity in timestamp order, then finalize."""
        last: Activity | None = None
        for activity in sort_activities(activities):
            self.process_activity(activity)
            last = activity
        return self.finalize(last)
