"""Map density counters to RGB pixels through a log-scaled gradient."""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from trackheat.gradient import RGB, Gradient, parse_color
from trackheat.grid import GridSnapshot


def heat_values(counts: np.ndarray, max_value: int) -> np.ndarray:
    """Return ln(c) / ln(max_value) for each counter, 0.0 where c == 0.

    With ``max_value <= 1`` the log base degenerates, so every nonzero
    counter maps to 1.0.
    """
    counts = np.asarray(counts)
    heat = np.zeros(counts.shape, dtype=np.float64)
    nonzero = counts > 0
    if max_value <= 1:
        heat[nonzero] = 1.0
        return heat
    heat[nonzero] = np.log(counts[nonzero].astype(np.float64)) / math.log(max_value)
    return heat


class ColorMapper:
    """Colorize grid snapshots; empty pixels get the background color."""

    def __init__(
        self,
        gradient: Gradient,
        *,
        background: str | RGB = "black",
        jobs: int = 1,
    ) -> None:
        self.gradient = gradient
        self.background = parse_color(background) if isinstance(background, str) else background
        self.jobs = max(1, int(jobs))

    def _colorize_rows(self, counts: np.ndarray, max_value: int) -> np.ndarray:
        heat = heat_values(counts, max_value)
        rgb = self.gradient.sample(heat)
        rgb[counts == 0] = self.background
        return np.clip(np.rint(rgb), 0, 255).astype(np.uint8)

    def colorize(self, snapshot: GridSnapshot) -> np.ndarray:
        """Return a (height, width, 3) uint8 buffer for the snapshot."""
        counts = snapshot.counts
        height = counts.shape[0]
        if self.jobs == 1 or height < self.jobs * 2:
            return self._colorize_rows(counts, snapshot.max_value)
        out = np.empty(counts.shape + (3,), dtype=np.uint8)
        bounds = np.linspace(0, height, self.jobs + 1, dtype=int)
        with ThreadPoolExecutor(max_workers=self.jobs) as executor:
            futures = {
                executor.submit(
                    self._colorize_rows, counts[start:stop], snapshot.max_value
                ): (start, stop)
                for start, stop in zip(bounds[:-1], bounds[1:])
            }
            for future, (start, stop) in futures.items():
                out[start:stop] = future.result()
        return out
