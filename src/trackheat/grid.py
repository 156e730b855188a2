"""Per-pixel visit counters for the heatmap."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

import numpy as np

from trackheat.errors import ConfigError, GridIndexError

LOGGER = logging.getLogger(__name__)

COUNTER_DTYPE = np.uint32
DECAY_POLICIES = ("fixed", "keep", "rescan")


@dataclass(frozen=True)
class GridSnapshot:
    """Read-only copy of the counters and the normalizer at copy time."""

    counts: np.ndarray
    max_value: int

    @property
    def shape(self) -> tuple[int, int]:
        return self.counts.shape


class DensityGrid:
    """Row-major (height, width) counter array with a running maximum.

    ``max_value`` never drops below any counter still in the grid. Without
    decay it is the largest counter ever seen; with decay it follows the
    configured renormalization policy:

    * ``fixed``: lowered by the decay amount (floored at zero)
    * ``keep``: left untouched
    * ``rescan``: recomputed from the decayed counters
    """

    def __init__(self, width: int, height: int, *, decay_policy: str = "fixed") -> None:
        if width <= 0 or height <= 0:
            raise ConfigError(f"Grid must be at least 1x1, got {width}x{height}.")
        if decay_policy not in DECAY_POLICIES:
            raise ConfigError(f"Unknown decay policy: {decay_policy}")
        self.width = width
        self.height = height
        self.decay_policy = decay_policy
        self._counts = np.zeros((height, width), dtype=COUNTER_DTYPE)
        self._max_value = 0

    @property
    def max_value(self) -> int:
        return self._max_value

    def __getitem__(self, pixel: tuple[int, int]) -> int:
        x, y = self._checked(pixel)
        return int(self._counts[y, x])

    def _checked(self, pixel: tuple[int, int]) -> tuple[int, int]:
        x, y = int(pixel[0]), int(pixel[1])
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise GridIndexError(
                f"Pixel ({x}, {y}) outside {self.width}x{self.height} grid."
            )
        return x, y

    def increment(self, pixel: tuple[int, int]) -> int:
        """Add one visit at (x, y) and return the new counter value."""
        x, y = self._checked(pixel)
        self._counts[y, x] += 1
        value = int(self._counts[y, x])
        if value > self._max_value:
            self._max_value = value
        return value

    def increment_many(self, pixels: np.ndarray | Iterable[tuple[int, int]]) -> None:
        """Apply a batch of increments; repeated pixels count every time."""
        pixels = np.asarray(pixels, dtype=np.int64).reshape(-1, 2)
        if not len(pixels):
            return
        xs = pixels[:, 0]
        ys = pixels[:, 1]
        if (
            xs.min() < 0
            or ys.min() < 0
            or xs.max() >= self.width
            or ys.max() >= self.height
        ):
            raise GridIndexError(
                f"Batch contains pixels outside {self.width}x{self.height} grid."
            )
        np.add.at(self._counts, (ys, xs), 1)
        batch_max = int(self._counts[ys, xs].max())
        if batch_max > self._max_value:
            self._max_value = batch_max

    def decay(self, amount: int) -> None:
        """Subtract ``amount`` from every counter, floored at zero."""
        if amount <= 0:
            return
        step = min(int(amount), int(np.iinfo(COUNTER_DTYPE).max))
        # Saturating subtract; uint32 would wrap below zero.
        floor_mask = self._counts <= step
        self._counts -= np.where(floor_mask, self._counts, step).astype(COUNTER_DTYPE)
        if self.decay_policy == "fixed":
            self._max_value = max(self._max_value - step, 0)
        elif self.decay_policy == "rescan":
            self._max_value = int(self._counts.max())
        LOGGER.debug(
            "Decayed grid by %s (policy=%s, max_value=%s).",
            step,
            self.decay_policy,
            self._max_value,
        )

    def snapshot(self) -> GridSnapshot:
        """Return a consistent read-only copy for colorization."""
        counts = self._counts.copy()
        counts.setflags(write=False)
        return GridSnapshot(counts=counts, max_value=self._max_value)

    def nonzero_count(self) -> int:
        return int(np.count_nonzero(self._counts))
