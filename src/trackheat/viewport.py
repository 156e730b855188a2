"""Viewport geometry and the equirectangular projector."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from pyproj import Geod
from rasterio.transform import Affine, from_bounds

from trackheat.errors import ViewportError

Bounds = Tuple[float, float, float, float]
PixelCoordinate = Tuple[int, int]

WGS84 = Geod(ellps="WGS84")


@dataclass(frozen=True)
class Viewport:
    """Geographic rectangle mapped onto a width x height raster.

    Corners are in degrees; ``top``/``bottom`` are latitudes and
    ``left``/``right`` are longitudes.
    """

    top: float
    left: float
    bottom: float
    right: float
    width: int
    height: int

    def __post_init__(self) -> None:
        corners = (self.top, self.left, self.bottom, self.right)
        if not all(math.isfinite(value) for value in corners):
            raise ViewportError(f"Viewport corners must be finite: {corners}")
        if self.right <= self.left:
            raise ViewportError(
                f"Right longitude {self.right} must be greater than left longitude {self.left}."
            )
        if self.top <= self.bottom:
            raise ViewportError(
                f"Top latitude {self.top} must be greater than bottom latitude {self.bottom}."
            )
        if self.width <= 0 or self.height <= 0:
            raise ViewportError(
                f"Viewport raster must be at least 1x1 pixels, got {self.width}x{self.height}."
            )

    @classmethod
    def from_corners(
        cls,
        top: float,
        left: float,
        bottom: float,
        right: float,
        width: int,
        height: int | None = None,
    ) -> "Viewport":
        """Build a viewport, deriving height from the geographic aspect ratio."""
        if height is None:
            if not all(math.isfinite(value) for value in (top, left, bottom, right)):
                raise ViewportError(
                    f"Viewport corners must be finite: {(top, left, bottom, right)}"
                )
            lng_span = right - left
            if lng_span <= 0:
                raise ViewportError(
                    f"Right longitude {right} must be greater than left longitude {left}."
                )
            height = int(width * (top - bottom) / lng_span)
        return cls(
            top=float(top),
            left=float(left),
            bottom=float(bottom),
            right=float(right),
            width=int(width),
            height=int(height),
        )

    @property
    def bounds(self) -> Bounds:
        """Return (west, south, east, north)."""
        return (self.left, self.bottom, self.right, self.top)

    @property
    def shape(self) -> tuple[int, int]:
        return (self.height, self.width)

    def transform(self) -> Affine:
        """Return the affine geotransform for the raster."""
        return from_bounds(*self.bounds, width=self.width, height=self.height)

    def ground_extent_m(self) -> tuple[float, float]:
        """Return the geodesic (width, height) of the viewport in meters.

        Width is measured along the middle latitude.
        """
        mid_lat = (self.top + self.bottom) / 2.0
        _, _, width_m = WGS84.inv(self.left, mid_lat, self.right, mid_lat)
        _, _, height_m = WGS84.inv(self.left, self.bottom, self.left, self.top)
        return (abs(width_m), abs(height_m))

    def project(self, lat: float, lng: float) -> PixelCoordinate | None:
        """Project a coordinate to a pixel, or None when it falls off-screen."""
        x_fraction = (self.left - lng) / (self.left - self.right)
        y_fraction = (self.top - lat) / (self.top - self.bottom)
        # NaN, inf and far-off values fail the range check before floor().
        if not (0.0 <= x_fraction < 1.0 and 0.0 <= y_fraction < 1.0):
            return None
        x = math.floor(x_fraction * self.width)
        y = math.floor(y_fraction * self.height)
        if x >= self.width or y >= self.height:
            return None
        return (x, y)

    def project_many(self, points: np.ndarray) -> np.ndarray:
        """Project an (n, 2) array of (lat, lng) rows.

        Returns an (m, 2) int64 array of (x, y) for the on-screen points,
        in input order.
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        x_fraction = (self.left - points[:, 1]) / (self.left - self.right)
        y_fraction = (self.top - points[:, 0]) / (self.top - self.bottom)
        # NaN coordinates fail every comparison and are dropped here.
        keep = (
            (x_fraction >= 0.0)
            & (x_fraction < 1.0)
            & (y_fraction >= 0.0)
            & (y_fraction < 1.0)
        )
        xs = np.floor(x_fraction[keep] * self.width)
        ys = np.floor(y_fraction[keep] * self.height)
        on_screen = (xs < self.width) & (ys < self.height)
        pixels = np.empty((int(on_screen.sum()), 2), dtype=np.int64)
        pixels[:, 0] = xs[on_screen]
        pixels[:, 1] = ys[on_screen]
        return pixels

    def as_dict(self) -> dict[str, float | int]:
        return {
            "top": self.top,
            "left": self.left,
            "bottom": self.bottom,
            "right": self.right,
            "width": self.width,
            "height": self.height,
        }
