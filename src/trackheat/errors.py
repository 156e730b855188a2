"""Exception types raised by the heatmap engine."""

from __future__ import annotations


class TrackheatError(Exception):
    """Base class for trackheat errors."""


class ConfigError(TrackheatError, ValueError):
    """Render configuration is invalid; raised before any processing starts."""


class ViewportError(ConfigError):
    """Viewport corners or pixel size describe a degenerate raster."""


class TrackError(TrackheatError):
    """A track file could not be turned into an activity."""

    def __init__(self, message: str, *, path: object | None = None) -> None:
        super().__init__(message)
        self.path = path


class GridIndexError(TrackheatError, IndexError):
    """A pixel outside the density grid was passed to the accumulator."""
