"""Continuous color gradients over a normalized heat value."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

import numpy as np

from trackheat.errors import ConfigError

RGB = Tuple[float, float, float]
INTERPOLATIONS = ("rgb", "linear")

NAMED_COLORS: dict[str, str] = {
    "black": "#000000",
    "white": "#ffffff",
}


def parse_color(value: str | Sequence[float]) -> RGB:
    """Parse ``#rrggbb``, a named color, or an (r, g, b) 0-255 triple."""
    if isinstance(value, str):
        text = NAMED_COLORS.get(value.strip().lower(), value.strip())
        if text.startswith("#"):
            text = text[1:]
        if len(text) != 6:
            raise ConfigError(f"Invalid color: {value!r}")
        try:
            return (
                float(int(text[0:2], 16)),
                float(int(text[2:4], 16)),
                float(int(text[4:6], 16)),
            )
        except ValueError as exc:
            raise ConfigError(f"Invalid color: {value!r}") from exc
    channels = tuple(float(channel) for channel in value)
    if len(channels) != 3 or any(not 0.0 <= channel <= 255.0 for channel in channels):
        raise ConfigError(f"Invalid color: {value!r}")
    return (channels[0], channels[1], channels[2])


def _srgb_to_linear(values: np.ndarray) -> np.ndarray:
    scaled = values / 255.0
    return np.where(
        scaled <= 0.04045,
        scaled / 12.92,
        ((scaled + 0.055) / 1.055) ** 2.4,
    )


def _linear_to_srgb(values: np.ndarray) -> np.ndarray:
    encoded = np.where(
        values <= 0.0031308,
        values * 12.92,
        1.055 * np.power(np.clip(values, 0.0, None), 1.0 / 2.4) - 0.055,
    )
    return encoded * 255.0


@dataclass(frozen=True)
class Gradient:
    """Ordered color stops over [0, 1].

    ``positions`` must start at 0.0, end at 1.0 and never decrease.
    Colors are 0-255 floats; quantization to bytes happens in the
    color mapper, not here.
    """

    positions: tuple[float, ...]
    colors: tuple[RGB, ...]
    interpolation: str = "rgb"

    def __post_init__(self) -> None:
        if len(self.positions) != len(self.colors):
            raise ConfigError("Gradient positions and colors must have the same length.")
        if len(self.positions) < 2:
            raise ConfigError("Gradient needs at least two stops.")
        if self.positions[0] != 0.0 or self.positions[-1] != 1.0:
            raise ConfigError("Gradient stops must span exactly 0.0 to 1.0.")
        if any(b < a for a, b in zip(self.positions, self.positions[1:])):
            raise ConfigError("Gradient stop positions must be non-decreasing.")
        if self.interpolation not in INTERPOLATIONS:
            raise ConfigError(f"Unknown gradient interpolation: {self.interpolation}")

    @classmethod
    def from_stops(
        cls,
        stops: Iterable[tuple[float, str | Sequence[float]]],
        *,
        interpolation: str = "rgb",
    ) -> "Gradient":
        """Build a gradient from (position, color) pairs."""
        positions: list[float] = []
        colors: list[RGB] = []
        for position, color in stops:
            positions.append(float(position))
            colors.append(parse_color(color))
        return cls(tuple(positions), tuple(colors), interpolation)

    @classmethod
    def evenly_spaced(
        cls, colors: Sequence[str | Sequence[float]], *, interpolation: str = "rgb"
    ) -> "Gradient":
        """Build a gradient whose stops are spread evenly over [0, 1]."""
        if len(colors) < 2:
            raise ConfigError("Gradient needs at least two stops.")
        step = 1.0 / (len(colors) - 1)
        positions = [index * step for index in range(len(colors))]
        positions[-1] = 1.0
        return cls.from_stops(zip(positions, colors), interpolation=interpolation)

    def sample(self, values: np.ndarray) -> np.ndarray:
        """Map an array of heat values to float RGB, shape ``values.shape + (3,)``."""
        values = np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0)
        positions = np.asarray(self.positions, dtype=np.float64)
        table = np.asarray(self.colors, dtype=np.float64)
        if self.interpolation == "linear":
            table = _srgb_to_linear(table)
        out = np.empty(values.shape + (3,), dtype=np.float64)
        for channel in range(3):
            out[..., channel] = np.interp(values, positions, table[:, channel])
        if self.interpolation == "linear":
            out = _linear_to_srgb(out)
        return out

    def stop(self, t: float) -> RGB:
        """Return the color at heat value ``t`` (clamped to [0, 1])."""
        red, green, blue = self.sample(np.asarray([t]))[0]
        return (float(red), float(green), float(blue))

    def as_dict(self) -> dict[str, object]:
        return {
            "interpolation": self.interpolation,
            "stops": [
                {"position": position, "color": "#%02x%02x%02x" % tuple(round(c) for c in color)}
                for position, color in zip(self.positions, self.colors)
            ],
        }
