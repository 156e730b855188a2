"""Text overlays (activity title and date) composited onto frames."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterator, Protocol, Sequence

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from trackheat.errors import ConfigError
from trackheat.gradient import RGB, parse_color

LOGGER = logging.getLogger(__name__)

SCALE_DIVISOR = 15
LINE_SPACING = 1.25


@dataclass(frozen=True)
class GlyphCoverage:
    """One rasterized glyph: top-left corner plus per-pixel coverage in [0, 1]."""

    left: int
    top: int
    coverage: np.ndarray


class GlyphRasterizer(Protocol):
    """Protocol for glyph rasterizers used by the overlay renderer."""

    def rasterize(
        self, text: str, scale: int, offset: tuple[int, int]
    ) -> Iterator[GlyphCoverage]:
        """Yield glyph coverage maps for ``text`` with its line box at ``offset``."""
        raise NotImplementedError


@lru_cache(maxsize=16)
def _load_font(font_path: str | None, size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    LOGGER.debug("Loading font %s at size %d.", font_path or "<default>", size)
    if font_path:
        try:
            return ImageFont.truetype(font_path, size)
        except OSError as exc:
            raise ConfigError(f"Unable to load font {font_path}: {exc}") from exc
    return ImageFont.load_default(size=size)


class PillowGlyphRasterizer:
    """Rasterize glyphs one character at a time with Pillow.

    Uses a TrueType font when ``font_path`` is given, otherwise Pillow's
    bundled default font.
    """

    def __init__(self, font_path: Path | str | None = None) -> None:
        self.font_path = str(font_path) if font_path else None

    def load(self, scale: int) -> None:
        """Load the font for ``scale`` now; raises ConfigError if it is unusable."""
        _load_font(self.font_path, scale)

    def rasterize(
        self, text: str, scale: int, offset: tuple[int, int]
    ) -> Iterator[GlyphCoverage]:
        font = _load_font(self.font_path, scale)
        pen_x = 0.0
        origin_x, origin_y = offset
        for char in text:
            left, top, right, bottom = font.getbbox(char)
            if right > left and bottom > top:
                mask = Image.new("L", (right - left, bottom - top), 0)
                ImageDraw.Draw(mask).text((-left, -top), char, fill=255, font=font)
                coverage = np.asarray(mask, dtype=np.float64) / 255.0
                yield GlyphCoverage(
                    left=origin_x + int(round(pen_x)) + left,
                    top=origin_y + top,
                    coverage=coverage,
                )
            pen_x += font.getlength(char)


class OverlayRenderer:
    """Blend lines of text into the bottom-left corner of a frame."""

    def __init__(
        self,
        rasterizer: GlyphRasterizer,
        *,
        color: str | RGB = "white",
    ) -> None:
        self.rasterizer = rasterizer
        self.color = np.asarray(
            parse_color(color) if isinstance(color, str) else color, dtype=np.float64
        )

    @staticmethod
    def scale_for(height: int) -> int:
        return max(1, height // SCALE_DIVISOR)

    def overlay(self, pixels: np.ndarray, lines: Sequence[str]) -> np.ndarray:
        """Return a copy of ``pixels`` with ``lines`` drawn bottom-up.

        The last line sits on the bottom margin; each earlier line is one
        line height above the one after it.
        """
        lines = [line for line in lines if line]
        if not lines:
            return pixels
        height = pixels.shape[0]
        scale = self.scale_for(height)
        line_height = max(1, int(round(scale * LINE_SPACING)))
        margin = max(1, scale // 2)
        canvas = pixels.astype(np.float64)
        for index, line in enumerate(reversed(lines)):
            top = height - margin - (index + 1) * line_height
            for glyph in self.rasterizer.rasterize(line, scale, (margin, top)):
                self._blend(canvas, glyph)
        return np.clip(np.rint(canvas), 0, 255).astype(np.uint8)

    def _blend(self, canvas: np.ndarray, glyph: GlyphCoverage) -> None:
        height, width = canvas.shape[:2]
        glyph_h, glyph_w = glyph.coverage.shape
        x0 = max(glyph.left, 0)
        y0 = max(glyph.top, 0)
        x1 = min(glyph.left + glyph_w, width)
        y1 = min(glyph.top + glyph_h, height)
        if x0 >= x1 or y0 >= y1:
            return
        coverage = np.clip(
            glyph.coverage[y0 - glyph.top : y1 - glyph.top, x0 - glyph.left : x1 - glyph.left],
            0.0,
            1.0,
        )[..., np.newaxis]
        region = canvas[y0:y1, x0:x1]
        canvas[y0:y1, x0:x1] = region * (1.0 - coverage) + self.color * coverage
