"""Frame encoders and the sinks that receive intermediate frames."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Protocol

import numpy as np
from rasterio.io import MemoryFile

from trackheat.viewport import Viewport

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    """Immutable (height, width, 3) uint8 RGB image."""

    pixels: np.ndarray
    index: int = 0

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 3:
            raise ValueError(f"Frame pixels must be (height, width, 3), got {self.pixels.shape}.")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Frame pixels must be uint8, got {self.pixels.dtype}.")
        if self.pixels.flags.writeable:
            pixels = self.pixels.copy()
            pixels.setflags(write=False)
            object.__setattr__(self, "pixels", pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


class Encoder(Protocol):
    """Protocol for frame encoders."""

    name: str
    suffix: str

    def encode(self, frame: Frame, viewport: Viewport | None = None) -> bytes:
        """Return the encoded bytes for a frame."""
        raise NotImplementedError


class RawRgbEncoder:
    """Headerless row-major RGB triplets (ffmpeg ``-f rawvideo -pix_fmt rgb24``)."""

    name = "rgb"
    suffix = ".rgb"

    def encode(self, frame: Frame, viewport: Viewport | None = None) -> bytes:
        return np.ascontiguousarray(frame.pixels).tobytes()


class PpmEncoder:
    """Binary PPM (P6): a short header followed by RGB triplets."""

    name = "ppm"
    suffix = ".ppm"

    def encode(self, frame: Frame, viewport: Viewport | None = None) -> bytes:
        header = f"P6\n{frame.width} {frame.height}\n255\n".encode("ascii")
        return header + np.ascontiguousarray(frame.pixels).tobytes()


def _bands(frame: Frame) -> np.ndarray:
    return np.ascontiguousarray(np.moveaxis(frame.pixels, 2, 0))


class PngEncoder:
    """Compressed PNG written through rasterio's PNG driver."""

    name = "png"
    suffix = ".png"

    def encode(self, frame: Frame, viewport: Viewport | None = None) -> bytes:
        with MemoryFile() as memfile:
            with memfile.open(
                driver="PNG",
                width=frame.width,
                height=frame.height,
                count=3,
                dtype="uint8",
            ) as dataset:
                dataset.write(_bands(frame))
            return memfile.read()


class GeoTiffEncoder:
    """Deflate-compressed GeoTIFF georeferenced to the viewport (EPSG:4326)."""

    name = "gtiff"
    suffix = ".tif"

    def encode(self, frame: Frame, viewport: Viewport | None = None) -> bytes:
        profile: dict[str, object] = {
            "driver": "GTiff",
            "width": frame.width,
            "height": frame.height,
            "count": 3,
            "dtype": "uint8",
            "compress": "deflate",
            "photometric": "RGB",
        }
        if viewport is not None:
            profile.update({"crs": "EPSG:4326", "transform": viewport.transform()})
        with MemoryFile() as memfile:
            with memfile.open(**profile) as dataset:
                dataset.write(_bands(frame))
            return memfile.read()


EncoderFactory = Callable[[], Encoder]

_ENCODERS: dict[str, EncoderFactory] = {
    "rgb": RawRgbEncoder,
    "ppm": PpmEncoder,
    "png": PngEncoder,
    "gtiff": GeoTiffEncoder,
}

_SUFFIXES: dict[str, str] = {
    ".rgb": "rgb",
    ".raw": "rgb",
    ".ppm": "ppm",
    ".png": "png",
    ".tif": "gtiff",
    ".tiff": "gtiff",
}


def encoder_names() -> tuple[str, ...]:
    return tuple(sorted(_ENCODERS))


def get_encoder(name: str) -> Encoder:
    """Return an encoder instance for the given name."""
    try:
        return _ENCODERS[name.strip().lower()]()
    except KeyError as exc:
        raise KeyError(f"Unknown encoder: {name}") from exc


def encoder_for_path(path: Path) -> Encoder:
    """Pick an encoder from a file suffix."""
    name = _SUFFIXES.get(path.suffix.lower())
    if name is None:
        raise KeyError(f"No encoder for file suffix: {path.suffix or '<none>'}")
    return get_encoder(name)


def write_image(
    frame: Frame,
    path: Path,
    *,
    encoder: Encoder | None = None,
    viewport: Viewport | None = None,
) -> Path:
    """Encode a frame and write it to ``path``."""
    encoder = encoder or encoder_for_path(path)
    payload = encoder.encode(frame, viewport)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload)
    LOGGER.debug("Wrote %s image %s (%d bytes).", encoder.name, path, len(payload))
    return path


class FrameSink(Protocol):
    """Receiver for intermediate frames."""

    def emit(self, frame: Frame) -> None:
        """Consume one frame."""
        raise NotImplementedError


class StreamFrameSink:
    """Write every frame to a binary stream, e.g. stdout piped into ffmpeg."""

    def __init__(
        self, stream: BinaryIO, encoder: Encoder, *, viewport: Viewport | None = None
    ) -> None:
        self.stream = stream
        self.encoder = encoder
        self.viewport = viewport
        self.frames_written = 0

    def emit(self, frame: Frame) -> None:
        self.stream.write(self.encoder.encode(frame, self.viewport))
        self.stream.flush()
        self.frames_written += 1


class DirectoryFrameSink:
    """Write every frame as a numbered file inside a directory."""

    def __init__(
        self,
        directory: Path,
        encoder: Encoder,
        *,
        viewport: Viewport | None = None,
        prefix: str = "frame_",
    ) -> None:
        self.directory = directory
        self.encoder = encoder
        self.viewport = viewport
        self.prefix = prefix
        self.frames_written = 0
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, index: int) -> Path:
        return self.directory / f"{self.prefix}{index:06d}{self.encoder.suffix}"

    def emit(self, frame: Frame) -> None:
        self.frames_written += 1
        write_image(
            frame,
            self.path_for(self.frames_written),
            encoder=self.encoder,
            viewport=self.viewport,
        )
