from __future__ import annotations

import io
from pathlib import Path

import numpy as np
import pytest
import rasterio

from trackheat.encoders import (
    DirectoryFrameSink,
    Frame,
    PpmEncoder,
    RawRgbEncoder,
    StreamFrameSink,
    encoder_for_path,
    encoder_names,
    get_encoder,
    write_image,
)
from trackheat.viewport import Viewport


def _frame(height: int = 3, width: int = 4) -> Frame:
    pixels = np.arange(height * width * 3, dtype=np.uint8).reshape(height, width, 3)
    return Frame(pixels=pixels)


def test_frame_is_immutable_copy() -> None:
    pixels = np.zeros((2, 2, 3), dtype=np.uint8)
    frame = Frame(pixels=pixels)
    pixels[0, 0, 0] = 9
    assert frame.pixels[0, 0, 0] == 0
    assert (frame.width, frame.height) == (2, 2)
    with pytest.raises(ValueError):
        frame.pixels[0, 0, 0] = 1


@pytest.mark.parametrize(
    "pixels",
    [np.zeros((2, 2), dtype=np.uint8), np.zeros((2, 2, 4), dtype=np.uint8), np.zeros((2, 2, 3))],
)
def test_frame_rejects_bad_buffers(pixels: np.ndarray) -> None:
    with pytest.raises(ValueError):
        Frame(pixels=pixels)


def test_raw_rgb_is_row_major() -> None:
    frame = _frame()
    payload = RawRgbEncoder().encode(frame)
    assert len(payload) == 3 * 4 * 3
    assert payload[:6] == bytes(range(6))


def test_ppm_header_and_body() -> None:
    frame = _frame()
    payload = PpmEncoder().encode(frame)
    header = b"P6\n4 3\n255\n"
    assert payload.startswith(header)
    assert payload[len(header):] == frame.pixels.tobytes()


def test_png_round_trip(tmp_path: Path) -> None:
    frame = _frame(5, 7)
    path = write_image(frame, tmp_path / "out" / "heat.png")
    with rasterio.open(path) as dataset:
        assert (dataset.width, dataset.height, dataset.count) == (7, 5, 3)
        data = dataset.read()
    assert np.array_equal(np.moveaxis(data, 0, 2), frame.pixels)


def test_geotiff_is_georeferenced(tmp_path: Path) -> None:
    viewport = Viewport.from_corners(40.0, -75.0, 39.0, -74.0, 8, 6)
    frame = _frame(6, 8)
    path = write_image(frame, tmp_path / "heat.tif", viewport=viewport)
    with rasterio.open(path) as dataset:
        assert dataset.crs.to_epsg() == 4326
        assert dataset.bounds.left == pytest.approx(-75.0)
        assert dataset.bounds.top == pytest.approx(40.0)
        data = dataset.read()
    assert np.array_equal(np.moveaxis(data, 0, 2), frame.pixels)


def test_encoder_lookup() -> None:
    assert encoder_names() == ("gtiff", "png", "ppm", "rgb")
    assert get_encoder("PNG").name == "png"
    assert encoder_for_path(Path("a.TIFF")).name == "gtiff"
    assert encoder_for_path(Path("a.raw")).name == "rgb"
    with pytest.raises(KeyError):
        get_encoder("gif")
    with pytest.raises(KeyError):
        encoder_for_path(Path("a.jpg"))


def test_stream_sink_concatenates_frames() -> None:
    stream = io.BytesIO()
    sink = StreamFrameSink(stream, RawRgbEncoder())
    sink.emit(_frame())
    sink.emit(_frame())
    assert sink.frames_written == 2
    assert len(stream.getvalue()) == 2 * 3 * 4 * 3


def test_directory_sink_numbers_frames(tmp_path: Path) -> None:
    sink = DirectoryFrameSink(tmp_path / "frames", PpmEncoder())
    sink.emit(_frame())
    sink.emit(_frame())
    names = sorted(path.name for path in (tmp_path / "frames").iterdir())
    assert names == ["frame_000001.ppm", "frame_000002.ppm"]
    assert sink.frames_written == 2
