from __future__ import annotations

import io
import json
from pathlib import Path

import numpy as np
import pytest
import rasterio

from tests.utils import write_gpx
from trackheat.config import RenderConfig
from trackheat.contracts import validate_render_report
from trackheat.errors import ConfigError
from trackheat.perf import ENV_PROFILE_DIR
from trackheat.render import REPORT_NAME, run_render


def _tracks(tmp_path: Path) -> Path:
    tracks = tmp_path / "tracks"
    write_gpx(
        tracks / "a.gpx",
        [(0.505, (i + 0.5) / 20) for i in range(12)],
        name="Commute",
        metadata_time="2018-03-02T08:00:00Z",
    )
    write_gpx(
        tracks / "b.gpx",
        [(0.505, 0.505), (5.0, 5.0)],
        name="Loop",
        metadata_time="2018-03-01T08:00:00Z",
    )
    (tracks / "broken.gpx").write_text("<gpx", encoding="utf-8")
    return tracks


def _config(tmp_path: Path, **overrides) -> RenderConfig:
    values = {
        "top": 1.0,
        "left": 0.0,
        "bottom": 0.0,
        "right": 1.0,
        "width": 20,
        "input_dir": str(_tracks(tmp_path)),
        "output": str(tmp_path / "out" / "heatmap.png"),
    }
    values.update(overrides)
    return RenderConfig(**values)


def test_render_writes_image_and_report(tmp_path: Path) -> None:
    result = run_render(_config(tmp_path))

    assert result.output.exists()
    with rasterio.open(result.output) as dataset:
        assert (dataset.width, dataset.height) == (20, 20)
        pixels = np.moveaxis(dataset.read(), 0, 2)
    assert int((pixels.sum(axis=2) > 0).sum()) == 12

    assert result.timeline.activities == 2
    assert result.timeline.skipped_activities == 1
    assert result.timeline.points_accumulated == 13
    assert result.timeline.points_dropped == 1
    assert result.timeline.max_value == 2
    assert any("broken.gpx" in warning for warning in result.warnings)

    report_path = result.output.with_name(REPORT_NAME)
    report = json.loads(report_path.read_text(encoding="utf-8"))
    validate_render_report(report)
    assert report["timeline"]["frames_emitted"] == 0
    assert report["viewport"]["ground_width_m"] > 100_000
    assert report["config"]["palette"] == "grayscale"


def test_render_frames_dir(tmp_path: Path) -> None:
    frames = tmp_path / "frames"
    result = run_render(_config(tmp_path, frames_dir=str(frames), points_per_frame=5))
    assert result.timeline.frames_emitted == 2
    assert sorted(path.name for path in frames.iterdir()) == [
        "frame_000001.png",
        "frame_000002.png",
    ]
    assert result.artifacts["frames_dir"] == str(frames)


def test_render_frames_stdout(tmp_path: Path) -> None:
    stream = io.BytesIO()
    config = _config(tmp_path, frames_stdout=True, points_per_frame=13, frame_format="rgb")
    result = run_render(config, frame_stream=stream)
    assert result.timeline.frames_emitted == 1
    assert len(stream.getvalue()) == 20 * 20 * 3


def test_render_geotiff_output(tmp_path: Path) -> None:
    result = run_render(
        _config(tmp_path, output=str(tmp_path / "heat.tif"), palette="ink", report=False)
    )
    with rasterio.open(result.output) as dataset:
        assert dataset.crs.to_epsg() == 4326
        pixels = np.moveaxis(dataset.read(), 0, 2)
    assert pixels[0, 0].tolist() == [255, 255, 255]
    assert not (tmp_path / REPORT_NAME).exists()


def test_render_writes_metrics_from_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv(ENV_PROFILE_DIR, str(tmp_path / "profile"))
    result = run_render(_config(tmp_path, profile=True))
    metrics = json.loads((tmp_path / "profile" / "render_metrics.json").read_text("utf-8"))
    assert "load" in metrics["spans"]
    assert result.report["perf"]["spans"]["write_output"]["count"] == 1


def test_render_warns_when_nothing_visible(tmp_path: Path) -> None:
    result = run_render(_config(tmp_path, top=-10.0, bottom=-11.0, right=1.0))
    assert result.timeline.points_accumulated == 0
    assert "No track points fell inside the viewport." in result.warnings


@pytest.mark.parametrize(
    "overrides",
    [
        {"palette": "unknown"},
        {"output": "heatmap.gif"},
    ],
)
def test_render_rejects_bad_config(tmp_path: Path, overrides: dict) -> None:
    with pytest.raises(ConfigError):
        run_render(_config(tmp_path, **overrides))


def test_render_missing_font(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Font file"):
        run_render(_config(tmp_path, font=str(tmp_path / "missing.ttf")))


def test_render_checks_font_before_loading_tracks(tmp_path: Path, monkeypatch) -> None:
    bad = tmp_path / "bad.ttf"
    bad.write_text("not a font", encoding="utf-8")
    calls = []
    monkeypatch.setattr(
        "trackheat.render.load_activities", lambda *args, **kwargs: calls.append(args)
    )

    with pytest.raises(ConfigError):
        run_render(_config(tmp_path, font=str(bad)))
    assert calls == []


def test_render_missing_input_dir(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        run_render(_config(tmp_path, input_dir=str(tmp_path / "nowhere")))
