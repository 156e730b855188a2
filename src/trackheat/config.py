"""Render configuration: JSON config files merged with CLI overrides."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping

import jsonschema

from trackheat.contracts import validate_render_config
from trackheat.encoders import encoder_names
from trackheat.errors import ConfigError
from trackheat.gradient import INTERPOLATIONS, parse_color
from trackheat.grid import DECAY_POLICIES
from trackheat.viewport import Viewport

VIEWPORT_KEYS = ("top", "left", "bottom", "right")


@dataclass(frozen=True)
class RenderConfig:
    """Every parameter a render run needs."""

    top: float | None = None
    left: float | None = None
    bottom: float | None = None
    right: float | None = None
    width: int | None = None
    height: int | None = None
    input_dir: str | None = None
    pattern: str = "*.gpx"
    output: str = "heatmap.png"
    frames_dir: str | None = None
    frames_stdout: bool = False
    frame_format: str | None = None
    points_per_frame: int | None = None
    decay: int | None = None
    decay_policy: str = "fixed"
    show_title: bool = True
    show_date: bool = True
    overlay_final: bool = False
    overlay_color: str = "white"
    background: str | None = None
    palette: str = "grayscale"
    interpolation: str = "rgb"
    font: str | None = None
    jobs: int = 1
    report: bool = True
    profile: bool = False
    metrics_json: str | None = None

    def viewport(self) -> Viewport:
        """Build the viewport; raises ViewportError on degenerate corners."""
        missing = [key for key in (*VIEWPORT_KEYS, "width") if getattr(self, key) is None]
        if missing:
            raise ConfigError(f"Missing viewport settings: {', '.join(missing)}")
        return Viewport.from_corners(
            self.top,
            self.left,
            self.bottom,
            self.right,
            self.width,
            self.height,
        )

    @property
    def video_enabled(self) -> bool:
        return bool(self.frames_dir or self.frames_stdout)

    def validate(self) -> None:
        """Raise ConfigError for settings that would fail mid-run."""
        self.viewport()
        if not self.input_dir:
            raise ConfigError("An input directory of track files is required.")
        if self.frames_dir and self.frames_stdout:
            raise ConfigError("Choose either a frames directory or frames on stdout, not both.")
        if self.points_per_frame is not None and self.points_per_frame < 0:
            raise ConfigError("points_per_frame must be zero or positive.")
        if self.video_enabled and not self.points_per_frame:
            raise ConfigError("Frame output needs points_per_frame greater than zero.")
        if self.decay is not None and self.decay < 0:
            raise ConfigError("decay must be zero or positive.")
        if self.decay_policy not in DECAY_POLICIES:
            raise ConfigError(f"Unknown decay policy: {self.decay_policy}")
        if self.interpolation not in INTERPOLATIONS:
            raise ConfigError(f"Unknown gradient interpolation: {self.interpolation}")
        if self.frame_format is not None and self.frame_format not in encoder_names():
            raise ConfigError(f"Unknown frame format: {self.frame_format}")
        if self.jobs < 1:
            raise ConfigError("jobs must be at least 1.")
        parse_color(self.overlay_color)
        if self.background is not None:
            parse_color(self.background)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _flatten(payload: Mapping[str, Any]) -> dict[str, Any]:
    flat = {key: value for key, value in payload.items() if key != "viewport"}
    viewport = payload.get("viewport")
    if isinstance(viewport, Mapping):
        for key in VIEWPORT_KEYS:
            if key in viewport:
                flat[key] = viewport[key]
    return flat


def load_config_file(path: Path) -> dict[str, Any]:
    """Load and schema-validate a JSON render config file."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Unable to read config {path}: {exc}") from exc
    try:
        validate_render_config(payload)
    except jsonschema.ValidationError as exc:
        raise ConfigError(f"Invalid config {path}: {exc.message}") from exc
    return _flatten(payload)


def merge_config(
    file_values: Mapping[str, Any] | None, overrides: Mapping[str, Any] | None
) -> RenderConfig:
    """Build a RenderConfig; non-None overrides win over file values."""
    known = {field.name for field in fields(RenderConfig)}
    merged: dict[str, Any] = {}
    for source in (file_values or {}, overrides or {}):
        for key, value in source.items():
            if key not in known:
                raise ConfigError(f"Unknown config key: {key}")
            if value is not None:
                merged[key] = value
    return RenderConfig(**merged)
