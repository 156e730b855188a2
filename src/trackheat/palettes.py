"""Palette library: named gradients plus user palettes from disk."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import jsonschema

from trackheat.contracts import validate_palettes
from trackheat.gradient import Gradient

ENV_PALETTES_PATH = "TRACKHEAT_PALETTES_PATH"
PALETTE_FORMAT_VERSION = 1

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Palette:
    """Named list of evenly spaced gradient colors."""

    name: str
    summary: str
    colors: tuple[str, ...]
    background: str = "black"

    def gradient(self, *, interpolation: str = "rgb") -> Gradient:
        return Gradient.evenly_spaced(self.colors, interpolation=interpolation)


_PALETTES: dict[str, Palette] = {
    "grayscale": Palette(
        name="grayscale",
        summary="Dim gray to white on black, the classic look.",
        colors=("#191919", "#ffffff"),
    ),
    "heat": Palette(
        name="heat",
        summary="Deep purple through red and orange to pale yellow.",
        colors=("#2c0b4a", "#8a1f62", "#d9432f", "#f8a93a", "#fffbd1"),
    ),
    "fire": Palette(
        name="fire",
        summary="Dark red to orange to white.",
        colors=("#3b0000", "#ff4500", "#ffd700", "#ffffff"),
    ),
    "ink": Palette(
        name="ink",
        summary="Light blue to navy, meant for white backgrounds.",
        colors=("#c6dbef", "#4292c6", "#08306b"),
        background="white",
    ),
}


def _candidate_palette_paths(path: Path | None) -> list[Path]:
    if path is not None:
        return [path]
    env_path = os.environ.get(ENV_PALETTES_PATH)
    if env_path:
        return [Path(env_path)]
    return []


def _palette_from_mapping(item: Mapping[str, Any]) -> Palette:
    colors = tuple(
        color if str(color).startswith("#") else f"#{color}" for color in item["colors"]
    )
    return Palette(
        name=str(item["name"]).strip().lower(),
        summary=str(item.get("summary", "")),
        colors=colors,
        background=str(item.get("background", "black")),
    )


def load_palettes_file(path: Path) -> dict[str, Palette]:
    """Load palettes from an explicit JSON file."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    validate_palettes(payload)
    parsed: dict[str, Palette] = {}
    for item in payload["palettes"]:
        palette = _palette_from_mapping(item)
        parsed[palette.name] = palette
    return parsed


def load_user_palettes(path: Path | None = None) -> dict[str, Palette]:
    """Load user-defined palettes, if a palettes file is configured."""
    for candidate in _candidate_palette_paths(path):
        if not candidate.exists():
            continue
        try:
            return load_palettes_file(candidate)
        except (OSError, json.JSONDecodeError, jsonschema.ValidationError) as exc:
            LOGGER.warning("Ignoring palettes file %s: %s", candidate, exc)
    return {}


def list_palettes(*, include_user: bool = True, user_path: Path | None = None) -> tuple[Palette, ...]:
    """Return all palettes in sorted order."""
    merged = dict(_PALETTES)
    if include_user:
        merged.update(load_user_palettes(user_path))
    return tuple(merged[name] for name in sorted(merged))


def get_palette(
    name: str, *, include_user: bool = True, user_path: Path | None = None
) -> Palette | None:
    """Return a palette by name, case-insensitive."""
    key = name.strip().lower()
    if include_user:
        user_palettes = load_user_palettes(user_path)
        if key in user_palettes:
            return user_palettes[key]
    return _PALETTES.get(key)


def palette_as_dict(palette: Palette) -> dict[str, Any]:
    return {
        "name": palette.name,
        "summary": palette.summary,
        "colors": list(palette.colors),
        "background": palette.background,
    }


def serialize_palettes(palettes: Mapping[str, Palette]) -> dict[str, Any]:
    """Serialize palettes to a JSON-compatible payload."""
    return {
        "version": PALETTE_FORMAT_VERSION,
        "palettes": [
            palette_as_dict(palette)
            for palette in sorted(palettes.values(), key=lambda p: p.name)
        ],
    }


def format_palette(palette: Palette) -> str:
    """Format a palette as a single human-readable line."""
    colors = " -> ".join(palette.colors)
    return f"{palette.name:<12} {colors}  (background: {palette.background}) {palette.summary}"
