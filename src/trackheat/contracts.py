"""Schema validation helpers for render configs, palettes, and reports."""

from __future__ import annotations

import json
from importlib import resources
from typing import Any, Mapping

import jsonschema

SCHEMA_VERSION = "1.0"


def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema bundled in the package."""
    with resources.files("trackheat.schemas").joinpath(name).open("r", encoding="utf-8") as handle:
        return json.load(handle)


def validate_render_config(payload: Mapping[str, Any]) -> None:
    """Validate a render config file payload against the schema."""
    jsonschema.validate(payload, _load_schema("render_config.schema.json"))


def validate_palettes(payload: Mapping[str, Any]) -> None:
    """Validate a user palettes file against the schema."""
    jsonschema.validate(payload, _load_schema("palettes.schema.json"))


def validate_render_report(report: Mapping[str, Any]) -> None:
    """Validate a render report against the schema."""
    jsonschema.validate(report, _load_schema("render_report.schema.json"))
