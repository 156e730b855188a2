from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from trackheat import contracts


def _load_fixture(name: str) -> dict:
    path = Path(__file__).parent / "fixtures" / name
    return json.loads(path.read_text(encoding="utf-8"))


def test_render_report_schema() -> None:
    contracts.validate_render_report(_load_fixture("render_report.json"))


def test_render_report_schema_with_perf() -> None:
    report = _load_fixture("render_report.json")
    report["perf"] = {
        "total_seconds": 1.0,
        "span_events": 2,
        "spans": {"colorize": {"seconds": 0.5, "count": 2}},
        "peak_memory_mb": 12.5,
    }
    contracts.validate_render_report(report)


def test_render_report_requires_timeline() -> None:
    report = _load_fixture("render_report.json")
    del report["timeline"]["max_value"]
    with pytest.raises(jsonschema.ValidationError):
        contracts.validate_render_report(report)


def test_render_config_schema() -> None:
    contracts.validate_render_config(_load_fixture("render_config.json"))


def test_render_config_schema_rejects_bad_latitude() -> None:
    payload = _load_fixture("render_config.json")
    payload["viewport"]["top"] = 91
    with pytest.raises(jsonschema.ValidationError):
        contracts.validate_render_config(payload)


def test_palettes_schema() -> None:
    contracts.validate_palettes(
        {"version": 1, "palettes": [{"name": "sea", "colors": ["#03045e", "caf0f8"]}]}
    )
    with pytest.raises(jsonschema.ValidationError):
        contracts.validate_palettes({"palettes": [{"name": "sea", "colors": ["#03045e"]}]})
