"""Render report construction helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from trackheat.contracts import SCHEMA_VERSION
from trackheat.timeline import TimelineResult
from trackheat.viewport import Viewport


def _utc_now() -> str:
    """Return the current UTC timestamp as ISO8601."""
    return datetime.now(timezone.utc).isoformat()


def build_render_report(
    *,
    config: Mapping[str, Any],
    viewport: Viewport,
    timeline: TimelineResult,
    artifacts: Mapping[str, Any],
    warnings: Iterable[str],
    perf: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Create a render report dictionary."""
    ground_width, ground_height = viewport.ground_extent_m()
    report: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "created_at": _utc_now(),
        "config": dict(config),
        "viewport": {
            **viewport.as_dict(),
            "ground_width_m": round(ground_width, 1),
            "ground_height_m": round(ground_height, 1),
        },
        "timeline": timeline.as_dict(),
        "artifacts": dict(artifacts),
        "warnings": list(warnings),
    }
    if perf:
        report["perf"] = dict(perf)
    return report
