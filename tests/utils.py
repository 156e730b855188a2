from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Iterable, Sequence

import numpy as np

from trackheat.tracks import Activity

GPX_NS = "http://www.topografix.com/GPX/1/1"


def make_activity(
    points: Sequence[tuple[float, float]],
    *,
    name: str = "Ride",
    timestamp: str = "2018-03-01T08:00:00+00:00",
) -> Activity:
    return Activity(
        name=name,
        timestamp=datetime.fromisoformat(timestamp),
        points=np.asarray(points, dtype=np.float64).reshape(-1, 2),
    )


def write_gpx(
    path: Path,
    points: Iterable[tuple[float, float]],
    *,
    name: str | None = "Morning Ride",
    metadata_time: str | None = "2018-03-01T08:00:00Z",
    point_time: str | None = None,
    tracks: int = 1,
) -> Path:
    """Write a minimal GPX 1.1 file with ``tracks`` identical tracks."""
    trkpts = []
    for lat, lng in points:
        time_tag = f"<time>{point_time}</time>" if point_time else ""
        trkpts.append(f'<trkpt lat="{lat}" lon="{lng}">{time_tag}</trkpt>')
    name_tag = f"<name>{name}</name>" if name is not None else ""
    track = f"<trk>{name_tag}<trkseg>{''.join(trkpts)}</trkseg></trk>"
    metadata = f"<metadata><time>{metadata_time}</time></metadata>" if metadata_time else ""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<gpx version="1.1" creator="tests" xmlns="{GPX_NS}">'
        f"{metadata}{track * tracks}</gpx>",
        encoding="utf-8",
    )
    return path


def with_src_env(base_env: dict[str, str] | None = None) -> dict[str, str]:
    """Return an environment with repo src/ on PYTHONPATH."""
    env = dict(base_env or os.environ)
    repo_root = Path(__file__).resolve().parents[1]
    src_path = repo_root / "src"
    if src_path.exists():
        existing = env.get("PYTHONPATH", "")
        entries = [entry for entry in existing.split(os.pathsep) if entry]
        src_str = str(src_path)
        if src_str not in entries:
            entries.insert(0, src_str)
        env["PYTHONPATH"] = os.pathsep.join(entries)
    return env
