from __future__ import annotations

import time
from pathlib import Path

from trackheat.perf import PerfTracker, SpanStats, resolve_metrics_path


def test_perf_tracker_records_spans() -> None:
    perf = PerfTracker(enabled=True, track_memory=True)
    perf.start()
    with perf.span("step"):
        time.sleep(0.002)
    with perf.span("step"):
        pass
    perf.stop()

    summary = perf.summary()
    assert summary["total_seconds"] > 0
    assert summary["span_events"] == 2
    step = summary["spans"]["step"]
    assert step["count"] == 2
    assert step["max_seconds"] <= step["seconds"]
    assert "peak_memory_mb" in summary


def test_perf_tracker_counters_and_rates() -> None:
    perf = PerfTracker(enabled=True, track_memory=False)
    perf.start()
    perf.count("points", 40)
    perf.count("points", 2)
    perf.count("frames")
    time.sleep(0.001)
    perf.stop()

    summary = perf.summary()
    assert summary["counters"] == {"frames": 1, "points": 42}
    assert summary["rates_per_second"]["points"] > 0
    assert "peak_memory_mb" not in summary


def test_perf_tracker_disabled_is_empty() -> None:
    perf = PerfTracker(enabled=False, track_memory=True)
    perf.start()
    with perf.span("noop"):
        pass
    perf.count("points", 3)
    perf.stop()
    assert perf.summary() == {}


def test_span_stats_tracks_max() -> None:
    stats = SpanStats()
    stats.add(0.5)
    stats.add(0.25)
    assert stats.as_dict() == {"seconds": 0.75, "count": 2, "max_seconds": 0.5}


def test_resolve_metrics_path_from_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("TRACKHEAT_PROFILE_DIR", str(tmp_path))
    assert resolve_metrics_path(None) == tmp_path / "render_metrics.json"


def test_resolve_metrics_path_from_arg(tmp_path: Path) -> None:
    path = tmp_path / "metrics.json"
    assert resolve_metrics_path(str(path)) == path


def test_resolve_metrics_path_default_none() -> None:
    assert resolve_metrics_path(None) is None
