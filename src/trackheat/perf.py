"""Performance timing helpers for render runs."""

from __future__ import annotations

import os
import tracemalloc
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Any, Iterator

ENV_PROFILE_DIR = "TRACKHEAT_PROFILE_DIR"
METRICS_NAME = "render_metrics.json"


@dataclass
class SpanStats:
    """Aggregate timings for every span opened under one name."""

    count: int = 0
    seconds: float = 0.0
    max_seconds: float = 0.0

    def add(self, elapsed: float) -> None:
        self.count += 1
        self.seconds += elapsed
        self.max_seconds = max(self.max_seconds, elapsed)

    def as_dict(self) -> dict[str, Any]:
        return {
            "seconds": round(self.seconds, 6),
            "count": self.count,
            "max_seconds": round(self.max_seconds, 6),
        }


class PerfTracker:
    """Capture timing spans, event counters and the tracemalloc peak.

    Spans with the same name accumulate, so the colorize span reports the
    time spent on every frame of the run. Counters (points, frames) are
    turned into per-second rates over the whole session.
    A disabled tracker records nothing and summarizes to ``{}``.
    """

    def __init__(self, *, enabled: bool, track_memory: bool = True) -> None:
        self.enabled = enabled
        self.track_memory = track_memory
        self._stats: dict[str, SpanStats] = {}
        self._counters: dict[str, int] = {}
        self._started_at: float | None = None
        self._stopped_at: float | None = None
        self._peak_memory_mb: float | None = None
        self._owns_tracemalloc = False

    def start(self) -> None:
        """Start a timing session."""
        if not self.enabled:
            return
        self._started_at = perf_counter()
        if self.track_memory and not tracemalloc.is_tracing():
            tracemalloc.start()
            self._owns_tracemalloc = True

    def stop(self) -> None:
        """Stop the session and capture the memory peak; later calls are no-ops."""
        if not self.enabled or self._stopped_at is not None:
            return
        self._stopped_at = perf_counter()
        if self.track_memory and tracemalloc.is_tracing():
            _, peak = tracemalloc.get_traced_memory()
            self._peak_memory_mb = peak / (1024 * 1024)
            if self._owns_tracemalloc:
                tracemalloc.stop()

    @contextmanager
    def span(self, name: str) -> Iterator[None]:
        """Measure a named span of work."""
        if not self.enabled:
            yield
            return
        start = perf_counter()
        try:
            yield
        finally:
            self._stats.setdefault(name, SpanStats()).add(perf_counter() - start)

    def count(self, name: str, amount: int = 1) -> None:
        """Add ``amount`` to a named event counter."""
        if self.enabled:
            self._counters[name] = self._counters.get(name, 0) + int(amount)

    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else perf_counter()
        return max(0.0, end - self._started_at)

    def summary(self) -> dict[str, Any]:
        """Return a JSON-serializable summary of captured metrics."""
        if not self.enabled:
            return {}
        total = self.elapsed()
        summary: dict[str, Any] = {
            "total_seconds": round(total, 6),
            "span_events": sum(stats.count for stats in self._stats.values()),
            "spans": {name: self._stats[name].as_dict() for name in sorted(self._stats)},
        }
        if self._counters:
            summary["counters"] = dict(sorted(self._counters.items()))
            if total > 0:
                summary["rates_per_second"] = {
                    name: round(value / total, 3)
                    for name, value in sorted(self._counters.items())
                }
        if self._peak_memory_mb is not None:
            summary["peak_memory_mb"] = round(self._peak_memory_mb, 3)
        return summary


def resolve_metrics_path(metrics_json: str | None) -> Path | None:
    """Resolve the metrics output path from CLI or environment defaults."""
    if metrics_json:
        return Path(metrics_json)
    profile_dir = os.environ.get(ENV_PROFILE_DIR)
    if profile_dir:
        return Path(profile_dir) / METRICS_NAME
    return None
