"""GPX track loading: files on disk to time-ordered activities."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

import numpy as np

from trackheat.errors import TrackError
from trackheat.logging_utils import activity_context

LOGGER = logging.getLogger(__name__)

DEFAULT_NAME = "Untitled"
DEFAULT_PATTERN = "*.gpx"
_SECOND_FRACTION = re.compile(r"(T\d{2}:\d{2}:\d{2})\.(\d+)")


@dataclass(frozen=True)
class Activity:
    """One track: (lat, lng) rows in recorded order, a name and a UTC timestamp."""

    name: str
    timestamp: datetime
    points: np.ndarray
    source: Path | None = None

    def __post_init__(self) -> None:
        points = np.asarray(self.points, dtype=np.float64).reshape(-1, 2)
        points.setflags(write=False)
        object.__setattr__(self, "points", points)
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc))

    @property
    def point_count(self) -> int:
        return int(self.points.shape[0])


@dataclass(frozen=True)
class SkippedTrack:
    """A track file that produced no activity."""

    path: Path
    reason: str


@dataclass
class LoadResult:
    """Activities sorted by timestamp plus the files that were skipped."""

    activities: list[Activity] = field(default_factory=list)
    skipped: list[SkippedTrack] = field(default_factory=list)


def _namespace(root: ET.Element) -> str:
    if root.tag.startswith("{"):
        return root.tag[: root.tag.index("}") + 1]
    return ""


def parse_timestamp(text: str | None) -> datetime | None:
    """Parse a GPX ISO8601 time into an aware UTC datetime."""
    if not text:
        return None
    value = text.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits.
    value = _SECOND_FRACTION.sub(
        lambda match: f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}", value, count=1
    )
    try:
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def _file_mtime(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)


def parse_gpx(path: Path) -> Activity | None:
    """Parse the first track of a GPX file.

    Returns None when the file holds no track or no track points. The
    timestamp comes from ``<metadata><time>``, then the GPX 1.0 top-level
    ``<time>``, then the first point's ``<time>``, then the file
    modification time.
    """
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as exc:
        raise TrackError(f"Invalid GPX XML: {exc}", path=path) from exc
    ns = _namespace(root)
    tracks = root.findall(f"{ns}trk")
    if not tracks:
        return None
    if len(tracks) > 1:
        LOGGER.warning("%s has %d tracks; using the first.", path.name, len(tracks))
    track = tracks[0]

    name_elem = track.find(f"{ns}name")
    name = (name_elem.text or "").strip() if name_elem is not None else ""

    coords: list[tuple[float, float]] = []
    first_time: datetime | None = None
    for trkpt in track.iter(f"{ns}trkpt"):
        try:
            coords.append((float(trkpt.attrib["lat"]), float(trkpt.attrib["lon"])))
        except (KeyError, ValueError) as exc:
            raise TrackError(f"Malformed track point: {exc}", path=path) from exc
        if first_time is None:
            first_time = parse_timestamp(trkpt.findtext(f"{ns}time"))
    if not coords:
        return None

    timestamp = parse_timestamp(root.findtext(f"{ns}metadata/{ns}time"))
    if timestamp is None:
        # GPX 1.0 keeps the document time at the top level.
        timestamp = parse_timestamp(root.findtext(f"{ns}time"))
    if timestamp is None:
        timestamp = first_time
    if timestamp is None:
        timestamp = _file_mtime(path)

    return Activity(
        name=name or DEFAULT_NAME,
        timestamp=timestamp,
        points=np.asarray(coords, dtype=np.float64),
        source=path,
    )


def _load_one(path: Path) -> Activity | SkippedTrack:
    try:
        with activity_context(path.name):
            activity = parse_gpx(path)
    except (TrackError, OSError) as exc:
        return SkippedTrack(path, str(exc))
    if activity is None:
        return SkippedTrack(path, "no track points")
    return activity


def find_track_files(directory: Path, pattern: str = DEFAULT_PATTERN) -> list[Path]:
    """Return matching files directly inside ``directory``, sorted by name."""
    if not directory.is_dir():
        raise FileNotFoundError(f"Track directory not found: {directory}")
    return sorted(path for path in directory.glob(pattern) if path.is_file())


def sort_activities(activities: Iterable[Activity]) -> list[Activity]:
    """Order activities by timestamp; ties keep their incoming order."""
    return sorted(activities, key=lambda activity: activity.timestamp)


def load_activities(
    directory: Path, *, jobs: int = 1, pattern: str = DEFAULT_PATTERN
) -> LoadResult:
    """Parse every track file in ``directory``; unreadable ones are skipped."""
    paths = find_track_files(directory, pattern)
    if jobs == 1 or len(paths) <= 1:
        outcomes = [_load_one(path) for path in paths]
    else:
        with ThreadPoolExecutor(max_workers=jobs) as executor:
            outcomes = list(executor.map(_load_one, paths))

    result = LoadResult()
    loaded: list[Activity] = []
    for outcome in outcomes:
        if isinstance(outcome, SkippedTrack):
            LOGGER.warning("Skipping %s: %s", outcome.path.name, outcome.reason)
            result.skipped.append(outcome)
        else:
            loaded.append(outcome)
    result.activities = sort_activities(loaded)
    LOGGER.info(
        "Loaded %d activities from %s (%d skipped).",
        len(result.activities),
        directory,
        len(result.skipped),
    )
    return result
