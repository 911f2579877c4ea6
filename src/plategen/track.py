"""GPS track samples and GPX import."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import gpxpy
import gpxpy.gpx

from plategen.errors import DegenerateInputError

logger = logging.getLogger(__name__)

DEFAULT_CAP = 200


@dataclass(frozen=True)
class TrackSample:
    """A point along the track, in acquisition order."""

    position: Tuple[float, float]  # (lat, lon) in degrees
    elevation: float               # metres

    @property
    def lat(self) -> float:
        return self.position[0]

    @property
    def lon(self) -> float:
        return self.position[1]


def subsample(samples: Sequence[TrackSample], cap: int = DEFAULT_CAP) -> List[TrackSample]:
    """Reduce ``samples`` to at most ``cap`` entries.

    Takes every Nth sample starting with the first, ``N = len // cap``,
    then truncates to ``cap``. Tracks that already fit are returned whole.
    """
    if cap <= 0:
        raise ValueError(f"cap must be positive, got {cap}")
    stride = len(samples) // cap
    if stride <= 1:
        return list(samples[:cap])
    return list(samples[::stride])[:cap]


def samples_from_arrays(latlon: Sequence[Sequence[float]], elevation: Sequence[float]) -> List[TrackSample]:
    """Pair raw ``(lat, lon)`` rows with elevation values."""

    if len(latlon) != len(elevation):
        raise DegenerateInputError(
            f"got {len(latlon)} positions but {len(elevation)} elevation values")
    return [TrackSample((float(p[0]), float(p[1])), float(e)) for p, e in zip(latlon, elevation)]


def parse_gpx(text: str) -> List[TrackSample]:
    """Read track points from GPX text, falling back to route points.

    Points without elevation are skipped.
    """
    gpx = gpxpy.parse(text)

    points: List[gpxpy.gpx.GPXTrackPoint] = []
    for track in gpx.tracks:
        for segment in track.segments:
            points.extend(segment.points)
    if not points:
        for route in gpx.routes:
            points.extend(route.points)

    samples = []
    skipped = 0
    for point in points:
        if point.elevation is None:
            skipped += 1
            continue
        samples.append(TrackSample((point.latitude, point.longitude), float(point.elevation)))
    if skipped:
        logger.info("skipped %d GPX points without elevation", skipped)
    return samples


def load_gpx(source, cap: int = DEFAULT_CAP) -> List[TrackSample]:
    """Load and subsample a GPX track.

    ``source`` can be a filesystem path, an open text stream or GPX text.
    """
    if hasattr(source, 'read'):
        text = source.read()
    elif isinstance(source, (str, os.PathLike)) and not str(source).lstrip().startswith('<'):
        with open(source, 'r', encoding='utf-8') as fh:
            text = fh.read()
    else:
        text = str(source)

    samples = parse_gpx(text)
    result = subsample(samples, cap)
    logger.debug("loaded %d GPX samples, kept %d", len(samples), len(result))
    return result


__all__ = [
    'DEFAULT_CAP',
    'TrackSample',
    'load_gpx',
    'parse_gpx',
    'samples_from_arrays',
    'subsample',
]
