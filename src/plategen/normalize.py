"""Projection of raw track data into plate-local millimetres.

Positions use an equirectangular local-plane approximation: longitude is
X and latitude is Y, with no geodesic correction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from plategen.errors import DegenerateInputError

logger = logging.getLogger(__name__)

# Relief fractions: 5% of the ribbon height is always present above the
# base, the remaining 95% follows the elevation profile.
_RELIEF_FLOOR = 0.05
_RELIEF_SPAN = 0.95


@dataclass(frozen=True, eq=False)
class NormalizedTrack:
    """Rotated, scaled and centred track points.

    ``points`` is an ``(n, 2)`` array in plate-local mm. ``offset`` is the
    centering translation applied after scaling and ``scale`` the mm per
    input unit.
    """

    points: np.ndarray
    offset: Tuple[float, float]
    scale: float

    def __len__(self) -> int:
        return len(self.points)


def rotate_points(points: np.ndarray, degrees: float) -> np.ndarray:
    """Rotate ``(n, 2)`` points counter-clockwise about the origin."""

    theta = np.radians(degrees)
    c, s = np.cos(theta), np.sin(theta)
    rotation = np.array([[c, -s], [s, c]])
    return points @ rotation.T


def normalize_coordinates(latlon: Sequence[Sequence[float]], rotation: float,
                          max_size: float, margin: float = 0.0) -> NormalizedTrack:
    """Map ``(lat, lon)`` pairs into a ``max_size`` square inset by ``margin``.

    The rotated bounding box decides the scale, so a track keeps the same
    footprint whichever way it is turned.

    Raises:
        DegenerateInputError: the rotated track has zero width or height.
    """
    raw = np.asarray(latlon, dtype=float).reshape(-1, 2)
    if len(raw) == 0:
        raise DegenerateInputError("no coordinates to normalize")
    planar = raw[:, ::-1]  # (lon, lat) -> (x, y)
    rotated = rotate_points(planar, rotation)

    lo = rotated.min(axis=0)
    width, height = rotated.max(axis=0) - lo
    if width == 0 or height == 0:
        raise DegenerateInputError(
            f"track bounds are degenerate after rotation ({width:g} x {height:g})")

    scale = max_size / max(width, height)
    offset = (margin + (max_size - width * scale) / 2.0,
              margin + (max_size - height * scale) / 2.0)
    points = (rotated - lo) * scale + np.asarray(offset)
    points.setflags(write=False)
    return NormalizedTrack(points, (float(offset[0]), float(offset[1])), float(scale))


def scale_elevations(elevations: Sequence[float], max_polyline_height: float,
                     base_height: float = 1.0) -> np.ndarray:
    """Map raw elevations to ribbon heights.

    Heights lie between ``base_height + 0.05 * relief`` and
    ``base_height + relief`` where ``relief`` is the elevation range capped
    at ``max_polyline_height - 1``. A flat track gives a flat ribbon at
    ``base_height``.
    """
    values = np.asarray(elevations, dtype=float)
    if values.size == 0:
        raise DegenerateInputError("no elevation values")
    if not np.all(np.isfinite(values)):
        raise DegenerateInputError("elevation values must be finite")

    low = values.min()
    span = values.max() - low
    if span == 0:
        logger.warning("track has no elevation change, ribbon will be flat")
        return np.full(values.shape, float(base_height))

    relief = max(0.0, min(max_polyline_height - 1.0, span))
    return base_height + (values - low) * _RELIEF_SPAN * relief / span + _RELIEF_FLOOR * relief


__all__ = [
    'NormalizedTrack',
    'normalize_coordinates',
    'rotate_points',
    'scale_elevations',
]
