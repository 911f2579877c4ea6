"""
Mitered ribbon extrusion along a polyline with per-vertex heights.

Each segment is a trapezoid in its own vertical plane (height ``h0`` at
the start, ``h1`` at the end), ``edge_width`` thick. Segment ends are cut
along the bisector of the turn, pushed ``OVERLAP`` past it so neighbouring
segments overlap slightly instead of merely touching. Half cylinders
round off both open ends and reach ``OVERLAP`` back into their segment.

A full cylinder stands at every interior vertex to close sharp turns. It
is not trimmed by the bisector planes: in plan it lies inside the two
mitered segments unless the miter limit applies, and then the uncovered
part is exactly the gap it has to fill.

Example usage:

    from plategen.capabilities import load_kernel
    from plategen.ribbon import build_ribbon

    kernel = load_kernel().unwrap()
    ribbon = build_ribbon(kernel, [(0, 0), (10, 0), (10, 10)], [2, 3, 4])
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from plategen.errors import DegenerateInputError
from plategen.kernel import FillRule, MeshKernel, Solid

logger = logging.getLogger(__name__)

DEFAULT_EDGE_WIDTH = 1.0

# Miters sharper than this are limited; the vertex cylinder covers the rest.
MITER_LIMIT_DEG = 75.0

# Neighbouring pieces overlap by this much; faces that only touch leave
# pinched edges once the union is welded.
OVERLAP = 0.01

Point2 = Tuple[float, float]


def half_angle_difference(a2: float, a1: float) -> float:
    """Half of the signed turn from ``a1`` to ``a2`` in degrees.

    The turn is wrapped into ``(-180, 180]`` before halving, which picks
    whichever of ``a2 - a1``, ``a2 - a1 - 360`` and ``a2 - a1 + 360`` lies
    strictly inside ``(-180, 180)``.
    """
    d = (a2 - a1) % 360.0
    if d > 180.0:
        d -= 360.0
    return d / 2.0


def truncate_count(n: int, truncate_pct: float) -> int:
    """Number of leading points kept for ``truncate_pct`` percent of ``n``.

    Rounds half up: ``maxIdx = round(pct / 100 * n) - 1`` and the prefix
    ``0..maxIdx`` is kept.
    """
    max_idx = math.floor(truncate_pct / 100.0 * n + 0.5) - 1
    return max(0, max_idx + 1)


@dataclass(frozen=True)
class RibbonSegment:
    """One straight piece of the ribbon between two consecutive vertices."""

    start: Point2
    end: Point2
    h0: float
    h1: float
    start_miter: float  # cut plane rotation at the start, degrees
    end_miter: float    # cut plane rotation at the end, degrees

    @property
    def length(self) -> float:
        return math.hypot(self.end[0] - self.start[0], self.end[1] - self.start[1])

    @property
    def angle(self) -> float:
        return math.degrees(math.atan2(self.end[1] - self.start[1], self.end[0] - self.start[0]))


def _dedupe(points: np.ndarray, heights: np.ndarray):
    keep = [0]
    for i in range(1, len(points)):
        if not np.array_equal(points[i], points[keep[-1]]):
            keep.append(i)
    return points[keep], heights[keep]


def _clamp_miter(angle: float) -> float:
    return max(-MITER_LIMIT_DEG, min(MITER_LIMIT_DEG, angle))


def ribbon_segments(points: Sequence[Sequence[float]], heights: Sequence[float]) -> List[RibbonSegment]:
    """Split a polyline into segments with their miter angles.

    Consecutive duplicate points are merged. The open ends get square cuts.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    hts = np.asarray(heights, dtype=float).reshape(-1)
    if len(pts) != len(hts):
        raise DegenerateInputError(f"{len(pts)} points but {len(hts)} heights")
    if len(pts) < 2:
        return []
    pts, hts = _dedupe(pts, hts)
    if len(pts) < 2:
        return []

    deltas = np.diff(pts, axis=0)
    angles = np.degrees(np.arctan2(deltas[:, 1], deltas[:, 0]))
    last = len(angles) - 1

    segments = []
    for i, angle in enumerate(angles):
        start_miter = half_angle_difference(angles[i - 1], angle) if i > 0 else 0.0
        end_miter = half_angle_difference(angles[i + 1], angle) if i < last else 0.0
        segments.append(RibbonSegment(
            start=(float(pts[i][0]), float(pts[i][1])),
            end=(float(pts[i + 1][0]), float(pts[i + 1][1])),
            h0=float(hts[i]),
            h1=float(hts[i + 1]),
            start_miter=start_miter,
            end_miter=end_miter,
        ))
    return segments


def ribbon_overhang(edge_width: float = DEFAULT_EDGE_WIDTH) -> float:
    """Furthest the ribbon reaches past its polyline, measured in plan.

    The outer corner of a miter at the limit angle is the worst case.
    """
    return (edge_width / 2.0) / math.cos(math.radians(MITER_LIMIT_DEG)) + OVERLAP


def _half_space(kernel: MeshKernel, reach: float, height: float, forward: bool) -> Solid:
    """Box standing in for the half space ``x > 0`` (or ``x < 0``) near the origin."""

    cutter = kernel.box((reach, 2 * reach, height + 2.0))
    x = 0.0 if forward else -reach
    return cutter.translate((x, -reach, -1.0))


def _post(kernel: MeshKernel, height: float, radius: float, angle: float) -> Solid:
    """Vertical cylinder turned so no facet corner points along ``angle ± 90``."""

    step = 360.0 / kernel.segments
    phase = step / 2.0 if (90.0 / step).is_integer() else 0.0
    return kernel.cylinder(height, radius).rotate((0, 0, angle + phase))


def _segment_solid(kernel: MeshKernel, seg: RibbonSegment, edge_width: float,
                   open_start: bool, open_end: bool) -> Solid:
    length = seg.length
    start_cut = _clamp_miter(seg.start_miter)
    end_cut = _clamp_miter(seg.end_miter)
    half = edge_width / 2.0
    # Interior ends reach OVERLAP past the miter plane into the next segment.
    start_shift = 0.0 if open_start else OVERLAP
    end_shift = 0.0 if open_end else OVERLAP
    start_ext = half * abs(math.tan(math.radians(start_cut))) + start_shift + OVERLAP
    end_ext = half * abs(math.tan(math.radians(end_cut))) + end_shift + OVERLAP

    # Side profile (x along the segment, y up), extended flat past both
    # ends far enough to reach the shifted miter planes.
    profile = [
        (-start_ext, 0.0),
        (length + end_ext, 0.0),
        (length + end_ext, seg.h1),
        (length, seg.h1),
        (0.0, seg.h0),
        (-start_ext, seg.h0),
    ]

    piece = (kernel.polygon([profile], FillRule.NON_ZERO)
             .extrude(edge_width)
             .rotate((90, 0, 0))
             .translate((0, half, 0)))

    reach = 2.0 * (length + start_ext + end_ext + edge_width) + 10.0
    top = max(seg.h0, seg.h1)
    start_cutter = (_half_space(kernel, reach, top, forward=False)
                    .rotate((0, 0, start_cut))
                    .translate((-start_shift, 0, 0)))
    end_cutter = (_half_space(kernel, reach, top, forward=True)
                  .rotate((0, 0, end_cut))
                  .translate((length + end_shift, 0, 0)))
    piece = kernel.difference(piece, start_cutter, end_cutter)

    return piece.rotate((0, 0, seg.angle)).translate((seg.start[0], seg.start[1], 0))


def _end_cap(kernel: MeshKernel, center: Point2, height: float, angle: float,
             edge_width: float, outward: bool) -> Solid:
    """Half cylinder beyond a segment's end plane, reaching OVERLAP back into the segment."""

    cap = _post(kernel, height, edge_width / 2.0, angle)
    reach = 2.0 * edge_width + 2.0
    inner = _half_space(kernel, reach, height, forward=not outward)
    inner = inner.translate((-OVERLAP if outward else OVERLAP, 0, 0))
    cap = kernel.difference(cap, inner.rotate((0, 0, angle)))
    return cap.translate((center[0], center[1], 0))


def build_ribbon(kernel: MeshKernel, points: Sequence[Sequence[float]], heights: Sequence[float],
                 truncate_pct: float = 100.0, edge_width: float = DEFAULT_EDGE_WIDTH,
                 origin: Sequence[float] = (0.0, 0.0, 0.0)) -> Solid:
    """Build the ribbon solid for ``points`` with per-point ``heights``.

    ``truncate_pct`` keeps a leading fraction of the points; it is not
    clamped here. Fewer than two usable points give an empty solid.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    hts = np.asarray(heights, dtype=float).reshape(-1)
    if len(pts) != len(hts):
        raise DegenerateInputError(f"{len(pts)} points but {len(hts)} heights")

    count = truncate_count(len(pts), truncate_pct)
    segments = ribbon_segments(pts[:count], hts[:count])
    if not segments:
        logger.debug("ribbon has fewer than two usable points, skipping")
        return kernel.empty()

    last_index = len(segments) - 1
    pieces = [_segment_solid(kernel, seg, edge_width, open_start=(i == 0), open_end=(i == last_index))
              for i, seg in enumerate(segments)]

    radius = edge_width / 2.0
    for seg in segments[1:]:
        joint = _post(kernel, seg.h0, radius, seg.angle).translate((seg.start[0], seg.start[1], 0))
        pieces.append(joint)

    first, last = segments[0], segments[-1]
    pieces.append(_end_cap(kernel, first.start, first.h0, first.angle, edge_width, outward=False))
    pieces.append(_end_cap(kernel, last.end, last.h1, last.angle, edge_width, outward=True))

    ribbon = kernel.union(pieces)
    logger.debug("ribbon built from %d segments", len(segments))
    return ribbon.translate(origin)


__all__ = [
    'DEFAULT_EDGE_WIDTH',
    'MITER_LIMIT_DEG',
    'OVERLAP',
    'RibbonSegment',
    'build_ribbon',
    'half_angle_difference',
    'ribbon_overhang',
    'ribbon_segments',
    'truncate_count',
]
