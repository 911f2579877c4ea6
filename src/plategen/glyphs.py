"""Conversion of glyph outline commands into closed polygon contours.

Outline commands arrive in font space (y-up). Every emitted point has its
y coordinate negated; :mod:`plategen.text3d` turns the extruded text
upright again. Curves are flattened by recursive midpoint subdivision,
bounded by a flatness tolerance and a maximum depth, or sampled at a
fixed number of steps when ``steps`` is given.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from plategen.fonts import FontSource, PathCommand
from plategen.kernel import FillRule

logger = logging.getLogger(__name__)

Point2 = Tuple[float, float]

DEFAULT_TOLERANCE = 0.01   # mm, maximum deviation of a flattened curve
MAX_DEPTH = 16


def _cubic_is_flat(p0: Point2, p1: Point2, p2: Point2, p3: Point2, tolerance: float) -> bool:
    # Bound on the distance between the curve and its chord: the value
    # below is at most 16 * tolerance**2 when the curve is flat enough.
    ux = 3.0 * p1[0] - 2.0 * p0[0] - p3[0]
    uy = 3.0 * p1[1] - 2.0 * p0[1] - p3[1]
    vx = 3.0 * p2[0] - 2.0 * p3[0] - p0[0]
    vy = 3.0 * p2[1] - 2.0 * p3[1] - p0[1]
    return max(ux * ux, vx * vx) + max(uy * uy, vy * vy) <= 16.0 * tolerance * tolerance


def _mid(a: Point2, b: Point2) -> Point2:
    return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)


def flatten_cubic(p0: Point2, p1: Point2, p2: Point2, p3: Point2,
                  tolerance: float = DEFAULT_TOLERANCE, max_depth: int = MAX_DEPTH,
                  out: Optional[List[Point2]] = None) -> List[Point2]:
    """Flatten a cubic Bezier; returns the points after ``p0`` up to ``p3``."""

    if out is None:
        out = []
    if max_depth <= 0 or _cubic_is_flat(p0, p1, p2, p3, tolerance):
        out.append(p3)
        return out

    p01, p12, p23 = _mid(p0, p1), _mid(p1, p2), _mid(p2, p3)
    p012, p123 = _mid(p01, p12), _mid(p12, p23)
    p0123 = _mid(p012, p123)
    flatten_cubic(p0, p01, p012, p0123, tolerance, max_depth - 1, out)
    flatten_cubic(p0123, p123, p23, p3, tolerance, max_depth - 1, out)
    return out


def quad_to_cubic(p0: Point2, c: Point2, p1: Point2) -> Tuple[Point2, Point2, Point2, Point2]:
    """Degree-elevate a quadratic Bezier."""

    c1 = (p0[0] + 2.0 / 3.0 * (c[0] - p0[0]), p0[1] + 2.0 / 3.0 * (c[1] - p0[1]))
    c2 = (p1[0] + 2.0 / 3.0 * (c[0] - p1[0]), p1[1] + 2.0 / 3.0 * (c[1] - p1[1]))
    return p0, c1, c2, p1


def sample_cubic(p0: Point2, p1: Point2, p2: Point2, p3: Point2, steps: int) -> List[Point2]:
    """Fixed-step sampling; returns ``steps`` points after ``p0`` ending at ``p3``."""

    out = []
    for i in range(1, steps + 1):
        t = i / steps
        s = 1.0 - t
        a, b, c, d = s * s * s, 3 * s * s * t, 3 * s * t * t, t * t * t
        out.append((a * p0[0] + b * p1[0] + c * p2[0] + d * p3[0],
                    a * p0[1] + b * p1[1] + c * p2[1] + d * p3[1]))
    out[-1] = p3
    return out


@dataclass
class GlyphContours:
    """Closed contours (last point equals first) plus the fill rule they need."""

    contours: List[List[Point2]] = field(default_factory=list)
    fill_rule: FillRule = FillRule.EVEN_ODD

    def __len__(self) -> int:
        return len(self.contours)

    def __iter__(self):
        return iter(self.contours)

    def __bool__(self) -> bool:
        return bool(self.contours)


def _finish(points: List[Point2], reverse: bool) -> Optional[List[Point2]]:
    if points and points[0] == points[-1]:
        points = points[:-1]
    if len(points) < 3:
        return None
    if reverse:
        points = points[::-1]
    return points + [points[0]]


def contours_from_commands(commands: Iterable[PathCommand], tolerance: float = DEFAULT_TOLERANCE,
                           steps: Optional[int] = None, reverse: bool = False) -> List[List[Point2]]:
    """Turn outline commands into closed contours with y negated.

    A contour starts at each ``M`` and is closed at ``Z`` (or at the next
    ``M``/end of input). Consecutive duplicate points are dropped and
    contours with fewer than three distinct vertices are discarded.
    ``reverse`` flips the direction of every contour alike.
    """
    contours: List[List[Point2]] = []
    current: List[Point2] = []
    pen: Optional[Point2] = None

    def emit(p: Point2):
        q = (float(p[0]), -float(p[1]))
        if not current or current[-1] != q:
            current.append(q)

    def close():
        nonlocal current
        finished = _finish(current, reverse)
        if finished is not None:
            contours.append(finished)
        current = []

    for cmd in commands:
        op = cmd.op
        if op == 'M':
            if current:
                close()
            pen = cmd.points[0]
            emit(pen)
        elif op == 'Z':
            close()
        elif pen is None:
            raise ValueError(f"outline command {op!r} before any move")
        elif op == 'L':
            pen = cmd.points[0]
            emit(pen)
        elif op in ('Q', 'C'):
            if op == 'Q':
                p0, c1, c2, p3 = quad_to_cubic(pen, cmd.points[0], cmd.points[1])
            else:
                p0, (c1, c2, p3) = pen, cmd.points
            if steps:
                flat = sample_cubic(p0, c1, c2, p3, steps)
            else:
                flat = flatten_cubic(p0, c1, c2, p3, tolerance)
            for p in flat:
                emit(p)
            pen = p3
        else:
            raise ValueError(f"unknown outline command {op!r}")
    if current:
        close()
    return contours


def text_contours(font: FontSource, text: str, size: float,
                  fill_rule: FillRule = FillRule.EVEN_ODD, reverse: bool = False,
                  tolerance: float = DEFAULT_TOLERANCE, steps: Optional[int] = None) -> GlyphContours:
    """Contours for ``text`` set in ``font`` at ``size`` mm per em.

    Empty results are not an error: the returned value is simply falsy.
    """
    result = GlyphContours(fill_rule=fill_rule)
    for glyph in font.glyph_paths(text, size):
        result.contours.extend(contours_from_commands(glyph, tolerance, steps, reverse))
    if text.strip() and not result:
        logger.debug("no usable contours for %r in font %s", text, getattr(font, 'name', font))
    return result


__all__ = [
    'DEFAULT_TOLERANCE',
    'MAX_DEPTH',
    'GlyphContours',
    'contours_from_commands',
    'flatten_cubic',
    'quad_to_cubic',
    'sample_cubic',
    'text_contours',
]
