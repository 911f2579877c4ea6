"""Trimesh-backed mesh kernel for plategen solids.

Solids wrap ``trimesh.Trimesh`` instances and are never modified in
place: every transform and boolean returns a new :class:`Solid`.
Booleans are dispatched through :mod:`trimesh.boolean` to the
``manifold`` engine (the ``manifold3d`` package), which keeps results
watertight and deterministic.

Planar regions are resolved from raw contours with :mod:`shapely` using
an explicit :class:`FillRule`, then extruded with
``trimesh.creation.extrude_polygon``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import trimesh
from shapely.geometry import LineString, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import polygonize, unary_union

from plategen.errors import CapabilityInitError

logger = logging.getLogger(__name__)

ENGINE_NAME = "manifold"
DEFAULT_SEGMENTS = 32

Vec3 = Tuple[float, float, float]


def engines_available() -> set[str]:
    """Return the names of the trimesh boolean backends that are operational."""

    # recent trimesh lists None for its default engine
    return {engine for engine in trimesh.boolean.engines_available if engine}


class FillRule(Enum):
    """How overlapping contours decide which areas are filled."""

    EVEN_ODD = "evenodd"
    NON_ZERO = "nonzero"
    POSITIVE = "positive"
    NEGATIVE = "negative"

    def fills(self, winding: int) -> bool:
        if self is FillRule.EVEN_ODD:
            return winding % 2 == 1
        if self is FillRule.NON_ZERO:
            return winding != 0
        if self is FillRule.POSITIVE:
            return winding > 0
        return winding < 0


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounds of a non-empty solid."""

    min: Vec3
    max: Vec3

    @property
    def size(self) -> Vec3:
        return (self.max[0] - self.min[0],
                self.max[1] - self.min[1],
                self.max[2] - self.min[2])

    @property
    def center(self) -> Vec3:
        return ((self.max[0] + self.min[0]) / 2,
                (self.max[1] + self.min[1]) / 2,
                (self.max[2] + self.min[2]) / 2)

    def contains(self, other: "BoundingBox", tol: float = 1e-6) -> bool:
        return all(self.min[i] - tol <= other.min[i] and other.max[i] <= self.max[i] + tol
                   for i in range(3))


@dataclass(frozen=True, eq=False)
class TriangleMesh:
    """Indexed triangle mesh exported from a solid."""

    vertices: np.ndarray
    faces: np.ndarray

    @property
    def triangles(self) -> np.ndarray:
        return self.vertices[self.faces]

    def __len__(self) -> int:
        return len(self.faces)


def _empty_mesh() -> trimesh.Trimesh:
    return trimesh.Trimesh(vertices=np.zeros((0, 3)), faces=np.zeros((0, 3), dtype=np.int64), process=False)


class Solid:
    """Immutable watertight solid.

    The wrapped mesh is exposed read-only through :attr:`mesh`; callers
    must not mutate it.
    """

    __slots__ = ("_mesh",)

    def __init__(self, mesh: Optional[trimesh.Trimesh] = None):
        self._mesh = mesh if mesh is not None else _empty_mesh()

    def __repr__(self) -> str:
        if self.is_empty():
            return "Solid(empty)"
        return f"Solid(vertices={len(self._mesh.vertices)}, faces={len(self._mesh.faces)})"

    @property
    def mesh(self) -> trimesh.Trimesh:
        return self._mesh

    def is_empty(self) -> bool:
        return len(self._mesh.faces) == 0

    def bounding_box(self) -> Optional[BoundingBox]:
        if self.is_empty():
            return None
        lo, hi = self._mesh.bounds
        return BoundingBox(tuple(float(v) for v in lo), tuple(float(v) for v in hi))

    def volume(self) -> float:
        return 0.0 if self.is_empty() else float(self._mesh.volume)

    def transform(self, matrix) -> "Solid":
        """Apply a 4x4 homogeneous transform; reflections keep outward normals."""

        if self.is_empty():
            return self
        matrix = np.asarray(matrix, dtype=float)
        vertices = trimesh.transformations.transform_points(self._mesh.vertices, matrix)
        faces = np.array(self._mesh.faces, dtype=np.int64)
        if np.linalg.det(matrix[:3, :3]) < 0:
            faces = faces[:, ::-1].copy()
        return Solid(trimesh.Trimesh(vertices=vertices, faces=faces, process=False))

    def translate(self, offset: Sequence[float]) -> "Solid":
        return self.transform(trimesh.transformations.translation_matrix(
            [float(offset[0]), float(offset[1]), float(offset[2])]))

    def rotate(self, angles: Sequence[float]) -> "Solid":
        """Rotate by ``(x, y, z)`` degrees about the origin, X first, then Y, then Z."""

        rx, ry, rz = (np.radians(float(a)) for a in angles)
        return self.transform(trimesh.transformations.euler_matrix(rx, ry, rz, 'sxyz'))

    def rotate_about(self, angles: Sequence[float], pivot: Sequence[float]) -> "Solid":
        return self.translate([-p for p in pivot]).rotate(angles).translate(pivot)

    def mirror(self, normal: Sequence[float]) -> "Solid":
        """Reflect through the plane through the origin with the given normal."""

        n = np.asarray(normal, dtype=float)
        length = np.linalg.norm(n)
        if length == 0:
            raise ValueError("mirror normal has zero length")
        n = n / length
        matrix = np.eye(4)
        matrix[:3, :3] -= 2.0 * np.outer(n, n)
        return self.transform(matrix)

    def scale(self, factor) -> "Solid":
        if np.isscalar(factor):
            factor = (factor, factor, factor)
        sx, sy, sz = (float(f) for f in factor)
        return self.transform(np.diag([sx, sy, sz, 1.0]))

    def to_triangle_mesh(self) -> TriangleMesh:
        return TriangleMesh(
            vertices=np.array(self._mesh.vertices, dtype=np.float64),
            faces=np.array(self._mesh.faces, dtype=np.int64),
        )


# ---------------------------------------------------------------------------
# Planar regions
# ---------------------------------------------------------------------------


def _closed_ring(points: Sequence[Sequence[float]]) -> np.ndarray:
    ring = np.asarray([(float(p[0]), float(p[1])) for p in points], dtype=float)
    if len(ring) and not np.array_equal(ring[0], ring[-1]):
        ring = np.vstack([ring, ring[:1]])
    return ring


def winding_number(ring: np.ndarray, x: float, y: float) -> int:
    """Winding number of closed ``ring`` around ``(x, y)``; counter-clockwise is positive."""

    x0, y0 = ring[:-1, 0], ring[:-1, 1]
    x1, y1 = ring[1:, 0], ring[1:, 1]
    is_left = (x1 - x0) * (y - y0) - (x - x0) * (y1 - y0)
    upward = (y0 <= y) & (y1 > y) & (is_left > 0)
    downward = (y0 > y) & (y1 <= y) & (is_left < 0)
    return int(np.count_nonzero(upward) - np.count_nonzero(downward))


def signed_area(points: Sequence[Sequence[float]]) -> float:
    """Shoelace area; positive for counter-clockwise contours."""

    ring = _closed_ring(points)
    if len(ring) < 4:
        return 0.0
    x, y = ring[:, 0], ring[:, 1]
    return float(0.5 * np.sum(x[:-1] * y[1:] - x[1:] * y[:-1]))


def resolve_contours(contours: Iterable[Sequence[Sequence[float]]], fill_rule: FillRule) -> BaseGeometry:
    """Resolve possibly overlapping contours into a filled shapely geometry.

    The contours are noded into a planar arrangement; each face is kept
    when the summed winding number at an interior point satisfies
    ``fill_rule``.
    """

    rings = [_closed_ring(c) for c in contours]
    rings = [r for r in rings if len(r) >= 4]
    if not rings:
        return Polygon()

    noded = unary_union([LineString(r) for r in rings])
    kept = []
    for face in polygonize(noded):
        if face.is_empty or face.area <= 0:
            continue
        inside = face.representative_point()
        winding = sum(winding_number(r, inside.x, inside.y) for r in rings)
        if fill_rule.fills(winding):
            kept.append(face)
    if not kept:
        return Polygon()
    return unary_union(kept)


def _polygons_of(geometry: BaseGeometry) -> List[Polygon]:
    if geometry.is_empty:
        return []
    if isinstance(geometry, Polygon):
        return [geometry]
    if isinstance(geometry, MultiPolygon):
        return [g for g in geometry.geoms if g.area > 0]
    return [g for g in getattr(geometry, 'geoms', []) if isinstance(g, Polygon) and g.area > 0]


class Region:
    """Filled planar region in the XY plane, ready for extrusion."""

    __slots__ = ("_geometry",)

    def __init__(self, geometry: Optional[BaseGeometry] = None):
        self._geometry = geometry if geometry is not None else Polygon()

    @classmethod
    def from_contours(cls, contours, fill_rule: FillRule = FillRule.EVEN_ODD) -> "Region":
        return cls(resolve_contours(contours, fill_rule))

    @property
    def geometry(self) -> BaseGeometry:
        return self._geometry

    def is_empty(self) -> bool:
        return not _polygons_of(self._geometry)

    @property
    def area(self) -> float:
        return float(self._geometry.area)

    def polygons(self) -> List[Polygon]:
        return _polygons_of(self._geometry)

    def extrude(self, height: float) -> Solid:
        """Extrude along +Z from ``z = 0`` to ``z = height``."""

        polygons = self.polygons()
        if not polygons or height <= 0:
            return Solid()
        meshes = [trimesh.creation.extrude_polygon(p, height, engine='earcut') for p in polygons]
        mesh = meshes[0] if len(meshes) == 1 else trimesh.util.concatenate(meshes)
        return Solid(mesh)


# ---------------------------------------------------------------------------
# Kernel
# ---------------------------------------------------------------------------


def _frustum_mesh(height: float, r0: float, r1: float, segments: int) -> trimesh.Trimesh:
    angles = np.linspace(0.0, 2.0 * np.pi, segments, endpoint=False)
    ring = np.column_stack([np.cos(angles), np.sin(angles)])
    vertices: List[List[float]] = []
    faces: List[List[int]] = []

    def add_ring(radius: float, z: float) -> List[int]:
        if radius <= 0:
            vertices.append([0.0, 0.0, z])
            return [len(vertices) - 1] * segments
        start = len(vertices)
        vertices.extend([[x * radius, y * radius, z] for x, y in ring])
        return list(range(start, start + segments))

    bottom = add_ring(r0, 0.0)
    top = add_ring(r1, height)

    for i in range(segments):
        j = (i + 1) % segments
        b0, b1, t0, t1 = bottom[i], bottom[j], top[i], top[j]
        if b0 != b1:
            faces.append([b0, b1, t1])
        if t0 != t1:
            faces.append([b0, t1, t0])

    if r0 > 0:
        vertices.append([0.0, 0.0, 0.0])
        c = len(vertices) - 1
        faces.extend([c, bottom[(i + 1) % segments], bottom[i]] for i in range(segments))
    if r1 > 0:
        vertices.append([0.0, 0.0, height])
        c = len(vertices) - 1
        faces.extend([c, top[i], top[(i + 1) % segments]] for i in range(segments))

    return trimesh.Trimesh(vertices=np.asarray(vertices, dtype=float),
                           faces=np.asarray(faces, dtype=np.int64), process=False)


class MeshKernel:
    """Primitive and boolean operations over :class:`Solid` values."""

    def __init__(self, engine: str = ENGINE_NAME, segments: int = DEFAULT_SEGMENTS):
        self.engine = engine
        self.segments = segments

    def __repr__(self) -> str:
        return f"MeshKernel(engine={self.engine!r}, segments={self.segments})"

    @classmethod
    def load(cls, engine: str = ENGINE_NAME, segments: int = DEFAULT_SEGMENTS) -> "MeshKernel":
        """Construct a kernel after checking the boolean backend is usable."""

        available = engines_available()
        if engine not in available:
            raise CapabilityInitError(
                f"trimesh boolean backend '{engine}' is not available "
                f"(available: {sorted(available)}); install manifold3d"
            )
        logger.debug("mesh kernel ready with engine %s", engine)
        return cls(engine, segments)

    # primitives

    def empty(self) -> Solid:
        return Solid()

    def box(self, size: Sequence[float], center: bool = False) -> Solid:
        """Box with one corner at the origin, or centred when ``center`` is set."""

        extents = np.asarray([float(s) for s in size], dtype=float)
        if np.any(extents <= 0):
            return Solid()
        solid = Solid(trimesh.creation.box(extents=extents))
        return solid if center else solid.translate(extents / 2.0)

    def cylinder(self, height: float, radius_low: float, radius_high: Optional[float] = None,
                 segments: Optional[int] = None, center: bool = False) -> Solid:
        """Cylinder or frustum along +Z starting at ``z = 0``."""

        if radius_high is None:
            radius_high = radius_low
        if height <= 0 or (radius_low <= 0 and radius_high <= 0):
            return Solid()
        solid = Solid(_frustum_mesh(float(height), float(radius_low), float(radius_high),
                                    segments or self.segments))
        return solid.translate((0, 0, -height / 2.0)) if center else solid

    def polygon(self, contours, fill_rule: FillRule = FillRule.EVEN_ODD) -> Region:
        return Region.from_contours(contours, fill_rule)

    # booleans

    def _boolean(self, operation: str, solids: List[Solid]) -> Solid:
        meshes = [s.mesh for s in solids]
        op = getattr(trimesh.boolean, operation)
        try:
            result = op(meshes, engine=self.engine, check_volume=False)
        except Exception as exc:
            raise RuntimeError(f"{self.engine} boolean {operation} failed: {exc}") from exc
        if result is None or len(result.faces) == 0:
            return Solid()
        return Solid(result)

    def union(self, solids: Iterable[Solid]) -> Solid:
        parts = [s for s in solids if not s.is_empty()]
        if not parts:
            return Solid()
        if len(parts) == 1:
            return parts[0]
        return self._boolean('union', parts)

    def difference(self, base: Solid, *others: Solid) -> Solid:
        if base.is_empty():
            return base
        cutters = [s for s in others if not s.is_empty()]
        if not cutters:
            return base
        return self._boolean('difference', [base] + cutters)

    def intersection(self, base: Solid, *others: Solid) -> Solid:
        if base.is_empty() or any(s.is_empty() for s in others):
            return Solid()
        if not others:
            return base
        return self._boolean('intersection', [base] + list(others))


__all__ = [
    'ENGINE_NAME',
    'BoundingBox',
    'FillRule',
    'MeshKernel',
    'Region',
    'Solid',
    'TriangleMesh',
    'engines_available',
    'resolve_contours',
    'signed_area',
    'winding_number',
]
