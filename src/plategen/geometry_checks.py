"""Validation helpers for exported plategen geometry."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np

from plategen.kernel import TriangleMesh

epsilon = 1e-9


def is_closed_polygon(points: Sequence[Sequence[float]], tol: float = epsilon) -> bool:
    """Return ``True`` if a 2D contour ends where it starts, within ``tol``."""

    if len(points) < 4:
        return False
    first = points[0]
    last = points[-1]
    return float(np.hypot(first[0] - last[0], first[1] - last[1])) <= tol


def _welded_faces(mesh: TriangleMesh, decimals: int = 9) -> np.ndarray:
    # Coincident vertices share one index so edges can be matched by index.
    if len(mesh.faces) == 0:
        return np.zeros((0, 3), dtype=np.int64)
    _, inverse = np.unique(np.round(mesh.vertices, decimals), axis=0, return_inverse=True)
    inverse = np.asarray(inverse).reshape(-1)
    return inverse[mesh.faces]


def _edge_key(a: int, b: int) -> tuple[int, int]:
    return (a, b) if a < b else (b, a)


def mesh_watertight(mesh: TriangleMesh) -> "CheckResult":
    """Every edge must be shared by exactly two triangles."""

    edges = Counter()
    for a, b, c in _welded_faces(mesh):
        edges[_edge_key(a, b)] += 1
        edges[_edge_key(b, c)] += 1
        edges[_edge_key(c, a)] += 1

    boundary = [edge for edge, count in edges.items() if count == 1]
    invalid = [edge for edge, count in edges.items() if count > 2]

    warnings: List[str] = []
    ok = True
    if boundary:
        ok = False
        warnings.append(f'{len(boundary)} boundary edges detected')
    if invalid:
        ok = False
        warnings.append(f'{len(invalid)} edges shared by more than two faces')
    return CheckResult(ok, warnings)


def faces_oriented(mesh: TriangleMesh) -> "CheckResult":
    """Neighbouring triangles must traverse their shared edge in opposite directions,
    and the enclosed volume must be positive (normals facing out)."""

    faces = _welded_faces(mesh)
    if len(faces) == 0:
        return CheckResult(True, ['no faces found'])

    directed = Counter()
    for a, b, c in faces:
        directed[(a, b)] += 1
        directed[(b, c)] += 1
        directed[(c, a)] += 1
    repeated = sum(1 for count in directed.values() if count > 1)

    tri = mesh.triangles
    volume = float(np.einsum('ij,ij->i', tri[:, 0], np.cross(tri[:, 1], tri[:, 2])).sum() / 6.0)

    warnings: List[str] = []
    ok = True
    if repeated:
        ok = False
        warnings.append(f'{repeated} edges traversed twice in the same direction')
    if volume <= 0:
        ok = False
        warnings.append(f'signed volume {volume:g} is not positive, normals point inward')
    return CheckResult(ok, warnings)


@dataclass
class CheckResult:
    ok: bool
    warnings: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok


__all__ = [
    'CheckResult',
    'faces_oriented',
    'is_closed_polygon',
    'mesh_watertight',
]
