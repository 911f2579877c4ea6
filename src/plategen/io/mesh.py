"""Triangle views of solids for the file writers."""

from __future__ import annotations

from typing import Union

import numpy as np

from plategen.kernel import Solid, TriangleMesh


def as_triangle_mesh(obj: Union[Solid, TriangleMesh]) -> TriangleMesh:
    if isinstance(obj, TriangleMesh):
        return obj
    if isinstance(obj, Solid):
        return obj.to_triangle_mesh()
    raise TypeError(f"expected a Solid or TriangleMesh, got {type(obj).__name__}")


def unit_normals(mesh: TriangleMesh) -> np.ndarray:
    """Per-face unit normals; degenerate faces get a zero normal."""

    tri = mesh.triangles
    if len(tri) == 0:
        return np.zeros((0, 3))
    normals = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
    lengths = np.linalg.norm(normals, axis=1)
    return normals / np.where(lengths > 0, lengths, 1.0)[:, None]
