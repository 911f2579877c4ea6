"""STL import and export for plategen solids.

Binary files are read and written as packed numpy records, 50 bytes per
triangle after the 80-byte header and the triangle count.
"""

from __future__ import annotations

import contextlib
import logging
import re
import struct
from typing import Union

import numpy as np

from plategen.io.mesh import as_triangle_mesh, unit_normals
from plategen.kernel import Solid, TriangleMesh

logger = logging.getLogger(__name__)

_HEADER_SIZE = 80
_RECORD = np.dtype([('normal', '<f4', 3), ('vertices', '<f4', (3, 3)), ('attr', '<u2')])


@contextlib.contextmanager
def _opened(path_or_file, mode: str, **kwargs):
    # Streams passed in by the caller stay open.
    if hasattr(path_or_file, 'write'):
        yield path_or_file
    else:
        with open(path_or_file, mode, **kwargs) as stream:
            yield stream


def write_stl(obj: Union[Solid, TriangleMesh], path_or_file, *, binary: bool = True,
              name: str = 'plategen') -> None:
    """Write ``obj`` (solid or triangle mesh) to STL.

    ``path_or_file`` can be a filesystem path or an open binary/text stream.
    """

    mesh = as_triangle_mesh(obj)
    logger.debug("writing %d triangles to STL", len(mesh))
    if binary:
        with _opened(path_or_file, 'wb') as stream:
            stream.write(_binary_stl(mesh, name))
    else:
        with _opened(path_or_file, 'w', encoding='ascii') as stream:
            stream.write(_ascii_stl(mesh, name))


def _binary_stl(mesh: TriangleMesh, name: str) -> bytes:
    records = np.zeros(len(mesh), dtype=_RECORD)
    if len(mesh):
        records['normal'] = unit_normals(mesh)
        records['vertices'] = mesh.triangles
    header = name[:_HEADER_SIZE].encode('ascii', errors='replace').ljust(_HEADER_SIZE, b' ')
    return header + struct.pack('<I', len(records)) + records.tobytes()


def _ascii_stl(mesh: TriangleMesh, name: str) -> str:
    lines = [f"solid {name}"]
    for normal, tri in zip(unit_normals(mesh), mesh.triangles):
        lines.append("  facet normal {:.6e} {:.6e} {:.6e}".format(*normal))
        lines.append("    outer loop")
        lines.extend("      vertex {:.6e} {:.6e} {:.6e}".format(*v) for v in tri)
        lines.append("    endloop")
        lines.append("  endfacet")
    lines.append(f"endsolid {name}")
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# STL Import
# ---------------------------------------------------------------------------


def _is_binary_stl(data: bytes) -> bool:
    """Binary STL is an 80-byte header, a count, then 50 bytes per triangle."""

    if len(data) < 84:
        return False
    tri_count = struct.unpack('<I', data[80:84])[0]
    if len(data) == 84 + tri_count * 50:
        return True
    return not data[:80].lstrip().lower().startswith(b'solid')


_FLOAT = r'([eE\d.+-]+)'
_FACET = re.compile(
    r'facet\s+normal\s+' + r'\s+'.join([_FLOAT] * 3) + r'\s+outer\s+loop\s+'
    + r'\s+'.join([r'vertex\s+' + r'\s+'.join([_FLOAT] * 3)] * 3)
    + r'\s+endloop\s+endfacet',
    re.IGNORECASE,
)


def _parse_binary_stl(data: bytes) -> np.ndarray:
    tri_count = struct.unpack('<I', data[80:84])[0]
    records = np.frombuffer(data, dtype=_RECORD, count=tri_count, offset=_HEADER_SIZE + 4)
    return records['vertices'].astype(np.float64)


def _parse_ascii_stl(text: str) -> np.ndarray:
    rows = [[float(v) for v in match.groups()[3:]] for match in _FACET.finditer(text)]
    return np.asarray(rows, dtype=np.float64).reshape(-1, 3, 3)


def read_stl(path_or_file) -> TriangleMesh:
    """Read binary or ASCII STL into an indexed mesh, merging shared corners."""

    if hasattr(path_or_file, 'read'):
        data = path_or_file.read()
        if isinstance(data, str):
            data = data.encode('utf-8')
    else:
        with open(path_or_file, 'rb') as f:
            data = f.read()

    if _is_binary_stl(data):
        triangles = _parse_binary_stl(data)
    else:
        triangles = _parse_ascii_stl(data.decode('utf-8', errors='replace'))

    if len(triangles) == 0:
        return TriangleMesh(np.zeros((0, 3)), np.zeros((0, 3), dtype=np.int64))
    vertices, inverse = np.unique(triangles.reshape(-1, 3), axis=0, return_inverse=True)
    faces = np.asarray(inverse, dtype=np.int64).reshape(-1, 3)
    return TriangleMesh(vertices, faces)


__all__ = ['read_stl', 'write_stl']
