"""3MF export: a zip package holding a single mesh object."""

from __future__ import annotations

import logging
import re
import zipfile
from typing import Optional, Union
from xml.sax.saxutils import escape, quoteattr

from plategen.io.mesh import as_triangle_mesh
from plategen.kernel import Solid, TriangleMesh

logger = logging.getLogger(__name__)

MODEL_PATH = '3D/3dmodel.model'
PRECISION = 7  # significant digits per coordinate

CONTENT_TYPES = '''<?xml version="1.0" encoding="UTF-8"?>
<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">
  <Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>
  <Default Extension="model" ContentType="application/vnd.ms-package.3dmanufacturing-3dmodel+xml"/>
</Types>'''

RELATIONSHIPS = '''<?xml version="1.0" encoding="UTF-8"?>
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Target="/3D/3dmodel.model" Id="rel0" Type="http://schemas.microsoft.com/3dmanufacturing/2013/01/3dmodel"/>
</Relationships>'''

UNITS = ('micron', 'millimeter', 'centimeter', 'inch', 'foot', 'meter')

_COLOR = re.compile(r'^#([0-9a-fA-F]{6}|[0-9a-fA-F]{8})$')


def _num(value: float) -> str:
    text = f"{value:.{PRECISION}g}"
    return '0' if text == '-0' else text


def build_model_xml(mesh: TriangleMesh, title: str, unit: str = 'millimeter',
                    application: str = 'plategen', color: Optional[str] = None) -> str:
    """The ``3D/3dmodel.model`` document for ``mesh``."""

    if unit not in UNITS:
        raise ValueError(f"unsupported 3MF unit {unit!r}")
    if color is not None and not _COLOR.match(color):
        raise ValueError(f"color must be #RRGGBB or #RRGGBBAA, got {color!r}")

    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<model unit="{unit}" xml:lang="en-US" '
        'xmlns="http://schemas.microsoft.com/3dmanufacturing/core/2015/02">',
        f'  <metadata name="Title">{escape(title)}</metadata>',
        f'  <metadata name="Application">{escape(application)}</metadata>',
        '  <resources>',
    ]
    object_attrs = 'id="1" type="model"'
    if color is not None:
        parts.append('    <basematerials id="2">')
        parts.append(f'      <base name={quoteattr(title or "default")} displaycolor="{color.upper()}"/>')
        parts.append('    </basematerials>')
        object_attrs += ' pid="2" pindex="0"'

    parts.append(f'    <object {object_attrs}>')
    parts.append('      <mesh>')
    parts.append('        <vertices>')
    for x, y, z in mesh.vertices.tolist():
        parts.append(f'          <vertex x="{_num(x)}" y="{_num(y)}" z="{_num(z)}"/>')
    parts.append('        </vertices>')
    parts.append('        <triangles>')
    for a, b, c in mesh.faces.tolist():
        parts.append(f'          <triangle v1="{a}" v2="{b}" v3="{c}"/>')
    parts.append('        </triangles>')
    parts.append('      </mesh>')
    parts.append('    </object>')
    parts.append('  </resources>')
    parts.append('  <build>')
    parts.append('    <item objectid="1"/>')
    parts.append('  </build>')
    parts.append('</model>')
    return '\n'.join(parts)


def write_3mf(obj: Union[Solid, TriangleMesh], path_or_file, title: str = 'plategen model', *,
              unit: str = 'millimeter', application: str = 'plategen',
              color: Optional[str] = None) -> None:
    """Write ``obj`` as a 3MF package to a path or a binary stream."""

    mesh = as_triangle_mesh(obj)
    model = build_model_xml(mesh, title, unit=unit, application=application, color=color)
    with zipfile.ZipFile(path_or_file, 'w', zipfile.ZIP_DEFLATED) as zf:
        zf.writestr('[Content_Types].xml', CONTENT_TYPES)
        zf.writestr('_rels/.rels', RELATIONSHIPS)
        zf.writestr(MODEL_PATH, model)
    logger.debug("wrote 3MF with %d vertices and %d triangles", len(mesh.vertices), len(mesh.faces))


__all__ = ['build_model_xml', 'write_3mf']
