"""Tests for STL and 3MF export."""

import io
import struct
import xml.etree.ElementTree as ET
import zipfile

import numpy as np
import pytest

from plategen.geometry_checks import mesh_watertight
from plategen.io import read_stl, write_3mf, write_stl
from plategen.io.threemf import build_model_xml

CORE_NS = '{http://schemas.microsoft.com/3dmanufacturing/core/2015/02}'


@pytest.fixture
def box(kernel):
    return kernel.box((2, 3, 4))


def test_write_stl_binary(tmp_path, box):
    path = tmp_path / 'box.stl'
    write_stl(box, path, binary=True, name='test')

    data = path.read_bytes()
    assert len(data) == 80 + 4 + 12 * 50
    assert data[0:4] == b'test'
    count = struct.unpack('<I', data[80:84])[0]
    assert count == 12


def test_write_stl_ascii(box):
    buf = io.StringIO()
    write_stl(box, buf, binary=False, name='ascii_test')

    text = buf.getvalue()
    assert text.startswith('solid ascii_test')
    assert text.count('facet normal') == 12
    assert text.strip().endswith('endsolid ascii_test')


def test_write_stl_accepts_triangle_mesh(box):
    buf = io.BytesIO()
    write_stl(box.to_triangle_mesh(), buf)
    assert len(buf.getvalue()) == 84 + 600


def test_write_stl_rejects_other_types():
    with pytest.raises(TypeError):
        write_stl([[0, 0, 0]], io.BytesIO())


def test_normals_point_outward(tmp_path, box):
    path = tmp_path / 'box.stl'
    write_stl(box, path)
    data = path.read_bytes()
    center = np.array([1.0, 1.5, 2.0])
    for i in range(12):
        values = struct.unpack('<12f', data[84 + i * 50:84 + i * 50 + 48])
        normal = np.array(values[:3])
        centroid = np.array(values[3:]).reshape(3, 3).mean(axis=0)
        assert np.dot(normal, centroid - center) > 0


@pytest.mark.parametrize('binary', [True, False])
def test_read_stl(tmp_path, box, binary):
    path = tmp_path / 'box.stl'
    write_stl(box, path, binary=binary)
    mesh = read_stl(path)
    assert len(mesh.vertices) == 8
    assert len(mesh.faces) == 12
    assert mesh_watertight(mesh)


def test_read_empty_stl():
    buf = io.BytesIO()
    buf.write(b'empty'.ljust(80, b' ') + struct.pack('<I', 0))
    buf.seek(0)
    assert len(read_stl(buf).faces) == 0


class Test3MF:

    def _model(self, path):
        with zipfile.ZipFile(path) as zf:
            names = set(zf.namelist())
            root = ET.fromstring(zf.read('3D/3dmodel.model'))
        return names, root

    def test_package_layout(self, tmp_path, box):
        path = tmp_path / 'box.3mf'
        write_3mf(box, path, title='Box')
        names, root = self._model(path)
        assert names == {'[Content_Types].xml', '_rels/.rels', '3D/3dmodel.model'}
        assert root.get('unit') == 'millimeter'

    def test_mesh_counts(self, tmp_path, box):
        path = tmp_path / 'box.3mf'
        write_3mf(box, path, title='Box')
        _, root = self._model(path)
        assert len(root.findall(f'.//{CORE_NS}vertex')) == 8
        assert len(root.findall(f'.//{CORE_NS}triangle')) == 12
        assert len(root.findall(f'.//{CORE_NS}item')) == 1

    def test_metadata(self, tmp_path, box):
        path = tmp_path / 'box.3mf'
        write_3mf(box, path, title='Century <100> & more', application='tester')
        _, root = self._model(path)
        meta = {m.get('name'): m.text for m in root.findall(f'{CORE_NS}metadata')}
        assert meta == {'Title': 'Century <100> & more', 'Application': 'tester'}

    def test_color(self, tmp_path, box):
        path = tmp_path / 'box.3mf'
        write_3mf(box, path, title='Box', color='#ff0090')
        _, root = self._model(path)
        base = root.find(f'.//{CORE_NS}base')
        assert base.get('displaycolor') == '#FF0090'
        assert root.find(f'.//{CORE_NS}object').get('pid') == '2'

    def test_stream_output(self, box):
        buf = io.BytesIO()
        write_3mf(box, buf, title='Box')
        assert zipfile.is_zipfile(io.BytesIO(buf.getvalue()))

    def test_precision(self, kernel):
        mesh = kernel.box((1 / 3, 1, 1)).to_triangle_mesh()
        xml = build_model_xml(mesh, 'p')
        assert 'x="0.3333333"' in xml

    def test_bad_color(self, box):
        with pytest.raises(ValueError):
            build_model_xml(box.to_triangle_mesh(), 't', color='magenta')

    def test_bad_unit(self, box):
        with pytest.raises(ValueError):
            build_model_xml(box.to_triangle_mesh(), 't', unit='furlong')
