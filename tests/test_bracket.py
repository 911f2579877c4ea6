"""Tests for the mounting bracket builder."""

import pytest

from plategen.bracket import (
    build_bracket,
    build_ear,
    build_ribs,
    build_shell,
    calculate_spacing,
    clamp_hole_diameter,
)
from plategen.geometry_checks import faces_oriented, mesh_watertight
from plategen.params import BracketParams


class TestCalculateSpacing:

    def test_single_item(self):
        assert calculate_spacing(20, 2, 1) == [0.0]

    def test_no_items(self):
        assert calculate_spacing(20, 2, 0) == []
        assert calculate_spacing(20, 2, -3) == []

    def test_four_items(self):
        positions = calculate_spacing(20, 2, 4)
        assert len(positions) == 4
        assert positions[0] == pytest.approx(2)
        assert all(b > a for a, b in zip(positions, positions[1:]))
        assert positions[-1] + 2 <= 20
        gaps = [b - a for a, b in zip(positions, positions[1:])]
        assert gaps == pytest.approx([gaps[0]] * 3)

    def test_default_ribs(self):
        assert calculate_spacing(20, 2, 3) == pytest.approx([2, 9, 16])


class TestClampHoleDiameter:

    def test_requested_fits(self):
        assert clamp_hole_diameter(3.5, 10, 20) == 3.5

    def test_clamped_by_ear_width(self):
        assert clamp_hole_diameter(9, 10, 20) == 4

    def test_clamped_by_depth(self):
        assert clamp_hole_diameter(9, 30, 6) == 2

    def test_clamps_to_nothing(self):
        assert clamp_hole_diameter(3.5, 2, 20) <= 0


class TestParts:

    def test_ear_with_hole(self, kernel):
        params = BracketParams()
        ear = build_ear(kernel, params)
        solid_volume = params.ear_width * params.bracket_thickness * params.depth
        assert ear.bounding_box().size == pytest.approx((10, 3, 20))
        assert ear.volume() < solid_volume
        assert mesh_watertight(ear.to_triangle_mesh())

    def test_ear_hole_skipped(self, kernel):
        params = BracketParams(ear_width=2, hole_diameter=3.5)
        ear = build_ear(kernel, params)
        plain = kernel.box((2, params.bracket_thickness, params.depth))
        assert ear.bounding_box() == plain.bounding_box()
        assert ear.volume() == pytest.approx(plain.volume())

    def test_negative_hole_skipped(self, kernel):
        params = BracketParams(hole_diameter=-1)
        assert build_ear(kernel, params).volume() == pytest.approx(10 * 3 * 20)

    def test_open_shell(self, kernel):
        params = BracketParams()
        shell = build_shell(kernel, params)
        bb = shell.bounding_box()
        assert bb.size == pytest.approx((35 + 6, 15 + 6, 20))
        outer = 41 * 21 * 20
        assert shell.volume() == pytest.approx(outer - 35 * 18 * 20)

    def test_bottom_adds_floor(self, kernel):
        open_shell = build_shell(kernel, BracketParams())
        closed = build_shell(kernel, BracketParams(has_bottom=True))
        assert closed.volume() - open_shell.volume() == pytest.approx(35 * 18 * 3)

    def test_ribs_against_left_wall(self, kernel):
        params = BracketParams()
        bb = build_ribs(kernel, params).bounding_box()
        assert bb.min[0] == pytest.approx(-5)
        assert bb.max[0] == pytest.approx(0)
        assert bb.max[1] == pytest.approx(params.height + params.bracket_thickness)
        assert bb.min[2] == pytest.approx(2)
        assert bb.max[2] == pytest.approx(18)

    def test_no_ribs(self, kernel):
        assert build_ribs(kernel, BracketParams(rib_count=0)).is_empty()


class TestBuildBracket:

    def test_bounds(self, kernel):
        params = BracketParams()
        bb = build_bracket(kernel, params).bounding_box()
        assert bb.min == pytest.approx((-10, 0, 0))
        assert bb.max == pytest.approx((41 + 10, 15 + 6, 20))

    def test_symmetric(self, kernel):
        bb = build_bracket(kernel, BracketParams(rib_count=4)).bounding_box()
        assert bb.center[0] == pytest.approx(41 / 2)

    def test_watertight(self, kernel):
        mesh = build_bracket(kernel, BracketParams(has_bottom=True)).to_triangle_mesh()
        assert mesh_watertight(mesh)
        assert faces_oriented(mesh)

    def test_ribs_add_material(self, kernel):
        with_ribs = build_bracket(kernel, BracketParams(rib_count=3))
        without = build_bracket(kernel, BracketParams(rib_count=0))
        rib_volume = 0.5 * 5 * (0.8 * 18) * 2
        assert with_ribs.volume() - without.volume() == pytest.approx(6 * rib_volume)
