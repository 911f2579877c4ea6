"""Tests for glyph outline flattening into contours."""

import pytest

from plategen.fonts import BlockFont, PathCommand
from plategen.geometry_checks import is_closed_polygon
from plategen.glyphs import (
    GlyphContours,
    contours_from_commands,
    flatten_cubic,
    quad_to_cubic,
    sample_cubic,
    text_contours,
)
from plategen.kernel import FillRule, Region, signed_area


def _square_commands(x0, y0, size, clockwise=True):
    corners = [(x0, y0), (x0, y0 + size), (x0 + size, y0 + size), (x0 + size, y0)]
    if not clockwise:
        corners = corners[:1] + corners[:0:-1]
    cmds = [PathCommand('M', (corners[0],))]
    cmds += [PathCommand('L', (c,)) for c in corners[1:]]
    cmds.append(PathCommand('Z'))
    return cmds


class RingFont:
    """Fake font: every character is a square with a square hole."""

    name = "ring"

    def __init__(self, hole_clockwise=False):
        self.hole_clockwise = hole_clockwise

    def glyph_paths(self, text, size):
        glyphs = []
        for i, char in enumerate(text):
            if char == ' ':
                glyphs.append([])
                continue
            x = i * size
            glyphs.append(_square_commands(x, 0, size)
                          + _square_commands(x + 0.3 * size, 0.3 * size, 0.4 * size,
                                             clockwise=self.hole_clockwise))
        return glyphs


class TestCurveFlattening:

    def test_flatten_ends_at_endpoint(self):
        pts = flatten_cubic((0, 0), (0, 1), (1, 1), (1, 0))
        assert pts[-1] == (1, 0)
        assert len(pts) > 4

    def test_straight_cubic_is_one_segment(self):
        pts = flatten_cubic((0, 0), (1, 0), (2, 0), (3, 0))
        assert pts == [(3, 0)]

    def test_flatness_tolerance(self):
        # quadratic peak is exactly at y = 1
        pts = flatten_cubic(*quad_to_cubic((0, 0), (1, 2), (2, 0)), tolerance=0.001)
        peak = max(p[1] for p in pts)
        assert 0.99 <= peak <= 1.0 + 1e-9

    def test_depth_bound(self):
        pts = flatten_cubic((0, 0), (1e9, 1e9), (-1e9, 1e9), (0, 1), tolerance=1e-12, max_depth=4)
        assert len(pts) <= 2 ** 4
        assert pts[-1] == (0, 1)

    def test_fixed_steps(self):
        pts = sample_cubic((0, 0), (0, 1), (1, 1), (1, 0), steps=10)
        assert len(pts) == 10
        assert pts[-1] == (1, 0)
        assert pts[4] == pytest.approx((0.5, 0.75))


class TestContoursFromCommands:

    def test_square_closed_and_flipped(self):
        contours = contours_from_commands(_square_commands(0, 0, 2))
        assert len(contours) == 1
        contour = contours[0]
        assert is_closed_polygon(contour)
        assert len(contour) == 5
        assert all(y <= 0 for _, y in contour)
        assert min(y for _, y in contour) == -2

    def test_y_flip_turns_clockwise_outlines_counter_clockwise(self):
        contour = contours_from_commands(_square_commands(0, 0, 2, clockwise=True))[0]
        assert signed_area(contour) == pytest.approx(4)

    def test_reverse_flips_every_contour(self):
        cmds = _square_commands(0, 0, 4) + _square_commands(1, 1, 2, clockwise=False)
        plain = contours_from_commands(cmds)
        flipped = contours_from_commands(cmds, reverse=True)
        for a, b in zip(plain, flipped):
            assert signed_area(a) == pytest.approx(-signed_area(b))
            assert is_closed_polygon(b)

    def test_implicit_close_on_move_and_end(self):
        cmds = [c for c in _square_commands(0, 0, 1) if c.op != 'Z']
        cmds += [c for c in _square_commands(5, 0, 1) if c.op != 'Z']
        contours = contours_from_commands(cmds)
        assert len(contours) == 2
        assert all(is_closed_polygon(c) for c in contours)

    def test_duplicates_dropped(self):
        cmds = [
            PathCommand('M', ((0, 0),)),
            PathCommand('L', ((0, 0),)),
            PathCommand('L', ((1, 0),)),
            PathCommand('L', ((1, 0),)),
            PathCommand('L', ((1, 1),)),
            PathCommand('L', ((0, 0),)),
            PathCommand('Z'),
        ]
        contour = contours_from_commands(cmds)[0]
        assert contour == [(0.0, 0.0), (1.0, 0.0), (1.0, -1.0), (0.0, 0.0)]

    def test_degenerate_contours_discarded(self):
        cmds = [
            PathCommand('M', ((0, 0),)),
            PathCommand('L', ((1, 1),)),
            PathCommand('Z'),
            PathCommand('M', ((3, 3),)),
            PathCommand('Z'),
        ]
        assert contours_from_commands(cmds) == []

    def test_quadratic_segment_flattened(self):
        cmds = [
            PathCommand('M', ((0, 0),)),
            PathCommand('Q', ((1, 2), (2, 0))),
            PathCommand('Z'),
        ]
        contour = contours_from_commands(cmds)[0]
        assert len(contour) > 4
        assert min(y for _, y in contour) == pytest.approx(-1, abs=0.02)

    def test_cubic_with_fixed_steps(self):
        cmds = [
            PathCommand('M', ((0, 0),)),
            PathCommand('C', ((0, 1), (1, 1), (1, 0))),
            PathCommand('Z'),
        ]
        contour = contours_from_commands(cmds, steps=10)[0]
        # start, ten samples, closing point
        assert len(contour) == 12

    def test_draw_before_move(self):
        with pytest.raises(ValueError):
            contours_from_commands([PathCommand('L', ((1, 1),))])

    def test_unknown_command(self):
        with pytest.raises(ValueError):
            contours_from_commands([PathCommand('M', ((0, 0),)), PathCommand('X', ((1, 1),))])


class TestTextContours:

    def test_block_letters(self):
        glyphs = text_contours(BlockFont(), 'I', 10)
        assert isinstance(glyphs, GlyphContours)
        # top bar, five stem cells, bottom bar
        assert len(glyphs) == 7
        assert glyphs.fill_rule is FillRule.EVEN_ODD
        assert all(is_closed_polygon(c) for c in glyphs)

    def test_empty_text(self):
        assert not text_contours(BlockFont(), '', 10)
        assert not text_contours(BlockFont(), '   ', 10)

    def test_fill_rule_travels_with_contours(self):
        glyphs = text_contours(RingFont(), 'O', 10, fill_rule=FillRule.NON_ZERO)
        assert glyphs.fill_rule is FillRule.NON_ZERO

    def test_hole_preserved_with_opposite_winding(self):
        glyphs = text_contours(RingFont(hole_clockwise=False), 'O', 10)
        for rule in (FillRule.EVEN_ODD, FillRule.NON_ZERO):
            assert Region.from_contours(glyphs.contours, rule).area == pytest.approx(100 - 16)

    def test_same_winding_hole_needs_even_odd(self):
        glyphs = text_contours(RingFont(hole_clockwise=True), 'O', 10)
        assert Region.from_contours(glyphs.contours, FillRule.EVEN_ODD).area == pytest.approx(84)
        assert Region.from_contours(glyphs.contours, FillRule.NON_ZERO).area == pytest.approx(100)

    def test_reverse_applies_to_holes_too(self):
        glyphs = text_contours(RingFont(), 'O', 10, reverse=True)
        areas = sorted(signed_area(c) for c in glyphs)
        assert areas == pytest.approx([-100, 16])

    def test_no_contours_logged(self, caplog):
        class EmptyFont:
            name = "empty"

            def glyph_paths(self, text, size):
                return [[PathCommand('M', ((0, 0),)), PathCommand('Z')] for _ in text]

        with caplog.at_level('DEBUG', logger='plategen'):
            assert not text_contours(EmptyFont(), 'abc', 10)
        assert 'no usable contours' in caplog.text
