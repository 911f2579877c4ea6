"""
Mounting bracket: a U-shaped shell, two ears with bolt holes and
triangular ribs bracing each ear against the shell.

The shell opening faces +Y. Ears stick out sideways at the open end,
ribs sit under the ears and are spread along the depth (Z).
"""

from __future__ import annotations

import logging
from typing import List

from plategen.kernel import FillRule, MeshKernel, Solid
from plategen.params import BracketParams

logger = logging.getLogger(__name__)

RIB_WIDTH_RATIO = 0.5    # of the ear width
RIB_HEIGHT_RATIO = 0.8   # of the inner height plus one wall
HOLE_SEGMENTS = 100


def calculate_spacing(available_width: float, item_width: float, item_count: int) -> List[float]:
    """Start offsets for ``item_count`` items spread across ``available_width``.

    The first item is inset by one item width and the last ends one item
    width before the edge; the gaps between items are equal.
    """
    if item_count <= 0:
        return []
    if item_count == 1:
        return [0.0]
    spacing = (available_width - item_count * item_width - 2 * item_width) / (item_count - 1)
    return [item_width + i * (item_width + spacing) for i in range(item_count)]


def clamp_hole_diameter(requested: float, ear_width: float, depth: float) -> float:
    """Largest hole that still leaves material around it in the ear."""

    return min(requested, ear_width / 2.0 - 1.0, depth / 2.0 - 1.0)


def build_shell(kernel: MeshKernel, params: BracketParams) -> Solid:
    t = params.bracket_thickness
    outer = kernel.box((params.width + 2 * t, params.height + 2 * t, params.depth))
    if params.has_bottom:
        inset = kernel.box((params.width, params.height + t + 1.0, params.depth - t + 1.0))
        inset = inset.translate((t, t, t))
    else:
        inset = kernel.box((params.width, params.height + t + 1.0, params.depth + 2.0))
        inset = inset.translate((t, t, -1.0))
    return kernel.difference(outer, inset)


def build_ear(kernel: MeshKernel, params: BracketParams) -> Solid:
    """Single ear plate with its bolt hole, lying at the origin."""

    t = params.bracket_thickness
    ear = kernel.box((params.ear_width, t, params.depth))
    diameter = clamp_hole_diameter(params.hole_diameter, params.ear_width, params.depth)
    if diameter <= 0:
        logger.debug("hole diameter clamps to %g, ears left solid", diameter)
        return ear
    # Drilled along Y through the plate thickness.
    hole = (kernel.cylinder(t + 2.0, diameter / 2.0, segments=HOLE_SEGMENTS)
            .rotate((-90, 0, 0))
            .translate((params.ear_width / 2.0, -1.0, params.depth / 2.0)))
    return kernel.difference(ear, hole)


def build_ribs(kernel: MeshKernel, params: BracketParams) -> Solid:
    """Ribs under the left ear, against the outside of the left wall."""

    positions = calculate_spacing(params.depth, params.rib_thickness, params.rib_count)
    if not positions:
        return kernel.empty()
    top = params.height + params.bracket_thickness
    rib_width = RIB_WIDTH_RATIO * params.ear_width
    rib_height = RIB_HEIGHT_RATIO * top
    profile = [(0.0, rib_height), (rib_width, rib_height), (rib_width, 0.0)]
    rib = kernel.polygon([profile], FillRule.NON_ZERO).extrude(params.rib_thickness)
    ribs = kernel.union(rib.translate((0, 0, z)) for z in positions)
    return ribs.translate((-rib_width, top - rib_height, 0))


def build_bracket(kernel: MeshKernel, params: BracketParams) -> Solid:
    """Shell, ears and ribs unioned into one solid."""

    t = params.bracket_thickness
    outer_width = params.width + 2 * t
    top = params.height + t

    ear = build_ear(kernel, params)
    left_ear = ear.translate((-params.ear_width, top, 0))
    right_ear = ear.translate((outer_width, top, 0))

    left_ribs = build_ribs(kernel, params)
    right_ribs = left_ribs.mirror((1, 0, 0)).translate((outer_width, 0, 0))

    bracket = kernel.union([build_shell(kernel, params), left_ear, right_ear, left_ribs, right_ribs])
    logger.debug("bracket built: %s", bracket)
    return bracket


__all__ = [
    'build_bracket',
    'build_ear',
    'build_ribs',
    'build_shell',
    'calculate_spacing',
    'clamp_hole_diameter',
]
