"""
3D text for the title plate.

Glyph contours are resolved into a filled region, extruded to the text
thickness and turned upright. The text is then centred on the plate in
front of the base: flat on top of it, or laid along the slope of a
slanted plate rising from the front edge to the height of the base.

Example usage:

    from plategen.capabilities import load_capabilities
    from plategen.text3d import build_text_plate, build_text_solid

    caps = load_capabilities().unwrap()
    font = caps.fonts.load(None)
    text = build_text_solid(caps.kernel, font, "Century *100*", 3.5, 2.0,
                            plate_width=50, plate_depth=10, plate_thickness=5)
    plate = build_text_plate(caps.kernel, 50, 10, 5)
"""

from __future__ import annotations

import logging
import math

from plategen.fonts import FontSource
from plategen.glyphs import text_contours
from plategen.kernel import FillRule, MeshKernel, Solid

logger = logging.getLogger(__name__)


def slant_angle(plate_depth: float, plate_thickness: float) -> float:
    """Slope of the slanted plate in degrees."""

    return math.degrees(math.atan(plate_thickness / plate_depth))


def build_text_plate(kernel: MeshKernel, width: float, depth: float, thickness: float,
                     slanted: bool = False) -> Solid:
    """Plate in front of the base, spanning ``y`` in ``[0, depth]``.

    The slanted plate is the flat one intersected with a slab whose top
    face rises from the front bottom edge to the back top edge.
    """
    plate = kernel.box((width, depth, thickness))
    if not slanted:
        return plate

    diagonal = math.hypot(depth, thickness)
    reach = 2.0 * (depth + thickness) + 1.0
    slab = (kernel.box((width + 2.0, diagonal + 2.0, reach))
            .translate((-1.0, -1.0, -reach))
            .rotate((slant_angle(depth, thickness), 0, 0)))
    return kernel.intersection(plate, slab)


def build_text_solid(kernel: MeshKernel, font: FontSource, title: str, font_size: float,
                     text_thickness: float, plate_width: float, plate_depth: float,
                     plate_thickness: float, slanted: bool = False,
                     fill_rule: FillRule = FillRule.EVEN_ODD) -> Solid:
    """Raised title text positioned on the text plate.

    The text is centred across the plate width in both variants, so its
    left edge sits at ``(plate_width - text_width) / 2``. Flat text is
    centred in the plate depth on top of the plate; slanted text is
    centred along the slope and rotated onto it.

    Returns an empty solid when the title produces no contours.
    """
    glyphs = text_contours(font, title, font_size, fill_rule=fill_rule)
    if not glyphs:
        return kernel.empty()
    region = kernel.polygon(glyphs.contours, glyphs.fill_rule)
    if region.is_empty():
        logger.debug("title %r resolved to an empty region", title)
        return kernel.empty()

    # Glyph y is negated; flip about X to read upright with the base at z = 0.
    text = (region.extrude(text_thickness)
            .rotate((180, 0, 0))
            .translate((0, 0, text_thickness)))
    bounds = text.bounding_box()
    text_width, text_height, _ = bounds.size

    dx = (plate_width - text_width) / 2.0 - bounds.min[0]
    if not slanted:
        dy = (plate_depth - text_height) / 2.0 - bounds.min[1]
        return text.translate((dx, dy, plate_thickness))

    diagonal = math.hypot(plate_depth, plate_thickness)
    dy = (diagonal - text_height) / 2.0 - bounds.min[1]
    return (text.translate((dx, dy, 0))
            .rotate((slant_angle(plate_depth, plate_thickness), 0, 0)))


__all__ = [
    'build_text_plate',
    'build_text_solid',
    'slant_angle',
]
