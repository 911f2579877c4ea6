"""
Model composition: sub-solids are built, unioned and moved into place.

Layout of a track miniature (before the global transform): the text
plate covers ``y`` in ``[0, plate_depth]``, the square base plate sits
behind it, and the ribbon stands on top of the base.

Example usage:

    from plategen.capabilities import load_capabilities
    from plategen.composefrom plategen.errors import DegenerateInputError
 import build_track_model
    from plategen.params import ModelParams
    from plategen.track import load_gpx

    caps = load_capabilities().unwrap()
    params = ModelParams(title="Morning loop")
    model = build_track_model(caps.kernel, caps.fonts.load(params.font),
                              params, load_gpx("ride.gpx"))
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from plategen.bracket import build_bracket
from plategen.capabilities import Capabilities, load_capabilities
from plategen.errors import DegenerateInputError
from plategen.fonts import FontSource
from plategen.geometry_checks import mesh_watertight
from plategen.kernel import MeshKernel, Solid
from plategen.normalize import normalize_coordinates, scale_elevations
from plategen.params import BracketParams, ModelParams
from plategen.ribbon import build_ribbon, ribbon_overhang
from plategen.text3d import build_text_plate, build_text_solid
from plategen.track import TrackSample

logger = logging.getLogger(__name__)


def finish(solid: Solid, scale: float = 1.0, rotation: float = 0.0) -> Solid:
    """Apply the global scale and Z rotation, then move the bounding box
    minimum to the origin.

    An empty solid is returned unchanged.
    """
    if solid.is_empty():
        logger.debug("model is empty")
        return solid

    placed = solid.scale(scale).rotate((0, 0, rotation))
    placed = placed.translate([-v for v in placed.bounding_box().min])

    check = mesh_watertight(placed.to_triangle_mesh())
    if not check:
        logger.warning("model is not watertight: %s", "; ".join(check.warnings))
    return placed


def build_ribbon_part(kernel: MeshKernel, params: ModelParams, samples: Sequence[TrackSample]) -> Solid:
    """The ribbon in model coordinates, standing on the base plate.

    The polyline is fitted into the margin-inset footprint shrunk by the
    ribbon's overhang, so miter corners and end caps stay inside the
    footprint too.

    Raises:
        DegenerateInputError: the footprint has no room left for the track.
    """
    if not samples:
        logger.debug("no track samples, ribbon omitted")
        return kernel.empty()
    overhang = ribbon_overhang(params.edge_width)
    footprint = params.max_size - 2.0 * overhang
    if footprint <= 0:
        raise DegenerateInputError(
            f"footprint {params.max_size:g} mm leaves no room for a ribbon {params.edge_width:g} mm wide")
    track = normalize_coordinates([s.position for s in samples], params.map_rotation,
                                  footprint, params.margin + overhang)
    heights = scale_elevations([s.elevation for s in samples], params.max_polyline_height,
                               params.ribbon_base_height)
    return build_ribbon(kernel, track.points, heights,
                        truncate_pct=params.truncate_pct,
                        edge_width=params.edge_width,
                        origin=(0.0, params.plate_depth, params.thickness))


def build_track_model(kernel: MeshKernel, font: Optional[FontSource], params: ModelParams,
                      samples: Sequence[TrackSample]) -> Solid:
    """Base plate, text plate, title text and ribbon as one solid.

    ``font`` may be ``None`` to leave the title out.

    Raises:
        DegenerateInputError: the track has zero extent in either direction.
    """
    base = kernel.box((params.width, params.width, params.thickness)).translate((0, params.plate_depth, 0))
    plate = build_text_plate(kernel, params.width, params.plate_depth, params.thickness,
                             slanted=params.slanted_text_plate)
    if font is None:
        text = kernel.empty()
    else:
        text = build_text_solid(kernel, font, params.title, params.font_size, params.text_thickness,
                                plate_width=params.width, plate_depth=params.plate_depth,
                                plate_thickness=params.thickness,
                                slanted=params.slanted_text_plate)
    ribbon = build_ribbon_part(kernel, params, samples)

    parts = [p for p in (base, plate, text, ribbon) if not p.is_empty()]
    logger.debug("composing %d track model parts", len(parts))
    return finish(kernel.union(parts), params.scale, params.rotation)


async def abuild_track_model(params: ModelParams, samples: Sequence[TrackSample],
                             capabilities: Optional[Capabilities] = None) -> Solid:
    """Load the font without blocking the event loop, then build.

    The geometry itself is computed synchronously.
    """
    if capabilities is None:
        capabilities = load_capabilities().unwrap()
    font = await capabilities.fonts.aload(params.font)
    return build_track_model(capabilities.kernel, font, params, samples)


def build_bracket_model(kernel: MeshKernel, params: BracketParams) -> Solid:
    return finish(build_bracket(kernel, params), params.scale, params.rotation)


__all__ = [
    'abuild_track_model',
    'build_bracket_model',
    'build_ribbon_part',
    'build_track_model',
    'finish',
]
