"""Exception taxonomy for plategen builds.

Empty sub-results (no usable ribbon points, no glyph contours) are not
errors: builders return an empty :class:`~plategen.kernel.Solid` and the
composer leaves it out of the final union.
"""


class PlategenError(Exception):
    """Base class for all plategen errors."""


class DegenerateInputError(PlategenError, ValueError):
    """Input geometry has zero extent or otherwise cannot be scaled.

    Raised instead of letting a division by zero leak NaN coordinates
    into the mesh.
    """


class ParameterError(PlategenError, ValueError):
    """A model parameter is out of range or cannot be parsed."""


class CapabilityInitError(PlategenError, RuntimeError):
    """The mesh kernel or a font could not be initialized.

    Initialization failures are never cached, so calling again retries.
    """


__all__ = [
    'PlategenError',
    'DegenerateInputError',
    'ParameterError',
    'CapabilityInitError',
]
