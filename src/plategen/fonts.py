"""
Font outline sources for plategen.

A font source turns a string into per-glyph outline commands in font
space (y-up), already scaled so that one em equals the requested size.
Two sources are provided:

* :class:`FreetypeFont` reads TrueType/OpenType outlines with freetype-py.
* :class:`BlockFont` is a 5x7 bitmap font used when no font file is
  available (or when ``"block"`` is requested explicitly).

:class:`FontCache` resolves a font specification (``None``, ``"block"``,
a font name, a file path or an http(s) URL) once and reuses the loaded
source afterwards.

Example usage:

    from plategen.fonts import FontCache

    fonts = FontCache()
    font = fonts.load("DejaVuSans")
    paths = font.glyph_paths("Century", 3.5)
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import platform
import threading
import urllib.request
from typing import Dict, List, NamedTuple, Optional, Protocol, Tuple

import freetype

from plategen.errors import CapabilityInitError

logger = logging.getLogger(__name__)

DEFAULT_FONT_URL = 'https://raw.githubusercontent.com/google/fonts/main/ofl/roboto/static/Roboto-Regular.ttf'

# Tried in order when no font is specified
DEFAULT_FONT_NAMES = ("DejaVuSans", "Arial", "Roboto-Regular", "LiberationSans-Regular", "Helvetica")

FETCH_TIMEOUT = 30.0

Point2 = Tuple[float, float]


class PathCommand(NamedTuple):
    """One outline command.

    ``op`` is ``'M'`` (move), ``'L'`` (line), ``'Q'`` (quadratic, one
    control point then end point), ``'C'`` (cubic, two control points then
    end point) or ``'Z'`` (close, no points).
    """

    op: str
    points: Tuple[Point2, ...] = ()


class FontSource(Protocol):
    name: str

    def glyph_paths(self, text: str, size: float) -> List[List[PathCommand]]:
        ...


# ---------------------------------------------------------------------------
# Block font
# ---------------------------------------------------------------------------

# Rows top to bottom, '#' marks a filled cell
_BLOCK_ROWS = {
    'A': ".###. #...# #...# ##### #...# #...# #...#",
    'B': "####. #...# #...# ####. #...# #...# ####.",
    'C': ".#### #.... #.... #.... #.... #.... .####",
    'D': "####. #...# #...# #...# #...# #...# ####.",
    'E': "##### #.... #.... ####. #.... #.... #####",
    'F': "##### #.... #.... ####. #.... #.... #....",
    'G': ".#### #.... #.... #..## #...# #...# .####",
    'H': "#...# #...# #...# ##### #...# #...# #...#",
    'I': "##### ..#.. ..#.. ..#.. ..#.. ..#.. #####",
    'J': "##### ...#. ...#. ...#. ...#. #..#. .##..",
    'K': "#...# #..#. #.#.. ##... #.#.. #..#. #...#",
    'L': "#.... #.... #.... #.... #.... #.... #####",
    'M': "#...# ##.## #.#.# #.#.# #...# #...# #...#",
    'N': "#...# ##..# #.#.# #..## #...# #...# #...#",
    'O': ".###. #...# #...# #...# #...# #...# .###.",
    'P': "####. #...# #...# ####. #.... #.... #....",
    'Q': ".###. #...# #...# #...# #.#.# #..#. .##.#",
    'R': "####. #...# #...# ####. #.#.. #..#. #...#",
    'S': ".#### #.... #.... .###. ....# ....# ####.",
    'T': "##### ..#.. ..#.. ..#.. ..#.. ..#.. ..#..",
    'U': "#...# #...# #...# #...# #...# #...# .###.",
    'V': "#...# #...# #...# #...# #...# .#.#. ..#..",
    'W': "#...# #...# #...# #.#.# #.#.# ##.## #...#",
    'X': "#...# #...# .#.#. ..#.. .#.#. #...# #...#",
    'Y': "#...# #...# .#.#. ..#.. ..#.. ..#.. ..#..",
    'Z': "##### ....# ...#. ..#.. .#... #.... #####",
    '0': ".###. #...# #..## #.#.# ##..# #...# .###.",
    '1': "..#.. .##.. ..#.. ..#.. ..#.. ..#.. .###.",
    '2': ".###. #...# ....# ...#. ..#.. .#... #####",
    '3': "####. ....# ....# .###. ....# ....# ####.",
    '4': "...#. ..##. .#.#. #..#. ##### ...#. ...#.",
    '5': "##### #.... ####. ....# ....# #...# .###.",
    '6': ".###. #.... #.... ####. #...# #...# .###.",
    '7': "##### ....# ...#. ..#.. .#... .#... .#...",
    '8': ".###. #...# #...# .###. #...# #...# .###.",
    '9': ".###. #...# #...# .#### ....# ....# .###.",
    '-': "..... ..... ..... ##### ..... ..... .....",
    '_': "..... ..... ..... ..... ..... ..... #####",
    '.': "..... ..... ..... ..... ..... ..... ..#..",
    ',': "..... ..... ..... ..... ..... ..#.. .#...",
    ':': "..... ..#.. ..... ..... ..... ..#.. .....",
    '/': "....# ....# ...#. ..#.. .#... #.... #....",
    '*': "..... #.#.# .###. ##### .###. #.#.# .....",
    '(': "...#. ..#.. .#... .#... .#... ..#.. ...#.",
    ')': ".#... ..#.. ...#. ...#. ...#. ..#.. .#...",
    '!': "..#.. ..#.. ..#.. ..#.. ..#.. ..... ..#..",
    '?': ".###. #...# ....# ...#. ..#.. ..... ..#..",
    "'": "..#.. ..#.. ..... ..... ..... ..... .....",
    '+': "..... ..#.. ..#.. ##### ..#.. ..#.. .....",
    '#': ".#.#. ##### .#.#. .#.#. .#.#. ##### .#.#.",
    '&': ".##.. #..#. .##.. .#... #.#.# #..#. .##.#",
    ' ': "..... ..... ..... ..... ..... ..... .....",
}

BLOCK_COLUMNS = 5
BLOCK_ROWS = 7
BLOCK_ADVANCE = 6     # cells per character including the gap
BLOCK_EM = 10         # cells per em
BLOCK_BRIDGE = 0.1    # side of the square joining corner-to-corner cells, in cells


def _row_runs(row: str):
    """Yield ``(start, length)`` for each run of filled cells in a row."""

    start = None
    for i, cell in enumerate(row + '.'):
        if cell == '#' and start is None:
            start = i
        elif cell != '#' and start is not None:
            yield start, i - start
            start = None


def _corner_bridges(rows: List[str]):
    """Yield ``(row, column, side)`` for each pair of cells meeting only at a corner.

    Such pairs would leave the outline pinched. A small bridge square is
    anchored on the lower-left corner of cell ``(row, column)`` and extends
    right (``side`` 1) or left (``side`` -1) into the empty upper cell, so it
    shares an edge with both filled cells and overlaps neither.
    """
    grid = [[cell == '#' for cell in row] for row in rows]
    for r in range(len(grid) - 1):
        upper, lower = grid[r], grid[r + 1]
        for c in range(len(upper) - 1):
            if upper[c] and lower[c + 1] and not upper[c + 1] and not lower[c]:
                yield r, c + 1, 1
            elif upper[c + 1] and lower[c] and not upper[c] and not lower[c + 1]:
                yield r, c + 1, -1


def _rectangle(x0: float, y0: float, x1: float, y1: float) -> List[PathCommand]:
    return [
        PathCommand('M', ((x0, y0),)),
        PathCommand('L', ((x0, y1),)),
        PathCommand('L', ((x1, y1),)),
        PathCommand('L', ((x1, y0),)),
        PathCommand('Z'),
    ]


class BlockFont:
    """Bitmap block font rendered as rectangular outlines.

    Each horizontal run of filled cells becomes one rectangle, wound
    clockwise in font space like TrueType outer contours. Characters
    without a bitmap render as a placeholder block.
    """

    name = "block"

    def supported_characters(self) -> str:
        return ''.join(sorted(_BLOCK_ROWS))

    def glyph_paths(self, text: str, size: float) -> List[List[PathCommand]]:
        cell = size / BLOCK_EM
        bridge = BLOCK_BRIDGE * cell
        glyphs: List[List[PathCommand]] = []
        pen_x = 0.0

        # Shared edges must come out bit-identical, so every grid
        # coordinate goes through these two helpers.
        def gx(i):
            return pen_x + i * cell

        def gy(r):
            return (BLOCK_ROWS - 1 - r) * cell

        for char in text:
            bitmap = _BLOCK_ROWS.get(char.upper())
            if bitmap is None:
                bitmap = ' '.join(['.....'] + ['.###.'] * 5 + ['.....'])
            rows = bitmap.split()
            commands: List[PathCommand] = []
            for r, row in enumerate(rows):
                for start, length in _row_runs(row):
                    commands.extend(_rectangle(gx(start), gy(r), gx(start + length), gy(r - 1)))
            for r, column, side in _corner_bridges(rows):
                x, y = gx(column), gy(r)
                commands.extend(_rectangle(min(x, x + side * bridge), y, max(x, x + side * bridge), y + bridge))
            glyphs.append(commands)
            pen_x += BLOCK_ADVANCE * cell
        return glyphs


# ---------------------------------------------------------------------------
# FreeType fonts
# ---------------------------------------------------------------------------


class FreetypeFont:
    """Outline source backed by a freetype-py face.

    Glyphs are loaded unscaled (font units) and scaled so that
    ``units_per_EM`` maps to the requested size. Kerning is ignored.
    """

    def __init__(self, face: "freetype.Face", name: str = ""):
        self.face = face
        self.name = name or (face.family_name or b'').decode('utf-8', errors='replace')

    @classmethod
    def from_path(cls, path: str) -> "FreetypeFont":
        return cls(freetype.Face(str(path)), os.path.basename(str(path)))

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "") -> "FreetypeFont":
        return cls(freetype.Face(io.BytesIO(data)), name)

    def glyph_paths(self, text: str, size: float) -> List[List[PathCommand]]:
        scale = size / self.face.units_per_EM
        glyphs: List[List[PathCommand]] = []
        pen_x = 0.0

        for char in text:
            self.face.load_char(char, freetype.FT_LOAD_NO_SCALE | freetype.FT_LOAD_NO_BITMAP)
            slot = self.face.glyph
            commands: List[PathCommand] = []

            def pt(v, x0=pen_x):
                return (x0 + v.x * scale, v.y * scale)

            def move_to(a, ctx):
                if ctx and ctx[-1].op != 'Z':
                    ctx.append(PathCommand('Z'))
                ctx.append(PathCommand('M', (pt(a),)))
                return 0

            def line_to(a, ctx):
                ctx.append(PathCommand('L', (pt(a),)))
                return 0

            def conic_to(a, b, ctx):
                ctx.append(PathCommand('Q', (pt(a), pt(b))))
                return 0

            def cubic_to(a, b, c, ctx):
                ctx.append(PathCommand('C', (pt(a), pt(b), pt(c))))
                return 0

            slot.outline.decompose(commands, move_to=move_to, line_to=line_to,
                                   conic_to=conic_to, cubic_to=cubic_to)
            if commands and commands[-1].op != 'Z':
                commands.append(PathCommand('Z'))
            glyphs.append(commands)
            pen_x += slot.metrics.horiAdvance * scale

        return glyphs


def find_system_font(font_name: str) -> Optional[str]:
    """Find a font by name in system font directories.

    Args:
        font_name: Name of the font (e.g., "Arial", "DejaVuSans")

    Returns:
        Path to the font file, or None if not found
    """
    system = platform.system()
    font_dirs = []

    if system == "Darwin":
        font_dirs = [
            "/System/Library/Fonts",
            "/System/Library/Fonts/Supplemental",
            "/Library/Fonts",
            os.path.expanduser("~/Library/Fonts"),
        ]
    elif system == "Linux":
        font_dirs = [
            "/usr/share/fonts",
            "/usr/local/share/fonts",
            os.path.expanduser("~/.fonts"),
            os.path.expanduser("~/.local/share/fonts"),
        ]
    elif system == "Windows":
        font_dirs = [
            os.path.join(os.environ.get("WINDIR", "C:\\Windows"), "Fonts"),
        ]

    candidates = {f"{variant}{ext}"
                  for variant in (font_name, font_name.lower(), font_name.upper())
                  for ext in (".ttf", ".otf")}

    for font_dir in font_dirs:
        if not os.path.isdir(font_dir):
            continue
        # two levels deep covers the usual <dir>/<vendor>/<family> layouts
        for root, dirs, files in os.walk(font_dir):
            if root[len(font_dir):].count(os.sep) >= 2:
                dirs[:] = []
            for filename in sorted(files):
                if filename in candidates:
                    return os.path.join(root, filename)
    return None


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def fetch_font(url: str, timeout: float = FETCH_TIMEOUT) -> FreetypeFont:
    """Download a font file and parse it."""

    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            data = response.read()
    except OSError as exc:
        raise CapabilityInitError(f"failed to load font from {url}: {exc}") from exc
    try:
        return FreetypeFont.from_bytes(data, name=url.rsplit('/', 1)[-1])
    except freetype.FT_Exception as exc:
        raise CapabilityInitError(f"failed to parse font from {url}: {exc}") from exc


class FontCache:
    """Resolves font specifications once and caches the loaded sources.

    Failed loads are not cached, so a later call retries the fetch.
    """

    def __init__(self):
        self._fonts: Dict[str, FontSource] = {}
        self._lock = threading.Lock()

    def __contains__(self, source) -> bool:
        return self._key(source) in self._fonts

    @staticmethod
    def _key(source: Optional[str]) -> str:
        return "<default>" if source is None else str(source)

    def load(self, source: Optional[str] = None) -> FontSource:
        """Return the font for ``source``.

        ``source`` may be:
            - None: first available of DEFAULT_FONT_NAMES, else the block font
            - "block": the built-in block font
            - an http(s) URL: downloaded once
            - a path to a .ttf/.otf file
            - a font name searched in the system font directories
        """
        key = self._key(source)
        with self._lock:
            font = self._fonts.get(key)
            if font is None:
                font = self._resolve(source)
                self._fonts[key] = font
            return font

    async def aload(self, source: Optional[str] = None) -> FontSource:
        """Asynchronous :meth:`load`; the blocking work runs in a worker thread."""

        key = self._key(source)
        font = self._fonts.get(key)
        if font is not None:
            return font
        return await asyncio.to_thread(self.load, source)

    def _resolve(self, source: Optional[str]) -> FontSource:
        if source is None:
            for name in DEFAULT_FONT_NAMES:
                path = find_system_font(name)
                if path:
                    return self._open(path)
            logger.warning("no system font found, using block font")
            return BlockFont()

        if source == "block":
            return BlockFont()
        if _is_url(source):
            logger.info("fetching font %s", source)
            return fetch_font(source)
        if os.path.exists(source):
            return self._open(source)

        path = find_system_font(source)
        if path is None:
            raise CapabilityInitError(f"font not found: {source}")
        return self._open(path)

    @staticmethod
    def _open(path: str) -> FreetypeFont:
        try:
            font = FreetypeFont.from_path(path)
        except freetype.FT_Exception as exc:
            raise CapabilityInitError(f"failed to load font {path}: {exc}") from exc
        logger.debug("loaded font %s", path)
        return font


__all__ = [
    'DEFAULT_FONT_URL',
    'BlockFont',
    'FontCache',
    'FontSource',
    'FreetypeFont',
    'PathCommand',
    'fetch_font',
    'find_system_font',
]
