"""I/O utilities for plategen."""

from .stl import read_stl, write_stl
from .threemf import write_3mf

__all__ = ['read_stl', 'write_3mf', 'write_stl']
