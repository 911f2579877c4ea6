# -*- coding: utf-8 -*-
"""Printable GPS track miniatures and mounting brackets."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("plategen")
except PackageNotFoundError:  # pragma: no cover - handled when package not installed
    __version__ = "unknown"
