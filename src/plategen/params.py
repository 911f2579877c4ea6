"""Model parameters and their external representations.

Parameters are frozen dataclasses, validated on construction. They can
be built from form/URL style mappings (camelCase or snake_case keys,
string values, checkbox ``"on"``), query strings, environment variables
with a prefix, or YAML/JSON preset files.

Example usage:

    from plategen.params import ModelParams

    params = ModelParams.from_query("width=60&mapRotation=45&title=Loop")
    params.to_query()
"""

from __future__ import annotations

import dataclasses
import json
import logging
import math
import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Type, TypeVar, Union
from urllib.parse import parse_qsl, urlencode

import yaml

from plategen.errors import ParameterError

logger = logging.getLogger(__name__)

P = TypeVar("P", bound="_Params")

_TRUE = {"on", "true", "1", "yes"}
_FALSE = {"off", "false", "0", "no", ""}


def snake_case(key: str) -> str:
    """``plateDepth`` -> ``plate_depth``; snake_case keys pass through."""

    return re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower()


def camel_case(key: str) -> str:
    head, *rest = key.split('_')
    return head + ''.join(part.title() for part in rest)


def _coerce(name: str, kind: type, value: Any) -> Any:
    if kind is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ParameterError(f"{name}: expected a boolean, got {value!r}")
    if kind is int:
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise ParameterError(f"{name}: expected an integer, got {value!r}") from exc
        if not number.is_integer():
            raise ParameterError(f"{name}: expected an integer, got {value!r}")
        return int(number)
    if kind is float:
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ParameterError(f"{name}: expected a number, got {value!r}") from exc
    if kind is str:
        return str(value)
    if kind == Optional[str]:
        return None if value is None else str(value)
    return value


def _require_positive(params, *names: str) -> None:
    for name in names:
        value = getattr(params, name)
        if not math.isfinite(value) or value <= 0:
            raise ParameterError(f"{name} must be positive, got {value}")


def _require_finite(params, *names: str) -> None:
    for name in names:
        value = getattr(params, name)
        if not math.isfinite(value):
            raise ParameterError(f"{name} must be finite, got {value}")


class _Params:
    """Parsing and serialization shared by the parameter dataclasses."""

    @classmethod
    def _field_types(cls) -> Dict[str, type]:
        hints = {}
        for f in fields(cls):
            kind = f.type
            if isinstance(kind, str):
                kind = {"float": float, "int": int, "bool": bool, "str": str,
                        "Optional[str]": Optional[str]}[kind]
            hints[f.name] = kind
        return hints

    @classmethod
    def from_mapping(cls: Type[P], data: Mapping[str, Any], base: Optional[P] = None) -> P:
        """Overlay ``data`` on ``base`` (defaults when omitted).

        Unknown keys are ignored.
        """
        types = cls._field_types()
        changes = {}
        for key, value in data.items():
            name = snake_case(key)
            if name not in types:
                logger.debug("ignoring unknown parameter %s", key)
                continue
            changes[name] = _coerce(name, types[name], value)
        if base is None:
            return cls(**changes)
        return dataclasses.replace(base, **changes)

    @classmethod
    def from_query(cls: Type[P], query: str, base: Optional[P] = None) -> P:
        return cls.from_mapping(dict(parse_qsl(query.lstrip('?'), keep_blank_values=True)), base)

    @classmethod
    def from_env(cls: Type[P], prefix: str = "PLATEGEN_", environ: Optional[Mapping[str, str]] = None,
                 base: Optional[P] = None) -> P:
        """Read ``PLATEGEN_WIDTH=60`` style overrides."""

        environ = os.environ if environ is None else environ
        data = {key[len(prefix):].lower(): value
                for key, value in environ.items() if key.startswith(prefix)}
        return cls.from_mapping(data, base)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    def to_query(self) -> str:
        pairs = []
        for key, value in self.to_dict().items():
            if value is None:
                continue
            if isinstance(value, bool):
                if not value:
                    continue
                value = "on"
            pairs.append((camel_case(key), value))
        return urlencode(pairs)


@dataclass(frozen=True)
class ModelParams(_Params):
    """Track miniature parameters; lengths in mm, angles in degrees."""

    title: str = "Century *100*"
    font: Optional[str] = None
    font_size: float = 3.5
    text_thickness: float = 2.0
    width: float = 50.0
    plate_depth: float = 10.0
    thickness: float = 5.0
    margin: float = 2.5
    max_polyline_height: float = 20.0
    truncate_pct: float = 100.0
    map_rotation: float = 0.0
    edge_width: float = 1.0
    ribbon_base_height: float = 1.0
    base_color: str = "#1a1a1a"
    polyline_color: str = "#ff0090"
    slanted_text_plate: bool = False
    scale: float = 1.0
    rotation: float = 0.0

    def __post_init__(self):
        _require_positive(self, "font_size", "text_thickness", "width", "plate_depth",
                          "thickness", "max_polyline_height", "edge_width",
                          "ribbon_base_height", "scale")
        _require_finite(self, "margin", "truncate_pct", "map_rotation", "rotation")
        if self.margin < 0 or 2 * self.margin >= self.width:
            raise ParameterError(
                f"margin must be in [0, width/2), got {self.margin} for width {self.width}")
        if not 0 <= self.truncate_pct <= 100:
            raise ParameterError(f"truncate_pct must be in [0, 100], got {self.truncate_pct}")

    @property
    def max_size(self) -> float:
        """Side of the square the track is fitted into."""

        return self.width - 2 * self.margin


@dataclass(frozen=True)
class BracketParams(_Params):
    """Mounting bracket parameters in mm."""

    width: float = 35.0
    depth: float = 20.0
    height: float = 15.0
    bracket_thickness: float = 3.0
    rib_count: int = 3
    rib_thickness: float = 2.0
    hole_diameter: float = 3.5
    ear_width: float = 10.0
    has_bottom: bool = False
    color: str = "#ff0090"
    scale: float = 1.0
    rotation: float = 0.0

    def __post_init__(self):
        _require_positive(self, "width", "depth", "height", "bracket_thickness",
                          "rib_thickness", "ear_width", "scale")
        _require_finite(self, "hole_diameter", "rotation")
        if self.rib_count < 0:
            raise ParameterError(f"rib_count must not be negative, got {self.rib_count}")


def load_params(path: Union[str, Path], kind: Type[P] = ModelParams) -> P:
    """Load a YAML or JSON preset file."""

    path = Path(path)
    with path.open("r", encoding="utf-8") as fp:
        if path.suffix == ".json":
            data = json.load(fp)
        elif path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(fp) or {}
        else:
            raise ParameterError(f"unsupported preset format: {path.suffix}")
    if not isinstance(data, dict):
        raise ParameterError(f"preset {path} must contain a mapping")
    return kind.from_mapping(data)


def save_params(params: _Params, path: Union[str, Path]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fp:
        if path.suffix == ".json":
            json.dump(params.to_dict(), fp, indent=2)
            fp.write("\n")
        else:
            yaml.safe_dump(params.to_dict(), fp, sort_keys=False)


__all__ = [
    'BracketParams',
    'ModelParams',
    'camel_case',
    'load_params',
    'save_params',
    'snake_case',
]
