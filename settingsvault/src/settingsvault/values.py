"""Closed value model for settings stored in a profile.

A profile maps string keys to exactly one of four variants: :class:`Bool`,
:class:`Number`, :class:`Text`, or :class:`Mapping`. :func:`from_python`
converts plain Python data into the variant tree and rejects anything else,
which is how the serializer enforces the mapping shape on both encode and
decode. Each variant implements :meth:`SettingValue.render` for display and
:meth:`SettingValue.to_python` to get the plain value back.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

from .errors import MalformedData


MAX_DEPTH = 64


class SettingValue:
    """Capability interface implemented by every variant."""

    kind: str = ""

    def to_python(self) -> Any:  # pragma: no cover - abstract
        raise NotImplementedError

    def render(self) -> str:  # pragma: no cover - abstract
        raise NotImplementedError


@dataclass(frozen=True)
class Bool(SettingValue):
    value: bool
    kind = "bool"

    def to_python(self) -> bool:
        return self.value

    def render(self) -> str:
        return "on" if self.value else "off"


@dataclass(frozen=True)
class Number(SettingValue):
    value: Union[int, float]
    kind = "number"

    def to_python(self) -> Union[int, float]:
        return self.value

    def render(self) -> str:
        return repr(self.value)


@dataclass(frozen=True)
class Text(SettingValue):
    value: str
    kind = "text"

    def to_python(self) -> str:
        return self.value

    def render(self) -> str:
        return self.value


@dataclass(frozen=True)
class Mapping(SettingValue):
    items: Tuple[Tuple[str, SettingValue], ...]
    kind = "mapping"

    def to_python(self) -> Dict[str, Any]:
        return {key: value.to_python() for key, value in self.items}

    def render(self) -> str:
        inner = ", ".join(f"{key}={value.render()}" for key, value in self.items)
        return "{" + inner + "}"


def from_python(obj: Any, *, path: str = "$", depth: int = 0) -> SettingValue:
    """Convert ``obj`` into a variant tree.

    ``path`` tracks the location for error messages (``$.audio.volume``).
    Mappings may nest at most :data:`MAX_DEPTH` levels.

    Raises:
      MalformedData: For keys that are not strings, non-finite floats,
        mappings nested deeper than :data:`MAX_DEPTH`, or any type outside
        the four variants (lists and ``None`` included).
    """

    # bool first: it is a subclass of int.
    if isinstance(obj, bool):
        return Bool(obj)
    if isinstance(obj, (int, float)):
        if isinstance(obj, float) and not math.isfinite(obj):
            raise MalformedData(f"{path}: non-finite number {obj!r} is not allowed")
        return Number(obj)
    if isinstance(obj, str):
        return Text(obj)
    if isinstance(obj, dict):
        if depth >= MAX_DEPTH:
            raise MalformedData(f"{path}: mappings nested deeper than {MAX_DEPTH} levels")
        items = []
        for key, value in obj.items():
            if not isinstance(key, str):
                raise MalformedData(f"{path}: setting keys must be strings, got {type(key).__name__}")
            items.append((key, from_python(value, path=f"{path}.{key}", depth=depth + 1)))
        return Mapping(tuple(items))
    raise MalformedData(f"{path}: unsupported value type {type(obj).__name__}")


def validate_settings(data: Any) -> Dict[str, Any]:
    """Check that ``data`` is a settings mapping and return a plain copy.

    Raises:
      MalformedData: If the top level is not a mapping or any nested value is
        outside the value model.
    """

    if not isinstance(data, dict):
        raise MalformedData(f"settings must be a mapping, got {type(data).__name__}")
    tree = from_python(data)
    assert isinstance(tree, Mapping)
    return tree.to_python()


__all__ = ["MAX_DEPTH", "SettingValue", "Bool", "Number", "Text", "Mapping", "from_python", "validate_settings"]
