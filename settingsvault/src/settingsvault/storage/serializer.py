"""Canonical JSON encoding for settings mappings."""
from __future__ import annotations

import json
from typing import Any, Dict, Optional

from ..errors import MalformedData
from ..values import validate_settings


def _reject_constant(name: str) -> Any:
    raise MalformedData(f"non-finite number {name} is not allowed")


class Serializer:
    """Convert settings mappings to and from UTF-8 JSON bytes.

    Keys are sorted so the same mapping always produces the same bytes.
    ``indent`` is ``None`` for the compact storage encoding and an integer for
    human-readable export files.
    """

    def __init__(self, *, indent: Optional[int] = None) -> None:
        self._indent = indent

    def encode(self, data: Dict[str, Any]) -> bytes:
        """Serialise ``data``.

        Raises:
          MalformedData: If ``data`` falls outside the settings value model
            or holds an integer too long to convert to text.
        """

        plain = validate_settings(data)
        separators = (",", ":") if self._indent is None else (",", ": ")
        try:
            text = json.dumps(
                plain,
                ensure_ascii=False,
                sort_keys=True,
                indent=self._indent,
                separators=separators,
                allow_nan=False,
            )
        except (ValueError, RecursionError) as exc:
            # Integers beyond the interpreter's digit limit land here.
            raise MalformedData(f"settings cannot be encoded: {exc}") from exc
        return text.encode("utf-8")

    def decode(self, payload: bytes) -> Dict[str, Any]:
        """Parse ``payload`` back into a settings mapping.

        Raises:
          MalformedData: For invalid UTF-8, invalid JSON (including integers
            past the digit limit and nesting past the parser's depth), or a
            document that is not a mapping of settings values.
        """

        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedData(f"settings payload is not valid UTF-8: {exc}") from exc
        try:
            document = json.loads(text, parse_constant=_reject_constant)
        except json.JSONDecodeError as exc:
            raise MalformedData(f"settings payload is not valid JSON: {exc}") from exc
        except (ValueError, RecursionError) as exc:
            raise MalformedData(f"settings payload cannot be decoded: {exc}") from exc
        return validate_settings(document)
