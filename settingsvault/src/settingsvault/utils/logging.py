"""Structured JSON logging for the settingsvault storage layers.

What:
  Emit one JSON object per line for every storage event (save, load, backup,
  prune, rename) with a fixed core schema and scrubbed context fields.

Why:
  Settings profiles routinely hold tokens, paths, and personal preferences.
  Operators still need an audit trail of what happened to which profile, so
  the logger keeps names and outcomes while masking anything that looks like
  profile content or key material.

How:
  :class:`JsonLogger` wraps a text stream. Every record carries ``ts``,
  ``lvl``, ``msg`` and ``component``; keyword context is merged after a
  recursive redaction pass and written with compact separators, then the
  stream is flushed.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Values stored under :data:`SENSITIVE_KEYS` never reach the stream, at any
    nesting depth.
  - Records default to ``stderr`` so command output on ``stdout`` stays
    machine-readable.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"data", "settings", "value", "key"})


@dataclass
class JsonLogger:
    """Line-oriented JSON logger with recursive redaction.

    Attributes:
      stream: Destination text stream, ``sys.stderr`` at construction time
        unless given.
      component: Label identifying the emitting subsystem.
    """

    stream: Any = field(default_factory=lambda: sys.stderr)
    component: str = "settingsvault"

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Write a single record at ``level``.

        Args:
          level: Severity label, upper-cased in the output.
          message: Short machine-friendly event name (``profile_saved``).
          extra: Context fields; redacted before serialisation.
        """

        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        json.dump(payload, self.stream, separators=(",", ":"), default=str)
        self.stream.write("\n")
        self.stream.flush()

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, extra=kwargs)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with sensitive keys masked at every depth."""

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str) -> JsonLogger:
    """Return a :class:`JsonLogger` tagged with ``component``.

    Call sites go through this factory rather than the dataclass so the
    default stream and redaction policy stay in one place.
    """

    return JsonLogger(component=component)
