"""Discovery, parsing, and caching of the settingsvault runtime configuration.

What:
  Locate ``settingsvault.yaml``, validate it into a
  :class:`~settingsvault.config.schema.RuntimeConfig`, resolve its relative
  directories, and load the process-wide cipher key it points at.

Why:
  Storage and backup directories and the encryption key are fixed for the
  lifetime of a process. Resolving them once, with the same precedence rules
  everywhere, keeps the CLI and embedding applications pointed at the same
  files.

How:
  Candidate paths are tried in order: explicit argument,
  ``SETTINGSVAULT_CONFIG`` environment variable, ``./settingsvault.yaml``,
  ``~/.config/settingsvault/config.yaml``. The first existing file is parsed
  with PyYAML's ``safe_load``, validated with Pydantic, and cached until
  :func:`reset_runtime_config` or ``reload=True``. Relative directories are
  anchored at the configuration file's directory.

Interfaces:
  :func:`load_runtime_config`, :func:`get_runtime_config`,
  :func:`reset_runtime_config`, :func:`load_key`,
  :class:`RuntimeConfigError`.

Invariants:
  - Every returned configuration passed strict validation.
  - Directory and key paths in a returned configuration are absolute.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple

import yaml
from pydantic import ValidationError as _PydanticValidationError

from ..security.keys import parse_key, read_key_file
from .schema import RuntimeConfig


class RuntimeConfigError(Exception):
    """Raised when the configuration file or key cannot be loaded or validated."""


_CONFIG_ENV = "SETTINGSVAULT_CONFIG"
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("settingsvault.yaml"),
    Path("~/.config/settingsvault/config.yaml"),
)
_RUNTIME_CACHE: Optional[Tuple[Path, RuntimeConfig]] = None


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    """Yield configuration locations from most to least specific, without duplicates."""

    seen: set[Path] = set()
    env_path = os.environ.get(_CONFIG_ENV)
    ordered = [path, Path(env_path) if env_path else None, *_DEFAULT_LOCATIONS]
    for raw in ordered:
        if raw is None:
            continue
        candidate = raw.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def _parse_config_payload(text: str, source: Path) -> dict[str, Any]:
    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuntimeConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeConfigError(f"{source} must contain a mapping at the top-level")
    return payload


def _anchor(value: Optional[str], base: Path) -> Optional[str]:
    if value is None:
        return None
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = base / candidate
    return str(candidate)


def resolve_paths(config: RuntimeConfig, base: Path) -> RuntimeConfig:
    """Return a copy of ``config`` with relative paths anchored at ``base``."""

    storage = config.storage.model_copy(
        update={
            "storage_dir": _anchor(config.storage.storage_dir, base),
            "backup_dir": _anchor(config.storage.backup_dir, base),
        }
    )
    security = config.security.model_copy(update={"key_path": _anchor(config.security.key_path, base)})
    return config.model_copy(update={"storage": storage, "security": security})


def _load_runtime_from_path(path: Path) -> RuntimeConfig:
    """Read, validate, and anchor the configuration stored at ``path``.

    Raises:
      RuntimeConfigError: If the file cannot be read, parsed, or validated.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise RuntimeConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    payload = _parse_config_payload(text, path)
    try:
        config = RuntimeConfig.model_validate(payload)
    except _PydanticValidationError as exc:
        raise RuntimeConfigError(f"Invalid configuration {path}: {exc}") from exc
    return resolve_paths(config, path.resolve().parent)


def load_runtime_config(
    path: Optional[Path | str] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Resolve, parse, and cache the runtime configuration.

    What:
      Return the validated configuration from the first existing candidate
      file.

    Why:
      The CLI and library callers both need the same directories and key
      settings; caching avoids re-reading the file for every command helper.

    How:
      Serve the cached value when it matches the requested path (or no path
      was requested) and ``reload`` is false; otherwise walk
      :func:`_candidate_paths` and cache the first success.

    Args:
      path: Optional explicit location of the configuration file.
      reload: Bypass the cache.

    Raises:
      RuntimeConfigError: If no candidate exists or the file is invalid.
    """

    global _RUNTIME_CACHE

    requested_path = Path(path).expanduser() if isinstance(path, (str, Path)) else None
    if not reload and _RUNTIME_CACHE is not None:
        cached_path, cached_config = _RUNTIME_CACHE
        if requested_path is None or cached_path == requested_path:
            return cached_config

    searched: list[str] = []
    for candidate in _candidate_paths(requested_path):
        if not candidate.exists():
            searched.append(str(candidate))
            continue
        config = _load_runtime_from_path(candidate)
        _RUNTIME_CACHE = (candidate, config)
        return config

    listing = ", ".join(searched) if searched else "<none>"
    raise RuntimeConfigError(f"Unable to locate settingsvault.yaml (searched: {listing})")


def get_runtime_config() -> RuntimeConfig:
    return load_runtime_config()


def reset_runtime_config() -> None:
    """Forget the cached configuration so the next load re-reads the file."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None


def load_key(config: RuntimeConfig) -> bytes:
    """Return the 32-byte cipher key named by ``config``.

    The environment variable ``config.security.key_env`` (hex) wins over
    ``config.security.key_path``.

    Raises:
      RuntimeConfigError: If neither source is set, the key file cannot be
        read, or the material is not a valid key.
    """

    env_value = os.environ.get(config.security.key_env)
    if env_value:
        try:
            return parse_key(env_value.encode("ascii"))
        except (UnicodeEncodeError, ValueError) as exc:
            raise RuntimeConfigError(f"Invalid key in ${config.security.key_env}: {exc}") from exc
    if config.security.key_path is None:
        raise RuntimeConfigError(
            f"No encryption key: set ${config.security.key_env} or security.key_path"
        )
    path = Path(config.security.key_path)
    try:
        return read_key_file(path)
    except OSError as exc:
        raise RuntimeConfigError(f"Unable to read key file {path}: {exc}") from exc
    except ValueError as exc:
        raise RuntimeConfigError(f"Invalid key file {path}: {exc}") from exc
