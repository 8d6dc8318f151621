"""Filesystem helpers shared by the pipeline and backup manager."""
from __future__ import annotations

import os
import tempfile
from pathlib import Path

from ..errors import IoFailure, ProfileNotFound


def atomic_write_bytes(path: Path, payload: bytes) -> None:
    """Replace ``path`` with ``payload`` without exposing a partial file.

    What:
      Write ``payload`` so readers observe either the previous content or the
      complete new content, never a truncated mix.

    Why:
      An interrupted in-place overwrite would leave a profile that fails
      decryption and can only be restored from a backup.

    How:
      Write to a named temporary file in the destination directory, flush and
      ``fsync`` it, then :func:`os.replace` it over the target. The temporary
      file is removed when any step fails.

    Raises:
      IoFailure: If the directory cannot be created or any write step fails.
    """

    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "wb", dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as handle:
            temp_path = Path(handle.name)
            try:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            except OSError:
                handle.close()
                temp_path.unlink(missing_ok=True)
                raise
        try:
            os.replace(temp_path, path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise IoFailure(f"Unable to write {path}: {exc}", path=path) from exc


def read_bytes(path: Path, *, profile: str) -> bytes:
    """Read ``path`` and map a missing file to :class:`ProfileNotFound`."""

    try:
        return Path(path).read_bytes()
    except FileNotFoundError as exc:
        raise ProfileNotFound(profile, path=path) from exc
    except OSError as exc:
        raise IoFailure(f"Unable to read {path}: {exc}", path=path) from exc
