"""Write/read pipeline turning settings mappings into encrypted profile files.

What:
  Own the on-disk representation of a single profile: the four-stage
  transform (serialize → tag → compress → encrypt), its exact inverse, and the
  ``<storage_dir>/<profile>.json`` path convention.

Why:
  Every other component (backups, the profile store, the registry) must agree
  on the blob format and on how stage failures are reported. Centralising the
  transform keeps that contract in one place and makes the round-trip law
  testable without any of the layers above.

How:
  :meth:`PersistencePipeline.encode` runs the stages in their fixed order.
  Tagging happens before compression so the digest covers the serialized
  content itself; compression happens before encryption because ciphertext
  does not compress. :meth:`PersistencePipeline.decode` runs the mirror image
  and lets the first failing stage's exception propagate after logging which
  stage failed. Files are replaced atomically.

Interfaces:
  :class:`PersistencePipeline`, :func:`validate_profile_name`,
  :data:`PROFILE_SUFFIX`.

Invariants & Safety:
  - Read failures surface in stage order: ``DecryptionFailure``,
    ``DecompressionFailure``, ``IntegrityFailure``, ``MalformedData``.
  - No partially decoded mapping is ever returned.
  - The live file is either the previous blob or the complete new blob.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from ..errors import (
    DecompressionFailure,
    DecryptionFailure,
    IntegrityFailure,
    InvalidProfileName,
    IoFailure,
    MalformedData,
    NameConflict,
    ProfileNotFound,
)
from ..security.cipher import CipherGuard
from ..security.integrity import IntegrityGuard
from ..utils.fsio import atomic_write_bytes, read_bytes
from ..utils.logging import JsonLogger, get_logger
from .compression import CompressionCodec
from .serializer import Serializer


PROFILE_SUFFIX = ".json"
RESERVED_PREFIX = "_"
_NAME_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9 ._-]{0,127}")

T = TypeVar("T")


def validate_profile_name(name: Any, *, allow_reserved: bool = False) -> str:
    """Return ``name`` if it can be used as a profile filename stem.

    Public names start with a letter or digit and may contain letters,
    digits, spaces, dots, underscores and hyphens (128 characters at most).
    Names starting with ``_`` are reserved for internal documents and are
    only accepted with ``allow_reserved``.

    Raises:
      TypeError: If ``name`` is not a string.
      InvalidProfileName: If ``name`` does not match the naming rules.
    """

    if not isinstance(name, str):
        raise TypeError("profile name must be a string")
    candidate = name[1:] if allow_reserved and name.startswith(RESERVED_PREFIX) else name
    if not _NAME_PATTERN.fullmatch(candidate) or name.endswith((".", " ")):
        raise InvalidProfileName(f"invalid profile name: {name!r}")
    return name


class PersistencePipeline:
    """Encode, decode, and place profile blobs inside ``storage_dir``."""

    def __init__(
        self,
        storage_dir: Path,
        *,
        cipher: CipherGuard,
        integrity: IntegrityGuard,
        codec: Optional[CompressionCodec] = None,
        serializer: Optional[Serializer] = None,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self._storage_dir = Path(storage_dir)
        self._cipher = cipher
        self._integrity = integrity
        self._codec = codec or CompressionCodec()
        self._serializer = serializer or Serializer()
        self._logger = logger or get_logger("settingsvault.pipeline")

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    def profile_path(self, name: str) -> Path:
        return self._storage_dir / f"{name}{PROFILE_SUFFIX}"

    def exists(self, name: str) -> bool:
        return self.profile_path(name).is_file()

    def profile_names(self) -> List[str]:
        """Return the sorted public profile names present in ``storage_dir``."""

        if not self._storage_dir.is_dir():
            return []
        names = []
        for entry in self._storage_dir.iterdir():
            if entry.suffix != PROFILE_SUFFIX or not entry.is_file():
                continue
            try:
                names.append(validate_profile_name(entry.stem))
            except InvalidProfileName:
                continue
        return sorted(names)

    def encode(self, data: Dict[str, Any]) -> bytes:
        payload = self._serializer.encode(data)
        tagged = self._integrity.attach(payload)
        compressed = self._codec.compress(tagged)
        return self._cipher.encrypt(compressed)

    def decode(self, blob: bytes, *, source: Path) -> Dict[str, Any]:
        """Run the read path over ``blob`` read from ``source``.

        Raises:
          DecryptionFailure, DecompressionFailure, IntegrityFailure,
          MalformedData: From the first stage that rejects the data.
        """

        compressed = self._stage("decrypt", source, self._cipher.decrypt, blob)
        tagged = self._stage("decompress", source, self._codec.decompress, compressed)
        payload = self._stage("verify", source, self._integrity.extract_and_verify, tagged)
        return self._stage("deserialize", source, self._serializer.decode, payload)

    def _stage(self, stage: str, source: Path, func: Callable[[bytes], T], data: bytes) -> T:
        try:
            return func(data)
        except (DecryptionFailure, DecompressionFailure, IntegrityFailure, MalformedData) as exc:
            self._logger.error(
                "profile_decode_failed",
                stage=stage,
                path=str(source),
                error=type(exc).__name__,
                detail=str(exc),
            )
            raise

    def write_profile(self, name: str, data: Dict[str, Any]) -> Path:
        """Persist ``data`` as the live blob of profile ``name``.

        Raises:
          MalformedData: If ``data`` is outside the settings value model.
          IoFailure: If the file cannot be written.
        """

        blob = self.encode(data)
        path = self.profile_path(name)
        atomic_write_bytes(path, blob)
        self._logger.info("profile_written", profile=name, path=str(path), size=len(blob))
        return path

    def read_blob(self, name: str) -> bytes:
        return read_bytes(self.profile_path(name), profile=name)

    def read_profile(self, name: str) -> Dict[str, Any]:
        """Load and decode the live blob of profile ``name``.

        Raises:
          ProfileNotFound: If the live file is missing.
          IoFailure: If the file exists but cannot be read.
          DecryptionFailure, DecompressionFailure, IntegrityFailure,
          MalformedData: If the blob fails a pipeline stage.
        """

        path = self.profile_path(name)
        data = self.decode(read_bytes(path, profile=name), source=path)
        self._logger.info("profile_read", profile=name, path=str(path), keys=len(data))
        return data

    def read_file(self, path: Path, *, profile: str) -> Dict[str, Any]:
        """Decode a blob stored at an arbitrary ``path`` (used for backups)."""

        return self.decode(read_bytes(path, profile=profile), source=Path(path))

    def remove_profile(self, name: str) -> None:
        path = self.profile_path(name)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise ProfileNotFound(name, path=path) from exc
        except OSError as exc:
            raise IoFailure(f"Unable to remove {path}: {exc}", path=path) from exc
        self._logger.info("profile_removed", profile=name, path=str(path))

    def move_profile(self, old: str, new: str) -> Path:
        """Rename the live file of ``old`` to ``new``.

        Raises:
          ProfileNotFound: If ``old`` has no live file.
          NameConflict: If ``new`` already has a live file.
          IoFailure: If the rename itself fails.
        """

        source = self.profile_path(old)
        target = self.profile_path(new)
        if not source.is_file():
            raise ProfileNotFound(old, path=source)
        if target.exists():
            raise NameConflict(new)
        try:
            source.rename(target)
        except OSError as exc:
            raise IoFailure(f"Unable to rename {source} to {target}: {exc}", path=source) from exc
        self._logger.info("profile_moved", source=str(source), target=str(target))
        return target
