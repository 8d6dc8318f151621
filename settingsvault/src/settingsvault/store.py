"""Outward-facing profile storage API.

What:
  Provide ``save``, ``load``, ``delete``, ``rename``, ``backup``,
  ``recover``, ``list_backups`` and plain ``export``/``import`` for named
  settings profiles, composed from the persistence pipeline and the backup
  manager.

Why:
  Callers (the profile registry, the CLI, an embedding application) should
  never touch profile files directly. A single store object owns the
  directories, key material, and per-profile locking, replacing any notion of
  process-wide mutable tables.

How:
  :class:`ProfileStore` validates profile names, takes a per-name re-entrant
  lock for every operation, and delegates byte work to
  :class:`~settingsvault.storage.PersistencePipeline` and
  :class:`~settingsvault.storage.BackupManager`. :meth:`ProfileStore.from_config`
  builds the full stack from a runtime configuration and a key.

Interfaces:
  :class:`ProfileStore`.

Invariants & Safety:
  - Failures propagate as typed exceptions; a failed load never yields an
    empty or default mapping.
  - Operations on one profile name are serialised within the process;
    ``rename`` holds both names' locks, acquired in sorted order.
  - ``delete`` removes the live file and every snapshot.
  - When ``rename`` moves the live file but not every snapshot, the profile
    answers under the new name and the leftovers stay visible under the old
    name until :meth:`ProfileStore.adopt_backups` moves them.
"""
from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from .config.schema import RuntimeConfig
from .errors import IoFailure, NameConflict, ProfileNotFound
from .security.cipher import CipherGuard
from .security.integrity import IntegrityGuard, derive_integrity_key
from .storage.backup import BackupEntry, BackupManager
from .storage.compression import CompressionCodec
from .storage.pipeline import PersistencePipeline, validate_profile_name
from .storage.serializer import Serializer
from .utils.fsio import atomic_write_bytes
from .utils.logging import JsonLogger, get_logger


EXPORT_INDENT = 2


class ProfileStore:
    """Named-profile persistence with snapshots and plain export.

    Args:
      pipeline: Live-file encoder/decoder.
      backups: Snapshot manager sharing ``pipeline``.
      logger: Structured logger for store-level events.
    """

    def __init__(
        self,
        pipeline: PersistencePipeline,
        backups: BackupManager,
        *,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self._pipeline = pipeline
        self._backups = backups
        self._logger = logger or get_logger("settingsvault.store")
        self._export_serializer = Serializer(indent=EXPORT_INDENT)
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: RuntimeConfig,
        key: bytes,
        *,
        clock: Callable[[], float] = time.time,
    ) -> "ProfileStore":
        """Build the full pipeline/backup stack described by ``config``.

        Args:
          config: Validated runtime configuration with absolute directories.
          key: 32-byte cipher key, usually from
            :func:`settingsvault.config.load_key`.
          clock: Wall-clock source for snapshot timestamps.
        """

        integrity_key = derive_integrity_key(key) if config.security.keyed_integrity else None
        pipeline = PersistencePipeline(
            Path(config.storage.storage_dir),
            cipher=CipherGuard(key),
            integrity=IntegrityGuard(integrity_key),
            codec=CompressionCodec(config.storage.compression_level),
        )
        backups = BackupManager(
            Path(config.storage.backup_dir),
            pipeline,
            max_backups=config.storage.max_backups,
            clock=clock,
        )
        return cls(pipeline, backups)

    @property
    def pipeline(self) -> PersistencePipeline:
        return self._pipeline

    @property
    def backups(self) -> BackupManager:
        return self._backups

    def _lock_for(self, name: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.RLock()
            return lock

    @contextmanager
    def _locked(self, *names: str) -> Iterator[None]:
        locks = [self._lock_for(name) for name in sorted(set(names))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    def list_profiles(self) -> List[str]:
        return self._pipeline.profile_names()

    def exists(self, name: str) -> bool:
        validate_profile_name(name)
        return self._pipeline.exists(name)

    def save(self, name: str, data: Dict[str, Any]) -> Path:
        """Encrypt and write ``data`` as the live blob of ``name``.

        Raises:
          InvalidProfileName: If ``name`` is not a valid profile name.
          MalformedData: If ``data`` is outside the settings value model.
          IoFailure: If the write fails; the previous blob stays intact.
        """

        validate_profile_name(name)
        with self._locked(name):
            path = self._pipeline.write_profile(name, data)
        self._logger.info("profile_saved", profile=name)
        return path

    def load(self, name: str) -> Dict[str, Any]:
        """Read and decode the live blob of ``name``.

        Raises:
          ProfileNotFound: If the profile has no live file.
          DecryptionFailure, DecompressionFailure, IntegrityFailure,
          MalformedData, IoFailure: If the blob cannot be decoded.
        """

        validate_profile_name(name)
        with self._locked(name):
            return self._pipeline.read_profile(name)

    def create(self, name: str, data: Optional[Dict[str, Any]] = None) -> Path:
        """Save a new profile, refusing to overwrite an existing one.

        Raises:
          NameConflict: If ``name`` already has a live file.
        """

        validate_profile_name(name)
        with self._locked(name):
            if self._pipeline.exists(name):
                raise NameConflict(name)
            path = self._pipeline.write_profile(name, dict(data or {}))
        self._logger.info("profile_created", profile=name)
        return path

    def delete(self, name: str) -> None:
        """Remove the live file of ``name`` and all of its snapshots.

        The snapshots are removed even when the live file is already gone, so
        a half-deleted profile can be finished off; ``ProfileNotFound`` is
        raised afterwards in that case.

        Raises:
          ProfileNotFound: If there was no live file.
          BackupSweepError: If some snapshots could not be removed.
        """

        validate_profile_name(name)
        with self._locked(name):
            missing: Optional[ProfileNotFound] = None
            try:
                self._pipeline.remove_profile(name)
            except ProfileNotFound as exc:
                missing = exc
            self._backups.delete_backups(name)
            if missing is not None:
                raise missing
        self._logger.info("profile_deleted", profile=name)

    def rename(self, old: str, new: str) -> None:
        """Rename the live file and the snapshot set of ``old`` to ``new``.

        Raises:
          ProfileNotFound: If ``old`` has no live file.
          NameConflict: If ``new`` already has a live file.
          BackupSweepError: If the live file moved but some snapshots did not.
        """

        validate_profile_name(old)
        validate_profile_name(new)
        if old == new:
            raise NameConflict(new)
        with self._locked(old, new):
            self._pipeline.move_profile(old, new)
            self._backups.rename_backups(old, new)
        self._logger.info("profile_renamed", source=old, target=new)

    def adopt_backups(self, old: str, new: str) -> List[BackupEntry]:
        """Move snapshots left under ``old`` by a partially failed rename."""

        validate_profile_name(old)
        validate_profile_name(new)
        with self._locked(old, new):
            return self._backups.rename_backups(old, new)

    def backup(self, name: str, *, prune: bool = True) -> BackupEntry:
        """Snapshot ``name`` and, by default, apply the retention cap.

        Raises:
          SourceMissing: If the profile has no live file.
          BackupSweepError: If rotation could not remove an old snapshot; the
            new snapshot has been written regardless.
        """

        validate_profile_name(name)
        with self._locked(name):
            entry = self._backups.create_backup(name)
            if prune:
                self._backups.prune_backups(name)
        return entry

    def list_backups(self, name: str) -> List[BackupEntry]:
        validate_profile_name(name)
        with self._locked(name):
            return self._backups.list_backups(name)

    def prune_backups(self, name: str, max_count: Optional[int] = None) -> List[BackupEntry]:
        validate_profile_name(name)
        with self._locked(name):
            return self._backups.prune_backups(name, max_count)

    def recover(self, name: str, *, restore: bool = False) -> Dict[str, Any]:
        """Decode the newest snapshot of ``name``.

        Args:
          restore: Also write the recovered mapping back as the live profile.

        Raises:
          NoBackupsAvailable: If there are no snapshots.
          DecryptionFailure, DecompressionFailure, IntegrityFailure,
          MalformedData, IoFailure: If the newest snapshot is unreadable.
        """

        validate_profile_name(name)
        with self._locked(name):
            data = self._backups.recover_latest(name)
            if restore:
                self._pipeline.write_profile(name, data)
                self._logger.info("profile_restored", profile=name)
        return data

    def export_plain(self, data: Dict[str, Any], path: Path) -> Path:
        """Write ``data`` as indented JSON with no tag, compression, or cipher."""

        path = Path(path)
        atomic_write_bytes(path, self._export_serializer.encode(data) + b"\n")
        self._logger.info("profile_exported", path=str(path))
        return path

    def import_plain(self, path: Path) -> Dict[str, Any]:
        """Read a file written by :meth:`export_plain`.

        Raises:
          IoFailure: If the file cannot be read.
          MalformedData: If it is not a settings mapping.
        """

        path = Path(path)
        try:
            payload = path.read_bytes()
        except OSError as exc:
            raise IoFailure(f"Unable to read import file {path}: {exc}", path=path) from exc
        data = self.parse_plain(payload)
        self._logger.info("profile_imported", path=str(path), keys=len(data))
        return data

    def parse_plain(self, payload: bytes) -> Dict[str, Any]:
        """Decode plain JSON bytes (a file body or piped input).

        Raises:
          MalformedData: If the payload is not a settings mapping.
        """

        return self._export_serializer.decode(payload)
