"""Timestamped snapshots of encrypted profile files.

What:
  Copy a profile's live blob into ``<backup_dir>/<profile>_<unix_ts>.bak``,
  list and order those snapshots, enforce a retention cap, recover the newest
  one, and move or delete a profile's whole snapshot set.

Why:
  Live profile writes are the single destructive operation in the store. A
  bounded history of verbatim blobs gives callers a way back after a bad save
  or a damaged file without ever re-encoding data they cannot read.

How:
  Snapshots are raw byte copies written atomically; nothing is decoded until
  :meth:`BackupManager.recover_latest` runs the newest snapshot through the
  pipeline's read path. Listing parses timestamps from filenames with an
  exact per-profile pattern, so unrelated files (or profiles sharing a name
  prefix) are ignored. Sweeps over several files (prune, rename, delete)
  keep going after a per-file failure and raise one
  :class:`~settingsvault.errors.BackupSweepError` at the end.

Interfaces:
  :class:`BackupEntry`, :class:`BackupManager`, :data:`BACKUP_SUFFIX`,
  :data:`DEFAULT_MAX_BACKUPS`.

Invariants & Safety:
  - :meth:`BackupManager.list_backups` is ordered by ascending timestamp.
  - Pruning always removes the lowest timestamps first.
  - Recovery never overwrites the live profile.
  - Renaming never overwrites an existing snapshot of the target profile.
"""
from __future__ import annotations

import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import (
    BackupSweepError,
    IoFailure,
    NoBackupsAvailable,
    ProfileNotFound,
    SourceMissing,
)
from ..utils.fsio import atomic_write_bytes
from ..utils.logging import JsonLogger, get_logger
from .pipeline import PersistencePipeline


BACKUP_SUFFIX = ".bak"
DEFAULT_MAX_BACKUPS = 5


@dataclass(frozen=True, order=True)
class BackupEntry:
    """One snapshot on disk. Ordering follows ``(timestamp, path)``."""

    timestamp: int
    path: Path
    profile: str

    def as_dict(self) -> Dict[str, Any]:
        return {"profile": self.profile, "timestamp": self.timestamp, "path": str(self.path)}


class BackupManager:
    """Create, list, rotate, recover, and relocate profile snapshots.

    Args:
      backup_dir: Directory holding ``.bak`` files; created on first write.
      pipeline: Source of live-file paths and of the read path used for
        recovery.
      max_backups: Default retention cap for :meth:`prune_backups`.
      clock: Returns wall-clock seconds; injectable for deterministic tests.
      logger: Structured logger.
    """

    def __init__(
        self,
        backup_dir: Path,
        pipeline: PersistencePipeline,
        *,
        max_backups: int = DEFAULT_MAX_BACKUPS,
        clock: Callable[[], float] = time.time,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        if max_backups < 1:
            raise ValueError("max_backups must be at least 1")
        self._backup_dir = Path(backup_dir)
        self._pipeline = pipeline
        self._max_backups = max_backups
        self._clock = clock
        self._logger = logger or get_logger("settingsvault.backup")

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    @property
    def max_backups(self) -> int:
        return self._max_backups

    def backup_path(self, name: str, timestamp: int) -> Path:
        return self._backup_dir / f"{name}_{timestamp}{BACKUP_SUFFIX}"

    def create_backup(self, name: str) -> BackupEntry:
        """Snapshot the live blob of ``name`` under the current timestamp.

        A second backup within the same second replaces the first.

        Raises:
          SourceMissing: If the profile has no live file.
          IoFailure: If reading the live file or writing the snapshot fails.
        """

        try:
            blob = self._pipeline.read_blob(name)
        except ProfileNotFound as exc:
            raise SourceMissing(name) from exc
        timestamp = int(self._clock())
        path = self.backup_path(name, timestamp)
        atomic_write_bytes(path, blob)
        self._logger.info("backup_created", profile=name, path=str(path), timestamp=timestamp)
        return BackupEntry(timestamp=timestamp, path=path, profile=name)

    def list_backups(self, name: str) -> List[BackupEntry]:
        """Return the snapshots of ``name`` sorted by ascending timestamp.

        Files that do not match ``<name>_<digits>.bak`` exactly are skipped.

        Raises:
          IoFailure: If the backup directory exists but cannot be scanned.
        """

        if not self._backup_dir.is_dir():
            return []
        pattern = re.compile(re.escape(name) + r"_(\d+)" + re.escape(BACKUP_SUFFIX))
        entries: List[BackupEntry] = []
        try:
            candidates = list(self._backup_dir.iterdir())
        except OSError as exc:
            raise IoFailure(f"Unable to scan {self._backup_dir}: {exc}", path=self._backup_dir) from exc
        for candidate in candidates:
            match = pattern.fullmatch(candidate.name)
            if match is None or not candidate.is_file():
                continue
            entries.append(BackupEntry(timestamp=int(match.group(1)), path=candidate, profile=name))
        entries.sort()
        return entries

    def latest_backup(self, name: str) -> Optional[BackupEntry]:
        entries = self.list_backups(name)
        return entries[-1] if entries else None

    def prune_backups(self, name: str, max_count: Optional[int] = None) -> List[BackupEntry]:
        """Delete the oldest snapshots until at most ``max_count`` remain.

        The sweep is best-effort: a snapshot that cannot be removed is logged
        and skipped, the next-oldest one is still considered, and once the
        sweep finishes every failure is raised together.

        Args:
          name: Profile whose snapshots are rotated.
          max_count: Retention cap; defaults to the manager's ``max_backups``.

        Returns:
          The removed entries, oldest first.

        Raises:
          BackupSweepError: If any snapshot could not be removed.
        """

        cap = self._max_backups if max_count is None else max_count
        if cap < 0:
            raise ValueError("max_count must not be negative")
        entries = self.list_backups(name)
        excess = len(entries) - cap
        if excess <= 0:
            return []
        removed, failures = self._sweep(entries[:excess], lambda entry: entry.path.unlink())
        for entry in removed:
            self._logger.info("backup_pruned", profile=name, path=str(entry.path))
        if failures:
            raise BackupSweepError("prune", name, failures)
        return removed

    def recover_latest(self, name: str) -> Dict[str, Any]:
        """Decode the newest snapshot of ``name``.

        The live profile is left untouched; re-saving the result is the
        caller's decision.

        Raises:
          NoBackupsAvailable: If the profile has no snapshots.
          DecryptionFailure, DecompressionFailure, IntegrityFailure,
          MalformedData, IoFailure: If the newest snapshot cannot be read.
        """

        latest = self.latest_backup(name)
        if latest is None:
            raise NoBackupsAvailable(name)
        data = self._pipeline.read_file(latest.path, profile=name)
        self._logger.info("backup_recovered", profile=name, path=str(latest.path), timestamp=latest.timestamp)
        return data

    def rename_backups(self, old: str, new: str) -> List[BackupEntry]:
        """Move every snapshot of ``old`` to ``new``, keeping timestamps.

        All snapshots are attempted. A snapshot whose target already exists
        counts as a failure and stays where it is.

        Returns:
          The entries now filed under ``new``.

        Raises:
          BackupSweepError: If one or more snapshots could not be moved; the
            moved ones stay moved.
        """

        moved: List[BackupEntry] = []

        def _move(entry: BackupEntry) -> None:
            target = self.backup_path(new, entry.timestamp)
            if target.exists():
                raise FileExistsError(f"backup already exists: {target}")
            entry.path.rename(target)
            moved.append(BackupEntry(timestamp=entry.timestamp, path=target, profile=new))

        _, failures = self._sweep(self.list_backups(old), _move)
        for entry in moved:
            self._logger.info("backup_renamed", source=old, target=new, path=str(entry.path))
        if failures:
            raise BackupSweepError("rename", old, failures)
        return moved

    def delete_backups(self, name: str) -> List[BackupEntry]:
        """Remove every snapshot of ``name`` (best-effort, aggregate error)."""

        removed, failures = self._sweep(self.list_backups(name), lambda entry: entry.path.unlink())
        if removed:
            self._logger.info("backups_deleted", profile=name, count=len(removed))
        if failures:
            raise BackupSweepError("delete", name, failures)
        return removed

    def _sweep(
        self,
        entries: List[BackupEntry],
        action: Callable[[BackupEntry], None],
    ) -> Tuple[List[BackupEntry], List[Tuple[Path, Exception]]]:
        done: List[BackupEntry] = []
        failures: List[Tuple[Path, Exception]] = []
        for entry in entries:
            try:
                action(entry)
            except OSError as exc:
                self._logger.error(
                    "backup_sweep_failed",
                    profile=entry.profile,
                    path=str(entry.path),
                    error=str(exc),
                )
                failures.append((entry.path, exc))
                continue
            done.append(entry)
        return done, failures
