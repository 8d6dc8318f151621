"""Exception hierarchy shared by the settingsvault persistence layers.

What:
  Enumerate every failure the pipeline, backup manager, and profile store can
  report so callers can branch on the failing stage instead of parsing
  messages.

Why:
  A failed load must never be mistaken for an empty profile. Tampering,
  corruption, a wrong on-disk format, and a missing file each call for a
  different recovery decision, so each one gets its own type.

How:
  All errors derive from :class:`SettingsVaultError`. Filesystem problems
  derive from :class:`IoFailure` and keep the offending path; pipeline stage
  failures are siblings so ``except`` clauses can target a single stage.

Interfaces:
  :class:`SettingsVaultError`, :class:`IoFailure`, :class:`ProfileNotFound`,
  :class:`BackupSweepError`, :class:`DecryptionFailure`,
  :class:`DecompressionFailure`, :class:`IntegrityFailure`,
  :class:`MalformedData`, :class:`SourceMissing`,
  :class:`NoBackupsAvailable`, :class:`NameConflict`,
  :class:`InvalidProfileName`.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple


class SettingsVaultError(Exception):
    """Base class for every error raised by settingsvault."""


class IoFailure(SettingsVaultError):
    """An OS-level open/read/write/remove/rename failed.

    Attributes:
      path: File the operation was acting on, when known.
    """

    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class ProfileNotFound(IoFailure):
    """The live file for a profile does not exist."""

    def __init__(self, profile: str, *, path: Optional[Path] = None) -> None:
        super().__init__(f"Profile does not exist: {profile}", path=path)
        self.profile = profile


class BackupSweepError(IoFailure):
    """One or more files failed during a multi-file backup operation.

    What:
      Aggregates the per-file failures of prune, rename, and delete sweeps.

    Why:
      Those sweeps process every entry even when one fails; callers still need
      the complete list of what was left behind so they can repair it.

    How:
      Stores ``(path, error)`` pairs in :attr:`failures` and renders them into
      a single message.
    """

    def __init__(self, operation: str, profile: str, failures: List[Tuple[Path, Exception]]) -> None:
        details = "; ".join(f"{path}: {exc}" for path, exc in failures)
        super().__init__(f"Backup {operation} for profile '{profile}' left {len(failures)} failure(s): {details}")
        self.operation = operation
        self.profile = profile
        self.failures = list(failures)


class DecryptionFailure(SettingsVaultError):
    """Ciphertext was truncated or failed authentication."""


class DecompressionFailure(SettingsVaultError):
    """The compressed stream was invalid, truncated, or had trailing data."""


class IntegrityFailure(SettingsVaultError):
    """The integrity tag was malformed or did not match the payload."""


class MalformedData(SettingsVaultError):
    """Bytes or values do not match the settings mapping shape."""


class SourceMissing(SettingsVaultError):
    """A backup was requested for a profile that has no live file."""

    def __init__(self, profile: str) -> None:
        super().__init__(f"No settings file to back up for profile: {profile}")
        self.profile = profile


class NoBackupsAvailable(SettingsVaultError):
    """Recovery was requested but the profile has no backups."""

    def __init__(self, profile: str) -> None:
        super().__init__(f"No backups available for profile: {profile}")
        self.profile = profile


class NameConflict(SettingsVaultError):
    """The target name of a create/rename already exists."""

    def __init__(self, profile: str) -> None:
        super().__init__(f"Profile already exists: {profile}")
        self.profile = profile


class InvalidProfileName(SettingsVaultError, ValueError):
    """A profile name is empty or cannot be mapped safely onto a filename."""


__all__ = [
    "SettingsVaultError",
    "IoFailure",
    "ProfileNotFound",
    "BackupSweepError",
    "DecryptionFailure",
    "DecompressionFailure",
    "IntegrityFailure",
    "MalformedData",
    "SourceMissing",
    "NoBackupsAvailable",
    "NameConflict",
    "InvalidProfileName",
]
