"""
Module: settingsvault.__init__

What:
  Aggregate the public API of settingsvault, an encrypted store for named
  settings profiles with timestamped snapshots, rotation, and recovery.

Why:
  Applications embedding the store should import from one stable namespace
  instead of reaching into the storage and security subpackages, which are
  free to change layout.

How:
  Re-export the profile store, the profile registry, the value model, and the
  error hierarchy. Subpackages stay importable for callers that need a single
  pipeline stage.

Interfaces:
  - ProfileStore: save/load/rename/delete/backup/recover/export/import.
  - ProfileManager, BulkResult: default and active profiles, bulk jobs.
  - Bool, Number, Text, Mapping, from_python: the settings value model.
  - SettingsVaultError and its subclasses.

Invariants:
  - Nothing exported here reads or writes profile content outside the
    encrypted pipeline, apart from the explicit plain export/import helpers.
"""

from .errors import (
    BackupSweepError,
    DecompressionFailure,
    DecryptionFailure,
    IntegrityFailure,
    InvalidProfileName,
    IoFailure,
    MalformedData,
    NameConflict,
    NoBackupsAvailable,
    ProfileNotFound,
    SettingsVaultError,
    SourceMissing,
)
from .profiles import BulkResult, ProfileManager
from .store import ProfileStore
from .values import Bool, Mapping, Number, Text, from_python

__version__ = "0.1.0"

__all__ = [
    "ProfileStore",
    "ProfileManager",
    "BulkResult",
    "Bool",
    "Number",
    "Text",
    "Mapping",
    "from_python",
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
