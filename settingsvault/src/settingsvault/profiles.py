"""Profile registry: default and active profiles, cloning, merging, bulk jobs.

What:
  Layer the user-facing profile workflow on top of :class:`ProfileStore`:
  a guaranteed default profile, a persisted active-profile pointer, create /
  clone / switch / rename / delete with pointer maintenance, key-wise merges,
  bulk backup, rotation, recovery, verification, and export, and a
  plain-text report of every profile.

Why:
  Applications think in terms of "the active profile" rather than files. The
  registry keeps that state in an explicit object (constructed once and passed
  around) and persists it through the same encrypted pipeline as the
  profiles, so there is no second storage format to protect.

How:
  The active pointer lives in an internal document named
  :data:`REGISTRY_NAME`; its leading underscore keeps it out of the public
  name space and out of :meth:`ProfileStore.list_profiles`. Every mutating
  operation saves profiles first and updates the pointer last. Bulk jobs
  visit every profile and collect per-profile failures instead of stopping
  at the first one.

Interfaces:
  :class:`ProfileManager`, :class:`BulkResult`, :data:`REGISTRY_NAME`.

Invariants & Safety:
  - The default profile exists after :meth:`ProfileManager.initialize` and
    cannot be deleted.
  - The active pointer always names an existing profile; deleting the active
    profile moves it to the default profile.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .errors import (
    MalformedData,
    NameConflict,
    ProfileNotFound,
    SettingsVaultError,
)
from .store import ProfileStore
from .storage.pipeline import validate_profile_name
from .utils.logging import JsonLogger, get_logger
from .values import from_python


REGISTRY_NAME = "_registry"
DEFAULT_PROFILE_NAME = "Default"

ConflictResolver = Callable[[Any, Any], Any]


@dataclass
class BulkResult:
    """Outcome of a job run over every profile.

    Attributes:
      succeeded: Profiles processed without error, with the job's result.
      failed: Profiles whose step raised, with the exception.
    """

    succeeded: Dict[str, Any] = field(default_factory=dict)
    failed: Dict[str, SettingsVaultError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def _source_wins(source: Any, target: Any) -> Any:
    return source


class ProfileManager:
    """Registry of named profiles with one active profile.

    Args:
      store: Underlying profile store.
      default_profile: Name of the profile that always exists.
      logger: Structured logger.
    """

    def __init__(
        self,
        store: ProfileStore,
        *,
        default_profile: str = DEFAULT_PROFILE_NAME,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self._store = store
        self._default = validate_profile_name(default_profile)
        self._logger = logger or get_logger("settingsvault.profiles")
        self._active: Optional[str] = None

    @property
    def default_profile(self) -> str:
        return self._default

    @property
    def active(self) -> str:
        if self._active is None:
            raise RuntimeError("ProfileManager.initialize() must be called first")
        return self._active

    def initialize(self) -> str:
        """Ensure the default profile exists and load the active pointer.

        A missing or unreadable registry, or one naming a profile that no
        longer exists, falls back to the default profile and is rewritten.

        Returns:
          The active profile name.
        """

        if not self._store.exists(self._default):
            self._store.create(self._default)
            self._logger.info("default_profile_created", profile=self._default)
        active = self._read_registry()
        if active is None or not self._store.exists(active):
            active = self._default
            self._write_registry(active)
        self._active = active
        self._logger.info("profiles_initialized", active=active, count=len(self.profiles()))
        return active

    def _read_registry(self) -> Optional[str]:
        pipeline = self._store.pipeline
        if not pipeline.exists(REGISTRY_NAME):
            return None
        try:
            document = pipeline.read_profile(REGISTRY_NAME)
        except SettingsVaultError as exc:
            self._logger.warning("registry_unreadable", error=type(exc).__name__, detail=str(exc))
            return None
        active = document.get("active")
        if not isinstance(active, str):
            return None
        try:
            return validate_profile_name(active)
        except (TypeError, ValueError):
            return None

    def _write_registry(self, active: str) -> None:
        self._store.pipeline.write_profile(REGISTRY_NAME, {"active": active})

    def profiles(self) -> List[str]:
        return self._store.list_profiles()

    def exists(self, name: str) -> bool:
        return self._store.exists(name)

    def _require(self, name: str) -> None:
        if not self._store.exists(name):
            raise ProfileNotFound(name, path=self._store.pipeline.profile_path(name))

    def create(self, name: str, base: Optional[str] = None) -> None:
        """Create ``name``, empty or as a copy of ``base``.

        Raises:
          NameConflict: If ``name`` exists.
          ProfileNotFound: If ``base`` does not exist.
        """

        data: Dict[str, Any] = {}
        if base is not None:
            self._require(base)
            data = self._store.load(base)
        self._store.create(name, data)
        self._logger.info("profile_created", profile=name, base=base)

    def clone(self, source: str, new: str) -> None:
        self.create(new, base=source)

    def switch(self, name: str) -> None:
        self._require(name)
        self._write_registry(name)
        self._active = name
        self._logger.info("profile_switched", profile=name)

    def delete(self, name: str) -> None:
        """Delete ``name`` and its snapshots.

        Raises:
          ValueError: If ``name`` is the default profile.
        """

        if name == self._default:
            raise ValueError("Cannot delete the default profile.")
        self._store.delete(name)
        if self._active == name:
            self.switch(self._default)

    def rename(self, old: str, new: str) -> None:
        """Rename ``old``; the active pointer follows and the default cannot move."""

        if old == self._default:
            raise ValueError("Cannot rename the default profile.")
        try:
            self._store.rename(old, new)
        finally:
            # The live file may have moved even if the snapshot sweep failed.
            if self._active == old and not self._store.exists(old) and self._store.exists(new):
                self.switch(new)

    def merge(self, source: str, target: str, resolve: Optional[ConflictResolver] = None) -> Dict[str, Any]:
        """Copy top-level settings from ``source`` into ``target``.

        Keys only in ``source`` are added. For keys in both, ``resolve(source
        value, target value)`` picks the result; by default the source wins.

        Returns:
          The merged mapping now saved under ``target``.
        """

        resolver = resolve or _source_wins
        source_data = self._store.load(source)
        merged = self._store.load(target)
        for key, value in source_data.items():
            if key in merged:
                merged[key] = resolver(value, merged[key])
            else:
                merged[key] = value
        self._store.save(target, merged)
        self._logger.info("profiles_merged", source=source, target=target, keys=len(source_data))
        return merged

    def reset(self, name: str, defaults: Dict[str, Any]) -> None:
        self._require(name)
        self._store.save(name, copy.deepcopy(defaults))
        self._logger.info("profile_reset", profile=name)

    def find(self, predicate: Callable[[str], bool]) -> List[str]:
        return [name for name in self.profiles() if predicate(name)]

    def _each(self, step: Callable[[str], Any]) -> BulkResult:
        result = BulkResult()
        for name in self.profiles():
            try:
                result.succeeded[name] = step(name)
            except SettingsVaultError as exc:
                self._logger.error("profile_job_failed", profile=name, error=type(exc).__name__, detail=str(exc))
                result.failed[name] = exc
        return result

    def backup_all(self) -> BulkResult:
        """Snapshot every profile and apply the retention cap."""

        return self._each(self._store.backup)

    def prune_all(self, max_count: Optional[int] = None) -> BulkResult:
        return self._each(lambda name: self._store.prune_backups(name, max_count))

    def recover_all(self) -> BulkResult:
        """Restore every profile from its newest snapshot.

        Profiles without snapshots are reported under ``failed`` with
        :class:`NoBackupsAvailable` and keep their live data.
        """

        return self._each(lambda name: self._store.recover(name, restore=True))

    def verify_all(self) -> Dict[str, SettingsVaultError]:
        """Try to load every profile; map the unreadable ones to their error."""

        return self._each(self._store.load).failed

    def report(self) -> str:
        """Render every profile and its settings as a plain-text report.

        Each profile gets a header line followed by one ``  - key: value``
        line per top-level setting, using the value model's display form
        (booleans as ``on``/``off``, nested mappings inline). A profile that
        cannot be loaded is listed with the error type instead of settings,
        so one damaged file does not hide the rest.
        """

        lines = ["Profiles Report:"]
        for name in self.profiles():
            lines.append(f"Profile: {name}")
            try:
                tree = from_python(self._store.load(name))
            except SettingsVaultError as exc:
                self._logger.warning("profile_report_failed", profile=name, error=type(exc).__name__)
                lines.append(f"  - Failed to load settings ({type(exc).__name__})")
            else:
                for key, value in tree.items:
                    lines.append(f"  - {key}: {value.render()}")
            lines.append("")
        return "\n".join(lines)

    def export_all(self, path: Path) -> Path:
        """Write every readable profile into one plain JSON document.

        Raises:
          SettingsVaultError: The first profile that cannot be loaded; a
            partial export is never written.
        """

        bundle = {name: self._store.load(name) for name in self.profiles()}
        return self._store.export_plain(bundle, path)

    def import_all(self, path: Path, *, overwrite: bool = False) -> List[str]:
        """Create (or with ``overwrite``, replace) profiles from an export bundle.

        Raises:
          MalformedData: If an entry is not a mapping or has an invalid name.
          NameConflict: If a profile exists and ``overwrite`` is false; nothing
            is written in that case.
        """

        bundle = self._store.import_plain(path)
        for name, data in bundle.items():
            if not isinstance(data, dict):
                raise MalformedData(f"import entry {name!r} is not a settings mapping")
            try:
                validate_profile_name(name)
            except ValueError as exc:
                raise MalformedData(str(exc)) from exc
            if not overwrite and self._store.exists(name):
                raise NameConflict(name)
        for name, data in bundle.items():
            self._store.save(name, data)
        self._logger.info("profiles_imported", path=str(path), count=len(bundle))
        return sorted(bundle)


__all__ = ["BulkResult", "ProfileManager", "REGISTRY_NAME", "DEFAULT_PROFILE_NAME"]
