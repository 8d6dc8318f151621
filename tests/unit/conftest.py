"""Fixtures building an isolated settingsvault stack under ``tmp_path``.

What:
  Provide a fixed key, a manual clock, and ready-made pipeline, backup
  manager, profile store, and profile manager instances.

Why:
  Most unit tests exercise one layer but need the layers below it. Sharing the
  construction keeps directory layout and key handling identical everywhere,
  and the manual clock makes snapshot timestamps deterministic.

Interfaces:
  :class:`ManualClock`, fixtures ``key``, ``clock``, ``log_stream``,
  ``pipeline``, ``backups``, ``store``, ``manager``.
"""

import io
from pathlib import Path

import pytest

from settingsvault.profiles import ProfileManager
from settingsvault.security import CipherGuard, IntegrityGuard, derive_integrity_key
from settingsvault.storage import BackupManager, PersistencePipeline
from settingsvault.store import ProfileStore
from settingsvault.utils.logging import JsonLogger


TEST_KEY = bytes(range(32))


class ManualClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 1.0) -> None:
        self.now += seconds


@pytest.fixture
def key() -> bytes:
    return TEST_KEY


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def pipeline(tmp_path: Path, key: bytes, log_stream: io.StringIO) -> PersistencePipeline:
    return PersistencePipeline(
        tmp_path / "profiles",
        cipher=CipherGuard(key),
        integrity=IntegrityGuard(derive_integrity_key(key)),
        logger=JsonLogger(stream=log_stream, component="test.pipeline"),
    )


@pytest.fixture
def backups(tmp_path: Path, pipeline: PersistencePipeline, clock: ManualClock, log_stream: io.StringIO) -> BackupManager:
    return BackupManager(
        tmp_path / "backups",
        pipeline,
        max_backups=5,
        clock=clock,
        logger=JsonLogger(stream=log_stream, component="test.backup"),
    )


@pytest.fixture
def store(pipeline: PersistencePipeline, backups: BackupManager, log_stream: io.StringIO) -> ProfileStore:
    return ProfileStore(pipeline, backups, logger=JsonLogger(stream=log_stream, component="test.store"))


@pytest.fixture
def manager(store: ProfileStore, log_stream: io.StringIO) -> ProfileManager:
    instance = ProfileManager(store, logger=JsonLogger(stream=log_stream, component="test.profiles"))
    instance.initialize()
    return instance
