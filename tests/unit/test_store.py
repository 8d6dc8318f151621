"""Unit tests for :class:`settingsvault.store.ProfileStore`."""
from __future__ import annotations

import json
import sys
import threading
from pathlib import Path

import pytest

from settingsvault.config.schema import RuntimeConfig
from settingsvault.errors import (
    BackupSweepError,
    InvalidProfileName,
    IoFailure,
    MalformedData,
    NameConflict,
    NoBackupsAvailable,
    ProfileNotFound,
    SourceMissing,
)
from settingsvault.store import ProfileStore


def test_save_and_load(store: ProfileStore) -> None:
    store.save("Default", {"volume": 3})

    assert store.exists("Default")
    assert store.load("Default") == {"volume": 3}
    assert store.list_profiles() == ["Default"]


def test_load_missing_profile_raises(store: ProfileStore) -> None:
    with pytest.raises(ProfileNotFound):
        store.load("Missing")


def test_invalid_names_are_rejected_everywhere(store: ProfileStore) -> None:
    for call in (
        lambda: store.save("../x", {}),
        lambda: store.load(""),
        lambda: store.backup("a/b"),
        lambda: store.rename("ok", "_hidden"),
    ):
        with pytest.raises(InvalidProfileName):
            call()


def test_create_refuses_existing(store: ProfileStore) -> None:
    store.create("Work", {"a": 1})

    with pytest.raises(NameConflict):
        store.create("Work")
    assert store.load("Work") == {"a": 1}


def test_backup_applies_retention(store: ProfileStore, clock) -> None:
    store.save("Default", {"n": 0})
    for index in range(8):
        store.save("Default", {"n": index})
        store.backup("Default")
        clock.advance()

    assert [entry.timestamp for entry in store.list_backups("Default")] == [103, 104, 105, 106, 107]


def test_backup_without_prune_keeps_everything(store: ProfileStore, clock) -> None:
    store.save("Default", {})
    for _ in range(7):
        store.backup("Default", prune=False)
        clock.advance()

    assert len(store.list_backups("Default")) == 7
    assert len(store.prune_backups("Default")) == 2


def test_backup_of_missing_profile(store: ProfileStore) -> None:
    with pytest.raises(SourceMissing):
        store.backup("Nobody")


def test_recover_and_restore(store: ProfileStore, clock) -> None:
    store.save("Default", {"v": "good"})
    store.backup("Default")
    clock.advance()
    store.save("Default", {"v": "bad"})

    assert store.recover("Default") == {"v": "good"}
    assert store.load("Default") == {"v": "bad"}
    assert store.recover("Default", restore=True) == {"v": "good"}
    assert store.load("Default") == {"v": "good"}


def test_recover_without_backups(store: ProfileStore) -> None:
    store.save("Default", {})

    with pytest.raises(NoBackupsAvailable):
        store.recover("Default")


def test_rename_moves_live_file_and_backups(store: ProfileStore, clock) -> None:
    store.save("Old", {"a": 1})
    store.backup("Old")
    clock.advance()
    store.backup("Old")

    store.rename("Old", "New")

    assert not store.exists("Old")
    assert store.load("New") == {"a": 1}
    assert store.list_backups("Old") == []
    assert [entry.timestamp for entry in store.list_backups("New")] == [100, 101]
    assert store.recover("New") == {"a": 1}


def test_rename_conflicts(store: ProfileStore) -> None:
    store.save("A", {})
    store.save("B", {})

    with pytest.raises(NameConflict):
        store.rename("A", "B")
    with pytest.raises(NameConflict):
        store.rename("A", "A")
    with pytest.raises(ProfileNotFound):
        store.rename("Missing", "C")


def test_partial_rename_can_be_finished(store: ProfileStore) -> None:
    store.save("Old", {"a": 1})
    entry = store.backup("Old")
    store.backups.backup_path("New", entry.timestamp).parent.mkdir(parents=True, exist_ok=True)
    store.backups.backup_path("New", entry.timestamp).write_bytes(b"stale")

    with pytest.raises(BackupSweepError):
        store.rename("Old", "New")

    assert store.load("New") == {"a": 1}
    assert [e.timestamp for e in store.list_backups("Old")] == [entry.timestamp]

    store.backups.backup_path("New", entry.timestamp).unlink()
    moved = store.adopt_backups("Old", "New")

    assert [e.timestamp for e in moved] == [entry.timestamp]
    assert store.list_backups("Old") == []


def test_delete_removes_profile_and_backups(store: ProfileStore, clock) -> None:
    store.save("Temp", {})
    store.backup("Temp")
    clock.advance()
    store.backup("Temp")

    store.delete("Temp")

    assert not store.exists("Temp")
    assert store.list_backups("Temp") == []
    with pytest.raises(ProfileNotFound):
        store.delete("Temp")


def test_delete_cleans_orphaned_backups(store: ProfileStore) -> None:
    store.save("Temp", {})
    store.backup("Temp")
    store.pipeline.profile_path("Temp").unlink()

    with pytest.raises(ProfileNotFound):
        store.delete("Temp")

    assert store.list_backups("Temp") == []


def test_export_import_fidelity(store: ProfileStore, tmp_path: Path) -> None:
    data = {"audio": {"volume": 0.75, "muted": False}, "name": "Zoë", "count": 12}
    store.save("Default", data)
    target = tmp_path / "export" / "default.json"

    store.export_plain(store.load("Default"), target)

    text = target.read_text(encoding="utf-8")
    assert text.endswith("}\n")
    assert json.loads(text) == data
    assert store.import_plain(target) == data


def test_import_errors(store: ProfileStore, tmp_path: Path) -> None:
    with pytest.raises(IoFailure):
        store.import_plain(tmp_path / "absent.json")

    bad = tmp_path / "bad.json"
    bad.write_text('{"list": [1, 2]}', encoding="utf-8")
    with pytest.raises(MalformedData):
        store.import_plain(bad)


def test_concurrent_saves_leave_a_complete_profile(store: ProfileStore) -> None:
    errors = []

    def _writer(index: int) -> None:
        try:
            for step in range(10):
                store.save("Shared", {"writer": index, "step": step})
        except Exception as exc:  # pragma: no cover - surfaced by the assertion
            errors.append(exc)

    threads = [threading.Thread(target=_writer, args=(index,)) for index in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert store.load("Shared")["step"] == 9


def test_from_config_builds_working_store(tmp_path: Path, key: bytes) -> None:
    config = RuntimeConfig.model_validate(
        {
            "storage": {
                "storage_dir": str(tmp_path / "p"),
                "backup_dir": str(tmp_path / "b"),
                "max_backups": 2,
            },
            "security": {"keyed_integrity": False},
        }
    )
    store = ProfileStore.from_config(config, key, clock=lambda: 500.0)

    store.save("Default", {"x": True})
    entry = store.backup("Default")

    assert store.load("Default") == {"x": True}
    assert entry.path == tmp_path / "b" / "Default_500.bak"
    assert store.backups.max_backups == 2
    assert not store.pipeline.exists("Other")


needs_digit_limit = pytest.mark.skipif(
    not hasattr(sys, "get_int_max_str_digits"), reason="interpreter has no integer digit limit"
)


def _nested(depth: int) -> dict:
    data: dict = {}
    for _ in range(depth):
        data = {"k": data}
    return data


@needs_digit_limit
def test_save_rejects_integer_past_digit_limit(store: ProfileStore) -> None:
    store.save("Default", {"n": 1})

    with pytest.raises(MalformedData):
        store.save("Default", {"n": 10**5000})

    assert store.load("Default") == {"n": 1}


@needs_digit_limit
def test_import_rejects_integer_past_digit_limit(store: ProfileStore, tmp_path: Path) -> None:
    source = tmp_path / "huge.json"
    source.write_text('{"n": 1' + "0" * 5000 + "}", encoding="utf-8")

    with pytest.raises(MalformedData):
        store.import_plain(source)


def test_save_rejects_deeply_nested_mappings(store: ProfileStore) -> None:
    with pytest.raises(MalformedData):
        store.save("Default", _nested(1200))
    with pytest.raises(MalformedData):
        store.save("Default", _nested(100))

    assert not store.exists("Default")


@pytest.mark.parametrize("depth", [100, 3000])
def test_import_rejects_deeply_nested_mappings(store: ProfileStore, tmp_path: Path, depth: int) -> None:
    source = tmp_path / "deep.json"
    source.write_text('{"k":' * depth + "{}" + "}" * depth, encoding="utf-8")

    with pytest.raises(MalformedData):
        store.import_plain(source)


def test_moderate_nesting_round_trips(store: ProfileStore) -> None:
    data = _nested(40)

    store.save("Default", data)

    assert store.load("Default") == data


def test_parse_plain_reads_piped_bytes(store: ProfileStore) -> None:
    assert store.parse_plain(b'{"lang": "de"}') == {"lang": "de"}
    with pytest.raises(MalformedData):
        store.parse_plain(b"[]")
