"""End-to-end tests driving the settingsvault CLI as a subprocess.

What:
  Run ``python -m settingsvault.cli`` against a fresh configuration, key, and
  storage tree and walk a profile through its whole life: save, show,
  snapshot, damage, recovery, rename, export/import, and deletion.

Why:
  Operators use the CLI to repair stores by hand. These tests check the
  module entry point, stdout/stderr separation, and exit codes the way an
  operator (or a shell script) observes them.

How:
  Build the command with a controlled ``PYTHONPATH`` pointing at the in-repo
  source tree, capture stdout/stderr, and parse stdout as JSON.

Interfaces:
  ``test_profile_lifecycle``, ``test_error_exit_codes``.

Invariants & Safety:
  - Tests run against the local source tree, never an installed package.
  - Logs go to stderr, so stdout is always parseable JSON on success.
"""

import json
import os
import pathlib
import subprocess
import sys
from typing import Optional

import pytest


PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]


def _run_cli(*args: str, cwd: pathlib.Path, stdin: Optional[str] = None) -> subprocess.CompletedProcess:
    """Execute the CLI with ``args`` and return the completed process."""

    env = os.environ.copy()
    env["PYTHONPATH"] = str(PROJECT_ROOT / "settingsvault" / "src")
    env.pop("SETTINGSVAULT_KEY", None)
    env.pop("SETTINGSVAULT_CONFIG", None)
    return subprocess.run(
        [sys.executable, "-m", "settingsvault.cli", *args],
        cwd=str(cwd),
        env=env,
        input=stdin,
        capture_output=True,
        text=True,
        check=False,
    )


@pytest.fixture
def workspace(tmp_path: pathlib.Path) -> pathlib.Path:
    """Create a key and a configuration file inside ``tmp_path``."""

    result = _run_cli("keygen", "vault.key", cwd=tmp_path)
    assert result.returncode == 0, result.stderr
    (tmp_path / "settingsvault.yaml").write_text(
        "\n".join(
            [
                "version: 1",
                "storage:",
                "  storage_dir: data/profiles",
                "  backup_dir: data/backups",
                "  max_backups: 3",
                "security:",
                "  key_path: vault.key",
            ]
        ),
        encoding="utf-8",
    )
    return tmp_path


def _ok(result: subprocess.CompletedProcess):
    assert result.returncode == 0, result.stderr
    return json.loads(result.stdout)


def test_profile_lifecycle(workspace: pathlib.Path) -> None:
    settings = workspace / "settings.json"
    settings.write_text(json.dumps({"audio": {"volume": 8}, "theme": "dark"}), encoding="utf-8")

    _ok(_run_cli("save", "Player", str(settings), cwd=workspace))
    assert _ok(_run_cli("show", "Player", cwd=workspace)) == {"audio": {"volume": 8}, "theme": "dark"}

    entry = _ok(_run_cli("backup", "Player", cwd=workspace))
    assert entry["profile"] == "Player"
    assert pathlib.Path(entry["path"]).name == f"Player_{entry['timestamp']}.bak"

    _ok(_run_cli("save", "Player", "-", cwd=workspace, stdin='{"theme": "light"}'))
    assert _ok(_run_cli("show", "Player", cwd=workspace)) == {"theme": "light"}

    live = workspace / "data" / "profiles" / "Player.json"
    live.write_bytes(b"\x00" * 64)
    damaged = _run_cli("show", "Player", cwd=workspace)
    assert damaged.returncode == 1
    assert "DecryptionFailure" in damaged.stderr

    assert _ok(_run_cli("recover", "Player", "--restore", cwd=workspace))["theme"] == "dark"
    assert _ok(_run_cli("show", "Player", cwd=workspace))["theme"] == "dark"

    _ok(_run_cli("rename", "Player", "Hero", cwd=workspace))
    listing = _ok(_run_cli("profiles", cwd=workspace))
    assert listing == {"active": "Default", "profiles": ["Default", "Hero"]}
    assert len(_ok(_run_cli("backups", "Hero", cwd=workspace))) == 1

    exported = workspace / "hero.json"
    _ok(_run_cli("export", "Hero", str(exported), cwd=workspace))
    assert json.loads(exported.read_text(encoding="utf-8"))["audio"] == {"volume": 8}
    _ok(_run_cli("import", "Clone", str(exported), cwd=workspace))
    assert _ok(_run_cli("show", "Clone", cwd=workspace)) == _ok(_run_cli("show", "Hero", cwd=workspace))

    _ok(_run_cli("delete", "Hero", cwd=workspace))
    assert _ok(_run_cli("backups", "Hero", cwd=workspace)) == []
    assert _ok(_run_cli("verify", cwd=workspace)) == {}


def test_error_exit_codes(workspace: pathlib.Path, tmp_path_factory: pytest.TempPathFactory) -> None:
    missing = _run_cli("show", "Nobody", cwd=workspace)
    assert missing.returncode == 1
    assert "ProfileNotFound" in missing.stderr
    assert missing.stdout == ""

    empty_dir = tmp_path_factory.mktemp("empty")
    no_config = _run_cli("profiles", cwd=empty_dir)
    assert no_config.returncode == 2
    assert "settingsvault.yaml" in no_config.stderr

    again = _run_cli("keygen", "vault.key", cwd=workspace)
    assert again.returncode == 1
