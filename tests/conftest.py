"""Pytest configuration shared by the unit and end-to-end suites.

What:
  Put the in-repo source tree on ``sys.path`` and reset process-wide state
  (the runtime configuration cache and key/config environment variables)
  around every test.

Why:
  The loader caches the configuration and honours ``SETTINGSVAULT_CONFIG``
  and ``SETTINGSVAULT_KEY``. A developer shell exporting either, or one test
  leaving the cache warm, would make results depend on execution order.

How:
  Prepend ``settingsvault/src`` at import time when it exists, then use an
  autouse fixture that clears the environment with :class:`pytest.MonkeyPatch`
  and calls :func:`reset_runtime_config` before and after each test.

Interfaces:
  :func:`isolated_runtime` (autouse pytest fixture).
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "settingsvault" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from settingsvault.config.loader import reset_runtime_config


@pytest.fixture(autouse=True)
def isolated_runtime(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Run each test from an empty directory with no inherited configuration."""

    monkeypatch.delenv("SETTINGSVAULT_CONFIG", raising=False)
    monkeypatch.delenv("SETTINGSVAULT_KEY", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
