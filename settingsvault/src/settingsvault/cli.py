"""settingsvault command-line interface.

What:
  Provide a Typer application for operating on an encrypted profile store:
  key generation, save/show, snapshots and recovery, rename/delete, plain
  export/import, and registry commands (list, switch, verify, report).

Why:
  Operators need to inspect and repair profile stores (for example after a
  failed rename or a damaged live file) without writing Python. Routing every
  command through :class:`~settingsvault.store.ProfileStore` guarantees the
  same validation, locking, and error taxonomy as library callers.

How:
  Each command resolves the runtime configuration (``--config`` or the
  loader's search path), loads the key, builds the store, and prints JSON to
  stdout (``report`` prints plain text). Store errors print a one-line
  message to stderr and exit with code ``1``; configuration and key errors
  exit with code ``2``.

Interfaces:
  ``app`` (Typer application) and :func:`main`.

Invariants & Safety:
  - Profile contents are only ever written to stdout on explicit ``show``,
    ``recover`` or ``report`` requests; logs never include them.
"""
from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Tuple

import typer

from .config.loader import RuntimeConfigError, load_key, load_runtime_config
from .config.schema import RuntimeConfig
from .errors import SettingsVaultError
from .profiles import ProfileManager
from .security.keys import generate_key, write_key_file
from .store import ProfileStore


app = typer.Typer(help="Encrypted settings profile store")

LOGGER = logging.getLogger("settingsvault.cli")

ConfigOption = typer.Option(None, "--config", "-c", help="Path to settingsvault.yaml")


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False))


@contextmanager
def _reporting() -> Iterator[None]:
    """Translate library errors into exit codes."""

    try:
        yield
    except RuntimeConfigError as exc:
        LOGGER.error("config_error: %s", exc)
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    except (SettingsVaultError, ValueError) as exc:
        LOGGER.error("store_error type=%s: %s", type(exc).__name__, exc)
        typer.echo(f"error: {type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _open_store(config_path: Optional[Path]) -> Tuple[ProfileStore, RuntimeConfig]:
    runtime = load_runtime_config(config_path, reload=config_path is not None)
    store = ProfileStore.from_config(runtime, load_key(runtime))
    return store, runtime


def _open_manager(config_path: Optional[Path]) -> ProfileManager:
    store, runtime = _open_store(config_path)
    manager = ProfileManager(store, default_profile=runtime.profiles.default_profile)
    manager.initialize()
    return manager


def _read_plain(store: ProfileStore, source: str) -> dict:
    if source == "-":
        return store.parse_plain(typer.get_binary_stream("stdin").read())
    return store.import_plain(Path(source))


@app.command("keygen")
def keygen(path: Path = typer.Argument(..., help="Where to write the new hex key")) -> None:
    """Generate a new 32-byte key file (never overwrites)."""

    try:
        write_key_file(path, generate_key())
    except FileExistsError as exc:
        typer.echo(f"error: key file already exists: {path}", err=True)
        raise typer.Exit(code=1) from exc
    _echo_json({"key_path": str(path)})


@app.command("profiles")
def profiles(config: Optional[Path] = ConfigOption) -> None:
    """List profiles and mark the active one."""

    with _reporting():
        manager = _open_manager(config)
        _echo_json({"active": manager.active, "profiles": manager.profiles()})


@app.command("switch")
def switch(name: str, config: Optional[Path] = ConfigOption) -> None:
    """Make NAME the active profile."""

    with _reporting():
        manager = _open_manager(config)
        manager.switch(name)
        _echo_json({"active": name})


@app.command("save")
def save(
    name: str,
    source: str = typer.Argument(..., help="Plain JSON settings file, or '-' for stdin"),
    backup: bool = typer.Option(False, help="Snapshot the previous version before saving"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Encrypt SOURCE and store it as profile NAME."""

    with _reporting():
        store, _ = _open_store(config)
        data = _read_plain(store, source)
        if backup and store.exists(name):
            store.backup(name)
        path = store.save(name, data)
        _echo_json({"profile": name, "path": str(path)})


@app.command("show")
def show(name: str, config: Optional[Path] = ConfigOption) -> None:
    """Decrypt profile NAME and print it."""

    with _reporting():
        store, _ = _open_store(config)
        _echo_json(store.load(name))


@app.command("backup")
def backup(
    name: str,
    prune: bool = typer.Option(True, help="Apply the retention cap afterwards"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Snapshot profile NAME."""

    with _reporting():
        store, _ = _open_store(config)
        _echo_json(store.backup(name, prune=prune).as_dict())


@app.command("backups")
def backups(name: str, config: Optional[Path] = ConfigOption) -> None:
    """List snapshots of NAME, oldest first."""

    with _reporting():
        store, _ = _open_store(config)
        _echo_json([entry.as_dict() for entry in store.list_backups(name)])


@app.command("prune")
def prune(
    name: str,
    keep: Optional[int] = typer.Option(None, help="Snapshots to keep (default: configured cap)"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Delete the oldest snapshots of NAME beyond the cap."""

    with _reporting():
        store, _ = _open_store(config)
        removed = store.prune_backups(name, keep)
        _echo_json({"removed": [entry.as_dict() for entry in removed]})


@app.command("recover")
def recover(
    name: str,
    restore: bool = typer.Option(False, help="Write the recovered settings back as the live profile"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Decode the newest snapshot of NAME."""

    with _reporting():
        store, _ = _open_store(config)
        _echo_json(store.recover(name, restore=restore))


@app.command("rename")
def rename(old: str, new: str, config: Optional[Path] = ConfigOption) -> None:
    """Rename profile OLD (live file and snapshots) to NEW."""

    with _reporting():
        manager = _open_manager(config)
        manager.rename(old, new)
        _echo_json({"renamed": old, "to": new})


@app.command("delete")
def delete(name: str, config: Optional[Path] = ConfigOption) -> None:
    """Delete profile NAME and all of its snapshots."""

    with _reporting():
        manager = _open_manager(config)
        manager.delete(name)
        _echo_json({"deleted": name})


@app.command("export")
def export(name: str, target: Path, config: Optional[Path] = ConfigOption) -> None:
    """Write profile NAME to TARGET as plain JSON."""

    with _reporting():
        store, _ = _open_store(config)
        path = store.export_plain(store.load(name), target)
        _echo_json({"profile": name, "path": str(path)})


@app.command("import")
def import_(
    name: str,
    source: Path,
    force: bool = typer.Option(False, help="Replace an existing profile"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Create profile NAME from a plain JSON file."""

    with _reporting():
        store, _ = _open_store(config)
        data = store.import_plain(source)
        path = store.save(name, data) if force else store.create(name, data)
        _echo_json({"profile": name, "path": str(path)})


@app.command("verify")
def verify(config: Optional[Path] = ConfigOption) -> None:
    """Try to decode every profile; exit 1 if any is unreadable."""

    with _reporting():
        manager = _open_manager(config)
        failures = manager.verify_all()
        _echo_json({name: f"{type(exc).__name__}: {exc}" for name, exc in failures.items()})
        if failures:
            raise typer.Exit(code=1)


@app.command("report")
def report(config: Optional[Path] = ConfigOption) -> None:
    """Print every profile's settings as plain text; damaged ones are flagged."""

    with _reporting():
        manager = _open_manager(config)
        typer.echo(manager.report())


def main() -> None:
    logging.basicConfig(level=logging.WARNING, stream=sys.stderr)
    app()


if __name__ == "__main__":  # pragma: no cover - manual invocation
    main()
