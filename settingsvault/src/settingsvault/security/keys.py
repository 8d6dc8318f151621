"""Key material helpers: generation, key files, and hex parsing."""
from __future__ import annotations

import binascii
import os
from pathlib import Path

from nacl import utils

from .cipher import KEY_SIZE


def generate_key() -> bytes:
    return utils.random(KEY_SIZE)


def parse_key(material: bytes) -> bytes:
    """Interpret ``material`` as hex text or raw key bytes.

    Raises:
      ValueError: If the material is neither 64 hex characters nor exactly
        32 raw bytes.
    """

    text = material.strip()
    if len(text) == KEY_SIZE * 2:
        try:
            return binascii.unhexlify(text)
        except (binascii.Error, ValueError):
            pass
    if len(material) == KEY_SIZE:
        return bytes(material)
    raise ValueError(f"key must be {KEY_SIZE * 2} hex characters or {KEY_SIZE} raw bytes")


def read_key_file(path: Path) -> bytes:
    return parse_key(Path(path).read_bytes())


def write_key_file(path: Path, key: bytes) -> None:
    """Store ``key`` as hex in a new file readable only by the owner.

    Raises:
      FileExistsError: If ``path`` already exists; keys are never overwritten.
    """

    if len(key) != KEY_SIZE:
        raise ValueError(f"key must be {KEY_SIZE} bytes")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w", encoding="ascii") as handle:
        handle.write(key.hex())
        handle.write("\n")
