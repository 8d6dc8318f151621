"""Cipher, integrity, and key-file helpers used by the persistence pipeline."""

from .cipher import KEY_SIZE, CipherGuard
from .integrity import IntegrityGuard, derive_integrity_key
from .keys import generate_key, parse_key, read_key_file, write_key_file

__all__ = [
    "KEY_SIZE",
    "CipherGuard",
    "IntegrityGuard",
    "derive_integrity_key",
    "generate_key",
    "parse_key",
    "read_key_file",
    "write_key_file",
]
