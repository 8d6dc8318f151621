"""Shared logging and filesystem helpers."""

from .fsio import atomic_write_bytes, read_bytes
from .logging import JsonLogger, get_logger

__all__ = ["JsonLogger", "atomic_write_bytes", "get_logger", "read_bytes"]
