"""Persistence pipeline stages and the backup manager.

What:
  Group the byte-level building blocks of a profile file: the serializer,
  the compression codec, the pipeline that chains them with the security
  guards, and the snapshot manager.

Why:
  The profile store and the registry depend on these types; importing them
  from one package keeps call sites independent of the module layout.

Interfaces:
  :class:`Serializer`, :class:`CompressionCodec`,
  :class:`PersistencePipeline`, :class:`BackupManager`,
  :class:`BackupEntry`, :func:`validate_profile_name`.
"""

from .backup import BACKUP_SUFFIX, DEFAULT_MAX_BACKUPS, BackupEntry, BackupManager
from .compression import CompressionCodec
from .pipeline import PROFILE_SUFFIX, PersistencePipeline, validate_profile_name
from .serializer import Serializer

__all__ = [
    "BACKUP_SUFFIX",
    "DEFAULT_MAX_BACKUPS",
    "PROFILE_SUFFIX",
    "BackupEntry",
    "BackupManager",
    "CompressionCodec",
    "PersistencePipeline",
    "Serializer",
    "validate_profile_name",
]
