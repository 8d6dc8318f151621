"""Runtime configuration package.

What:
  Expose the configuration loader helpers and the Pydantic schema that
  describe where profiles live and how they are protected.

Why:
  Callers should not reach into module internals to build a store; the
  exported names are the supported surface.

Interfaces:
  - load_runtime_config / get_runtime_config / reset_runtime_config: resolve
    and cache ``settingsvault.yaml``.
  - load_key: read the process-wide cipher key.
  - RuntimeConfig and its sections; RuntimeConfigError.
"""

from .loader import (
    RuntimeConfigError,
    get_runtime_config,
    load_key,
    load_runtime_config,
    reset_runtime_config,
)
from .schema import ProfilesConfig, RuntimeConfig, SecurityConfig, StorageConfig

__all__ = [
    "load_runtime_config",
    "get_runtime_config",
    "reset_runtime_config",
    "load_key",
    "RuntimeConfigError",
    "RuntimeConfig",
    "StorageConfig",
    "SecurityConfig",
    "ProfilesConfig",
]
