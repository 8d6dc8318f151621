"""Pydantic models describing the settingsvault runtime configuration."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StorageConfig(BaseModel):
    """Where profiles and their snapshots live, and how they are rotated."""

    model_config = ConfigDict(extra="forbid")

    storage_dir: str = "profiles"
    backup_dir: str = "backups"
    max_backups: int = Field(default=5, ge=1)
    compression_level: int = Field(default=6, ge=0, le=9)


class SecurityConfig(BaseModel):
    """Key discovery and integrity-tag settings."""

    model_config = ConfigDict(extra="forbid")

    key_path: Optional[str] = None
    key_env: str = "SETTINGSVAULT_KEY"
    keyed_integrity: bool = True

    @field_validator("key_env")
    @classmethod
    def _non_empty_env(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("key_env must name an environment variable")
        return value


class ProfilesConfig(BaseModel):
    """Profile registry defaults."""

    model_config = ConfigDict(extra="forbid")

    default_profile: str = "Default"


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``settingsvault.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    storage: StorageConfig = Field(default_factory=StorageConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    profiles: ProfilesConfig = Field(default_factory=ProfilesConfig)

    @field_validator("version")
    @classmethod
    def _supported_version(cls, value: int) -> int:
        if value != 1:
            raise ValueError("only configuration version 1 is supported")
        return value
