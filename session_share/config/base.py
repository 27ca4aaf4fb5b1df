"""
Base configuration for session_share.

All filesystem locations the services touch are collected here, so one
ShareSettings instance built at process start describes the whole
environment. Services take it as a constructor argument and never look up
the home directory on their own.
"""

from __future__ import annotations

import os
import pathlib
from typing import TypeVar

import lazy_object_proxy
import pydantic
import pydantic_settings

from session_share.types import ArchiveFormat

T = TypeVar('T', bound='ShareSettings')

_HOME = pathlib.Path.home()


class ShareSettings(pydantic_settings.BaseSettings):
    """Directories and tunables shared by every service."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,  # Fail fast on misconfiguration
        extra='forbid',  # Reject unknown environment variables
    )

    # Application metadata
    APP_NAME: str = 'session-share'
    VERSION: str = '0.1.0'

    # Filesystem layout
    HOME_DIR: pathlib.Path = _HOME
    DATA_DIR: pathlib.Path = _HOME / '.local' / 'share' / 'opencode'
    ARCHIVES_DIR: pathlib.Path = _HOME / '.opencode' / 'session-archives'
    SHARES_DIR: pathlib.Path = _HOME / '.opencode' / 'private-shares'

    # Repository search
    SEARCH_MAX_DEPTH: int = 3
    VCS_MARKER: str = '.git'

    # Archives
    DEFAULT_FORMAT: ArchiveFormat = 'tar.zst'
    COMPRESSION_LEVEL: int = 3  # zstd level (3 = balanced)

    # Marker prepended to the title of every imported session
    IMPORTED_PREFIX: str = '[IMPORTED]'

    @pydantic.field_validator('COMPRESSION_LEVEL')
    @classmethod
    def validate_compression_level(cls, v: int) -> int:
        """Validate compression level is within zstd bounds."""
        if not 1 <= v <= 22:
            raise ValueError('COMPRESSION_LEVEL must be between 1-22')
        return v

    @pydantic.field_validator('SEARCH_MAX_DEPTH')
    @classmethod
    def validate_search_depth(cls, v: int) -> int:
        """Keep the repository walk bounded."""
        if not 0 <= v <= 10:
            raise ValueError('SEARCH_MAX_DEPTH must be between 0-10')
        return v

    @property
    def storage_dir(self) -> pathlib.Path:
        """Root of the JSON record tree."""
        return self.DATA_DIR / 'storage'

    @property
    def snapshot_dir(self) -> pathlib.Path:
        """Root of the opaque per-project snapshot trees."""
        return self.DATA_DIR / 'snapshot'

    @classmethod
    def for_home(cls, home: pathlib.Path, **overrides: object) -> ShareSettings:
        """Build settings with every directory rooted under ``home``."""
        values: dict[str, object] = {
            'HOME_DIR': home,
            'DATA_DIR': home / '.local' / 'share' / 'opencode',
            'ARCHIVES_DIR': home / '.opencode' / 'session-archives',
            'SHARES_DIR': home / '.opencode' / 'private-shares',
        }
        values.update(overrides)
        return cls.model_validate(values)


def get_settings(settings_class: type[T], env_file: str | None = None) -> T:
    """
    Factory for creating settings with dynamic .env file loading.

    LOAD_ENV_FILE environment variable specifies custom .env file path.
    When unset (production), loads from environment variables only.

    Args:
        settings_class: Settings class to instantiate
        env_file: Optional path to .env file (overrides LOAD_ENV_FILE)

    Returns:
        Settings instance

    Raises:
        FileNotFoundError: If specified .env file doesn't exist
    """
    env_file_path = env_file or os.getenv('LOAD_ENV_FILE')

    if not env_file_path:
        return settings_class()  # No .env file, load from environment only

    resolved_path = pathlib.Path(env_file_path).resolve()
    if not resolved_path.exists():
        raise FileNotFoundError(f'Environment file not found: {resolved_path}')

    return settings_class(_env_file=resolved_path)


def lazy_settings(settings_class: type[T]) -> T:
    """
    Lazy settings - defers instantiation until first access.

    Args:
        settings_class: Settings class to instantiate

    Returns:
        Proxy that instantiates settings on first access
    """
    return lazy_object_proxy.Proxy(lambda: get_settings(settings_class))
