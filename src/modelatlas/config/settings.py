"""Registry settings.

The schema is small on purpose: where the disk cache lives, how old a disk
snapshot may be before it is ignored at cold start, and where the catalog is
fetched from.

Examples:
    >>> settings = RegistrySettings(disk_max_age=3600)
    >>> settings.max_age.total_seconds()
    3600.0
"""

from __future__ import annotations

import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from modelatlas.config.loader import load_registry_config
from modelatlas.exceptions import ConfigurationError

DEFAULT_CATALOG_URL = "https://models.dev/api.json"
DEFAULT_DISK_MAX_AGE = 7 * 24 * 60 * 60
CACHE_FILE_NAME = "catalog.json"


def default_cache_dir(
    platform: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> Path:
    """Return the per-user cache directory for this platform."""
    env = os.environ if environ is None else environ
    platform = platform or sys.platform
    if platform.startswith("win"):
        base = env.get("LOCALAPPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Local"
    elif platform == "darwin":
        root = Path.home() / "Library" / "Caches"
    else:
        base = env.get("XDG_CACHE_HOME")
        root = Path(base) if base else Path.home() / ".cache"
    return root / "modelatlas"


def default_cache_path() -> Path:
    return default_cache_dir() / CACHE_FILE_NAME


class RegistrySettings(BaseModel):
    """Validated settings for a :class:`~modelatlas.registry.ProviderRegistry`.

    Invalid values raise :class:`ConfigurationError` at construction.

    Attributes:
        cache_path: File holding the persisted catalog snapshot.
        disk_max_age: Seconds after which a disk snapshot is not trusted at cold start.
        catalog_url: Endpoint of the remote catalog.
        fetch_timeout: Per-request timeout in seconds.
        fetch_attempts: Attempts per refresh for transient failures.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    cache_path: Path = Field(default_factory=default_cache_path)
    disk_max_age: float = DEFAULT_DISK_MAX_AGE
    catalog_url: str = DEFAULT_CATALOG_URL
    fetch_timeout: float = 30.0
    fetch_attempts: int = 3

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid registry settings: {exc}") from exc

    @field_validator("cache_path", mode="before")
    @classmethod
    def _validate_cache_path(cls, value: Any) -> Path:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("cache_path must not be empty")
        if not isinstance(value, (str, Path)):
            raise ValueError("cache_path must be a path")
        path = Path(value).expanduser()
        if path.is_dir():
            raise ValueError(f"cache_path {path} is a directory, expected a file path")
        return path

    @field_validator("disk_max_age", "fetch_timeout")
    @classmethod
    def _validate_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("fetch_attempts")
    @classmethod
    def _validate_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("catalog_url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        parsed = urlparse(value.strip())
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"catalog_url must be an http(s) URL, got {value!r}")
        return value.strip()

    @property
    def max_age(self) -> timedelta:
        return timedelta(seconds=self.disk_max_age)


def load_settings(
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RegistrySettings:
    """Build settings from the config file and ``MODELATLAS_*`` variables.

    Raises:
        ConfigurationError: If the file is malformed or a value is invalid.
    """
    return RegistrySettings(**load_registry_config(config_path, environ))


__all__ = [
    "DEFAULT_CATALOG_URL",
    "DEFAULT_DISK_MAX_AGE",
    "RegistrySettings",
    "default_cache_dir",
    "default_cache_path",
    "load_settings",
]
