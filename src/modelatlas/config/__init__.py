"""Registry configuration: YAML file, environment overrides and validated settings."""

from modelatlas.config.loader import default_config_path, load_registry_config
from modelatlas.config.settings import (
    DEFAULT_CATALOG_URL,
    RegistrySettings,
    default_cache_dir,
    default_cache_path,
    load_settings,
)

__all__ = [
    "DEFAULT_CATALOG_URL",
    "RegistrySettings",
    "default_cache_dir",
    "default_cache_path",
    "default_config_path",
    "load_registry_config",
    "load_settings",
]
