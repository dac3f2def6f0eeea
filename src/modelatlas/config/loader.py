"""Configuration loader module.

Settings are read from a YAML file (``registry:`` section), ``${VAR}``
placeholders are substituted from the environment, and finally
``MODELATLAS_*`` environment variables override individual keys.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from modelatlas.exceptions import ConfigurationError

ENV_PREFIX = "MODELATLAS_"
CONFIG_PATH_ENV = f"{ENV_PREFIX}CONFIG_PATH"

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")

# Environment variable suffix -> key in the ``registry`` section.
_ENV_OVERRIDES = {
    "CACHE_PATH": "cache_path",
    "DISK_MAX_AGE": "disk_max_age",
    "CATALOG_URL": "catalog_url",
    "FETCH_TIMEOUT": "fetch_timeout",
    "FETCH_ATTEMPTS": "fetch_attempts",
}


def default_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the config file path, honouring ``MODELATLAS_CONFIG_PATH``."""
    env = os.environ if environ is None else environ
    env_path = env.get(CONFIG_PATH_ENV)
    if not env_path:
        return Path.home() / ".modelatlas" / "config.yaml"
    path = Path(env_path).expanduser()
    if path.is_dir() or not path.suffix:
        return path / "config.yaml"
    return path


def merge_dicts(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary with values that override the base

    Returns:
        Merged dictionary where override values take precedence
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, Mapping):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value

    return result


def resolve_env_vars(value: Any, environ: Optional[Mapping[str, str]] = None) -> Any:
    """Replace ``${VAR}`` patterns with environment variables.

    Unset variables resolve to an empty string. Dicts and lists are walked
    recursively; other values are returned unchanged.
    """
    env = os.environ if environ is None else environ
    if isinstance(value, dict):
        return {key: resolve_env_vars(item, env) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_env_vars(item, env) for item in value]
    if isinstance(value, str) and "${" in value:
        return _ENV_PATTERN.sub(lambda match: env.get(match.group(1), ""), value)
    return value


def load_yaml_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        path: Path to YAML file

    Returns:
        Dictionary containing configuration from YAML (empty if the file is missing)

    Raises:
        ConfigurationError: If file cannot be read or parsed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Error reading {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Collect ``MODELATLAS_*`` overrides for the registry section."""
    env = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}
    for suffix, key in _ENV_OVERRIDES.items():
        value = env.get(f"{ENV_PREFIX}{suffix}")
        if value is not None and value.strip():
            overrides[key] = value.strip()
    return overrides


def load_registry_config(
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Return the merged ``registry`` section from file and environment.

    Args:
        config_path: Explicit YAML file; defaults to :func:`default_config_path`.
        environ: Environment mapping; defaults to ``os.environ``.

    Raises:
        ConfigurationError: If the file is unreadable or malformed.
    """
    path = Path(config_path) if config_path else default_config_path(environ)
    file_config = resolve_env_vars(load_yaml_file(path), environ)

    section = file_config.get("registry", {})
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"'registry' section in {path} must be a mapping")

    return merge_dicts(section, env_overrides(environ))


__all__ = [
    "CONFIG_PATH_ENV",
    "ENV_PREFIX",
    "default_config_path",
    "env_overrides",
    "load_registry_config",
    "load_yaml_file",
    "merge_dicts",
    "resolve_env_vars",
]
