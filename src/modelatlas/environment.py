"""Whether a provider is usable in the current environment.

Catalog data says which configuration keys a provider needs; whether they are
set is a property of the running process. The two are kept apart: nothing
here is stored on the catalog types, and every check takes an explicit
:class:`ConfigLookup`.

Examples:
    >>> lookup = EnvironmentLookup({"OPENAI_API_KEY": "sk-test"})
    >>> lookup.get("OPENAI_API_KEY")
    'sk-test'
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol, Sequence

from modelatlas.catalog.types import Provider


class ConfigLookup(Protocol):
    """Anything that can answer "what is the value of this key"."""

    def get(self, key: str) -> Optional[str]:
        """Return the value for ``key`` or ``None`` if unset."""


class EnvironmentLookup:
    """Read keys from the process environment or an explicit mapping."""

    def __init__(self, values: Optional[Mapping[str, str]] = None) -> None:
        self._values = values

    def get(self, key: str) -> Optional[str]:
        source = os.environ if self._values is None else self._values
        return source.get(key)


class ChainedLookup:
    """Try several lookups in order; the first non-blank value wins."""

    def __init__(self, *lookups: ConfigLookup) -> None:
        self._lookups: Sequence[ConfigLookup] = lookups

    def get(self, key: str) -> Optional[str]:
        for lookup in self._lookups:
            value = lookup.get(key)
            if value is not None and value.strip():
                return value
        return None


def _is_set(lookup: ConfigLookup, key: str) -> bool:
    value = lookup.get(key)
    return value is not None and bool(value.strip())


def missing_config_keys(provider: Provider, lookup: ConfigLookup) -> list[str]:
    """Return the provider's required keys that are unset or blank, sorted."""
    return sorted(key for key in provider.required_config_keys if not _is_set(lookup, key))


def is_provider_configured(provider: Provider, lookup: ConfigLookup) -> bool:
    """True when every required configuration key has a non-blank value."""
    return not missing_config_keys(provider, lookup)


def check_provider_configuration(provider: Provider, lookup: ConfigLookup) -> list[str]:
    """Describe everything that keeps ``provider`` from being usable.

    Returns:
        list[str]: Human-readable problems; empty when the provider is ready.
    """
    problems: list[str] = []
    for var in provider.env:
        if not var.required:
            continue
        value = lookup.get(var.name)
        if value is None:
            problems.append(f"Required environment variable '{var.name}' is not set")
        elif not value.strip():
            problems.append(f"Required environment variable '{var.name}' is empty")
    if not provider.models:
        problems.append(f"Provider '{provider.id}' has no available models")
    return problems


@dataclass(frozen=True)
class ProviderConnectionInfo:
    """What a provider client needs to connect, derived from catalog data."""

    base_url: Optional[str]
    required_env_vars: tuple[str, ...] = ()
    optional_env_vars: tuple[str, ...] = ()
    config: Mapping[str, str] = field(default_factory=dict, hash=False)

    def values(self, lookup: ConfigLookup) -> dict[str, str]:
        """Return the env vars from this connection info that are set."""
        found: dict[str, str] = {}
        for name in (*self.required_env_vars, *self.optional_env_vars):
            value = lookup.get(name)
            if value is not None:
                found[name] = value
        return found


def connection_info(provider: Provider) -> ProviderConnectionInfo:
    config: dict[str, str] = {}
    if provider.api_version:
        config["api_version"] = provider.api_version
    return ProviderConnectionInfo(
        base_url=provider.base_url,
        required_env_vars=tuple(var.name for var in provider.env if var.required),
        optional_env_vars=tuple(var.name for var in provider.env if not var.required),
        config=config,
    )


__all__ = [
    "ConfigLookup",
    "EnvironmentLookup",
    "ChainedLookup",
    "ProviderConnectionInfo",
    "check_provider_configuration",
    "connection_info",
    "is_provider_configured",
    "missing_config_keys",
]
