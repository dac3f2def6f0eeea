"""
modelatlas: cached registry of AI model providers and models
=============================================================

modelatlas discovers provider and model metadata from a remote catalog
(models.dev by default), keeps the last good snapshot on disk, and answers
capability and use-case queries from memory.

Examples:
    import asyncio
    from modelatlas import ProviderRegistry

    registry = ProviderRegistry()
    registry.ensure_loaded()            # seed from disk, never fetches
    asyncio.run(registry.refresh())     # one network call, however many callers

    registry.find_models_with_capability("vision")
    registry.find_best_model_for_use_case("code", configured_only=True)
"""

from __future__ import annotations

import importlib.metadata

from modelatlas.catalog import (
    CacheEntry,
    CacheSource,
    Catalog,
    EnvVar,
    FetchOutcome,
    Modalities,
    Model,
    ModelCost,
    ModelLimits,
    Provider,
)
from modelatlas.config import RegistrySettings, load_settings
from modelatlas.discovery import CatalogFetcher, ModelsDevFetcher
from modelatlas.exceptions import (
    AtlasError,
    ConfigurationError,
    FetchError,
    FetchErrorKind,
    FetchTimeoutError,
    HttpStatusError,
    MalformedResponseError,
    NetworkError,
    PersistError,
)
from modelatlas.registry import CacheStats, ProviderRegistry, Stamped

try:
    __version__ = importlib.metadata.version("modelatlas")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "AtlasError",
    "CacheEntry",
    "CacheStats",
    "CacheSource",
    "Catalog",
    "CatalogFetcher",
    "ConfigurationError",
    "EnvVar",
    "FetchError",
    "FetchErrorKind",
    "FetchOutcome",
    "FetchTimeoutError",
    "HttpStatusError",
    "MalformedResponseError",
    "Modalities",
    "Model",
    "ModelCost",
    "ModelLimits",
    "ModelsDevFetcher",
    "NetworkError",
    "PersistError",
    "Provider",
    "ProviderRegistry",
    "RegistrySettings",
    "Stamped",
    "load_settings",
    "__version__",
]
