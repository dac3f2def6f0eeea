"""Catalog snapshot types and their on-disk representation."""

from __future__ import annotations

from modelatlas.catalog.serialization import catalog_from_dict, catalog_to_dict
from modelatlas.catalog.types import (
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

__all__ = [
    "CacheEntry",
    "CacheSource",
    "Catalog",
    "EnvVar",
    "FetchOutcome",
    "Modalities",
    "Model",
    "ModelCost",
    "ModelLimits",
    "Provider",
    "catalog_from_dict",
    "catalog_to_dict",
]
