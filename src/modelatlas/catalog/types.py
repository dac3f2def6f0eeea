"""Immutable dataclasses describing a catalog snapshot.

A :class:`Catalog` is built once and never mutated. Refreshing the registry
replaces the whole snapshot, so readers always see either the old catalog or
the new one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional


@dataclass(frozen=True)
class ModelCost:
    """Prices per one million tokens."""

    input: float = 0.0
    output: float = 0.0
    cache_read: Optional[float] = None
    cache_write: Optional[float] = None
    reasoning: Optional[float] = None
    currency: str = "USD"


@dataclass(frozen=True)
class ModelLimits:
    """Token limits for a model."""

    context: int = 0
    output: int = 0


@dataclass(frozen=True)
class Modalities:
    """Input and output modalities a model accepts and produces."""

    input: tuple[str, ...] = ()
    output: tuple[str, ...] = ()


@dataclass(frozen=True)
class EnvVar:
    """An environment variable a provider reads its configuration from."""

    name: str
    description: str = ""
    required: bool = True


@dataclass(frozen=True)
class Model:
    """A single model offered by a provider."""

    id: str
    provider_id: str
    name: str = ""
    description: str = ""
    capabilities: frozenset[str] = field(default_factory=frozenset)
    cost: ModelCost = field(default_factory=ModelCost)
    limits: ModelLimits = field(default_factory=ModelLimits)
    modalities: Modalities = field(default_factory=Modalities)
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def key(self) -> tuple[str, str]:
        """Global identity of the model: ``(provider_id, model_id)``."""
        return (self.provider_id, self.id)

    @property
    def max_tokens(self) -> int:
        return self.limits.context

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities


@dataclass(frozen=True)
class Provider:
    """A model provider and the models it serves, in catalog order."""

    id: str
    name: str = ""
    env: tuple[EnvVar, ...] = ()
    models: tuple[Model, ...] = ()
    base_url: Optional[str] = None
    npm_package: Optional[str] = None
    doc_url: Optional[str] = None
    api_version: Optional[str] = None
    _model_index: dict[str, Model] = field(
        default_factory=dict, init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        index: dict[str, Model] = {}
        for model in self.models:
            if model.id in index:
                raise ValueError(f"Duplicate model id '{model.id}' in provider '{self.id}'")
            if model.provider_id != self.id:
                raise ValueError(
                    f"Model '{model.id}' belongs to provider '{model.provider_id}', not '{self.id}'"
                )
            index[model.id] = model
        object.__setattr__(self, "_model_index", index)

    @property
    def required_config_keys(self) -> frozenset[str]:
        return frozenset(var.name for var in self.env if var.required)

    @property
    def optional_config_keys(self) -> frozenset[str]:
        return frozenset(var.name for var in self.env if not var.required)

    def get_model(self, model_id: str) -> Optional[Model]:
        return self._model_index.get(model_id)


@dataclass(frozen=True)
class Catalog:
    """A complete snapshot of providers and models at a point in time.

    Attributes:
        providers: Providers in the order the catalog service listed them.
        fetched_at: When the snapshot was fetched (timezone-aware, UTC).
    """

    providers: tuple[Provider, ...]
    fetched_at: datetime
    _provider_index: dict[str, Provider] = field(
        default_factory=dict, init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        if self.fetched_at.tzinfo is None:
            object.__setattr__(self, "fetched_at", self.fetched_at.replace(tzinfo=timezone.utc))
        index: dict[str, Provider] = {}
        for provider in self.providers:
            if provider.id in index:
                raise ValueError(f"Duplicate provider id '{provider.id}' in catalog")
            index[provider.id] = provider
        object.__setattr__(self, "_provider_index", index)

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        return self._provider_index.get(provider_id)

    def get_model(self, provider_id: str, model_id: str) -> Optional[Model]:
        provider = self._provider_index.get(provider_id)
        if provider is None:
            return None
        return provider.get_model(model_id)

    def iter_models(self) -> Iterator[tuple[Provider, Model]]:
        """Yield ``(provider, model)`` pairs in snapshot order."""
        for provider in self.providers:
            for model in provider.models:
                yield provider, model

    @property
    def provider_ids(self) -> tuple[str, ...]:
        return tuple(provider.id for provider in self.providers)

    @property
    def model_count(self) -> int:
        return sum(len(provider.models) for provider in self.providers)

    def age(self, now: Optional[datetime] = None) -> timedelta:
        """Return how old this snapshot is relative to ``now``."""
        current = now or datetime.now(timezone.utc)
        return current - self.fetched_at


class CacheSource(str, Enum):
    """Where a cached snapshot came from."""

    NETWORK = "network"
    DISK = "disk"


@dataclass(frozen=True)
class CacheEntry:
    """A fully built catalog snapshot held by one of the cache tiers."""

    catalog: Catalog
    source: CacheSource = CacheSource.NETWORK

    @property
    def fetched_at(self) -> datetime:
        return self.catalog.fetched_at

    def is_newer_than(self, other: Optional["CacheEntry"]) -> bool:
        return other is None or self.fetched_at > other.fetched_at


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one catalog fetch: either a catalog or a fetch error."""

    catalog: Optional[Catalog] = None
    error: Optional[Exception] = None

    def __post_init__(self) -> None:
        if (self.catalog is None) == (self.error is None):
            raise ValueError("FetchOutcome needs exactly one of catalog or error")

    @classmethod
    def success(cls, catalog: Catalog) -> "FetchOutcome":
        return cls(catalog=catalog)

    @classmethod
    def failure(cls, error: Exception) -> "FetchOutcome":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.catalog is not None

    def unwrap(self) -> Catalog:
        """Return the catalog or raise the fetch error.

        One outcome is shared by every caller of a refresh, so each call raises
        its own copy of the stored error, chained to it.
        """
        if self.catalog is not None:
            return self.catalog
        raise _copy_error(self.error) from self.error


def _copy_error(error: Optional[Exception]) -> Exception:
    if error is None:
        raise ValueError("FetchOutcome has neither catalog nor error")
    cls = type(error)
    fresh = cls.__new__(cls, *error.args)
    fresh.__dict__.update(error.__dict__)
    return fresh


__all__ = [
    "ModelCost",
    "ModelLimits",
    "Modalities",
    "EnvVar",
    "Model",
    "Provider",
    "Catalog",
    "CacheSource",
    "CacheEntry",
    "FetchOutcome",
]
