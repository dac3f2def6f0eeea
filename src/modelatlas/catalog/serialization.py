"""Lossless conversion between :class:`Catalog` and JSON-compatible dicts.

This is the on-disk representation used by the disk cache. It is not the
remote catalog's wire format; see :mod:`modelatlas.discovery.parsing` for that.
Decoding is strict: any missing key or wrong type raises ``KeyError``,
``TypeError`` or ``ValueError`` so callers can treat the record as unreadable.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from modelatlas.catalog.types import (
    Catalog,
    EnvVar,
    Modalities,
    Model,
    ModelCost,
    ModelLimits,
    Provider,
)


def catalog_to_dict(catalog: Catalog) -> dict[str, Any]:
    return {
        "fetched_at": catalog.fetched_at.isoformat(),
        "providers": [_provider_to_dict(provider) for provider in catalog.providers],
    }


def catalog_from_dict(data: Mapping[str, Any]) -> Catalog:
    providers = data["providers"]
    if not isinstance(providers, list):
        raise TypeError("'providers' must be a list")
    return Catalog(
        providers=tuple(_provider_from_dict(item) for item in providers),
        fetched_at=parse_timestamp(data["fetched_at"]),
    )


def parse_timestamp(value: Any) -> datetime:
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be an ISO-8601 string, got {type(value).__name__}")
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _provider_to_dict(provider: Provider) -> dict[str, Any]:
    return {
        "id": provider.id,
        "name": provider.name,
        "env": [
            {"name": var.name, "description": var.description, "required": var.required}
            for var in provider.env
        ],
        "base_url": provider.base_url,
        "npm_package": provider.npm_package,
        "doc_url": provider.doc_url,
        "api_version": provider.api_version,
        "models": [_model_to_dict(model) for model in provider.models],
    }


def _provider_from_dict(data: Mapping[str, Any]) -> Provider:
    provider_id = _require_str(data, "id")
    return Provider(
        id=provider_id,
        name=_require_str(data, "name"),
        env=tuple(
            EnvVar(
                name=_require_str(var, "name"),
                description=_require_str(var, "description"),
                required=bool(var["required"]),
            )
            for var in data["env"]
        ),
        models=tuple(_model_from_dict(item, provider_id) for item in data["models"]),
        base_url=_optional_str(data, "base_url"),
        npm_package=_optional_str(data, "npm_package"),
        doc_url=_optional_str(data, "doc_url"),
        api_version=_optional_str(data, "api_version"),
    )


def _model_to_dict(model: Model) -> dict[str, Any]:
    cost = model.cost
    return {
        "id": model.id,
        "name": model.name,
        "description": model.description,
        "capabilities": sorted(model.capabilities),
        "cost": {
            "input": cost.input,
            "output": cost.output,
            "cache_read": cost.cache_read,
            "cache_write": cost.cache_write,
            "reasoning": cost.reasoning,
            "currency": cost.currency,
        },
        "limits": {"context": model.limits.context, "output": model.limits.output},
        "modalities": {
            "input": list(model.modalities.input),
            "output": list(model.modalities.output),
        },
        "metadata": dict(model.metadata),
    }


def _model_from_dict(data: Mapping[str, Any], provider_id: str) -> Model:
    cost = data["cost"]
    limits = data["limits"]
    modalities = data["modalities"]
    metadata = data["metadata"]
    if not isinstance(metadata, dict):
        raise TypeError("'metadata' must be an object")
    return Model(
        id=_require_str(data, "id"),
        provider_id=provider_id,
        name=_require_str(data, "name"),
        description=_require_str(data, "description"),
        capabilities=frozenset(_str_list(data["capabilities"])),
        cost=ModelCost(
            input=float(cost["input"]),
            output=float(cost["output"]),
            cache_read=_optional_float(cost.get("cache_read")),
            cache_write=_optional_float(cost.get("cache_write")),
            reasoning=_optional_float(cost.get("reasoning")),
            currency=str(cost["currency"]),
        ),
        limits=ModelLimits(context=int(limits["context"]), output=int(limits["output"])),
        modalities=Modalities(
            input=tuple(_str_list(modalities["input"])),
            output=tuple(_str_list(modalities["output"])),
        ),
        metadata=metadata,
    )


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise TypeError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise TypeError("expected a list of strings")
    return value


__all__ = ["catalog_to_dict", "catalog_from_dict", "parse_timestamp"]
