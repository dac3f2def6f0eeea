"""Turn a decoded catalog payload into a :class:`Catalog`.

Two payload shapes are accepted:

* the models.dev shape, a mapping of provider id to provider, each with a
  ``models`` mapping of model id to model and flat ``env``/``npm``/``api``
  fields;
* the array shape, ``{"providers": [...]}`` with nested ``npm``/``doc``/``api``
  objects, a ``models`` list and ``limits`` instead of ``limit``.

Capability tags are derived here, once per snapshot, so that queries only
ever test set membership.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from modelatlas.catalog.types import (
    Catalog,
    EnvVar,
    Modalities,
    Model,
    ModelCost,
    ModelLimits,
    Provider,
)
from modelatlas.exceptions import MalformedResponseError

logger = logging.getLogger(__name__)

_ATTACHMENT_MARKERS = ("file", "document", "attachment", "pdf")


def parse_catalog_payload(payload: Any, fetched_at: datetime) -> Catalog:
    """Build a catalog snapshot from a decoded JSON payload.

    Args:
        payload: The decoded response body.
        fetched_at: Timestamp recorded on the snapshot.

    Returns:
        Catalog: Providers in payload order.

    Raises:
        MalformedResponseError: If the payload does not describe a catalog.
    """
    if not isinstance(payload, Mapping):
        raise MalformedResponseError(
            f"Catalog payload must be a JSON object, got {type(payload).__name__}"
        )

    try:
        if isinstance(payload.get("providers"), list):
            providers = [_parse_provider(raw, None) for raw in payload["providers"]]
        else:
            providers = [_parse_provider(raw, key) for key, raw in payload.items()]
        return Catalog(providers=tuple(providers), fetched_at=fetched_at)
    except MalformedResponseError:
        raise
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise MalformedResponseError(f"Invalid catalog payload: {exc}") from exc


# Internal helpers -------------------------------------------------------------
def _require_mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise MalformedResponseError(f"{what} must be an object")
    return value


def _parse_provider(raw: Any, key: Optional[str]) -> Provider:
    data = _require_mapping(raw, f"Provider '{key}'" if key else "Provider entry")
    provider_id = str(data.get("id") or key or "").strip()
    if not provider_id:
        raise MalformedResponseError("Provider entry has no id")

    raw_models = data.get("models") or {}
    if isinstance(raw_models, Mapping):
        model_items: Iterable[tuple[Optional[str], Any]] = raw_models.items()
    elif isinstance(raw_models, list):
        model_items = ((None, item) for item in raw_models)
    else:
        raise MalformedResponseError(f"Models of provider '{provider_id}' must be a list or object")

    models = tuple(_parse_model(item, model_key, provider_id) for model_key, item in model_items)

    npm = data.get("npm")
    doc = data.get("doc")
    api = data.get("api")
    base_url: Optional[str] = None
    api_version: Optional[str] = None
    if isinstance(api, Mapping):
        base_url = api.get("base_url") or None
        api_version = api.get("version") or None
    elif isinstance(api, str):
        base_url = api or None

    return Provider(
        id=provider_id,
        name=str(data.get("name") or provider_id),
        env=_parse_env(data.get("env")),
        models=models,
        base_url=base_url,
        npm_package=(npm.get("name") if isinstance(npm, Mapping) else npm) or None,
        doc_url=(doc.get("url") if isinstance(doc, Mapping) else doc) or None,
        api_version=api_version,
    )


def _parse_env(raw: Any) -> tuple[EnvVar, ...]:
    if not raw:
        return ()
    if not isinstance(raw, list):
        raise MalformedResponseError("Provider env must be a list")
    result = []
    for item in raw:
        if isinstance(item, str):
            result.append(EnvVar(name=item))
        else:
            data = _require_mapping(item, "Env var")
            result.append(
                EnvVar(
                    name=str(data["name"]),
                    description=str(data.get("description") or ""),
                    required=bool(data.get("required", True)),
                )
            )
    return tuple(result)


def _parse_model(raw: Any, key: Optional[str], provider_id: str) -> Model:
    data = _require_mapping(raw, f"Model '{key}'" if key else "Model entry")
    model_id = str(data.get("id") or key or "").strip()
    if not model_id:
        raise MalformedResponseError(f"Model entry in provider '{provider_id}' has no id")

    cost_data = data.get("cost") or {}
    cost = ModelCost(
        input=float(cost_data.get("input") or 0.0),
        output=float(cost_data.get("output") or 0.0),
        cache_read=_optional_float(cost_data.get("cache_read")),
        cache_write=_optional_float(cost_data.get("cache_write")),
        reasoning=_optional_float(cost_data.get("reasoning")),
        currency=str(cost_data.get("currency") or "USD"),
    )

    limit_data = data.get("limit") or data.get("limits") or {}
    limits = ModelLimits(
        context=int(limit_data.get("context") or 0),
        output=int(limit_data.get("output") or 0),
    )

    modality_data = data.get("modalities") or {}
    modalities = Modalities(
        input=tuple(str(m) for m in modality_data.get("input") or ()),
        output=tuple(str(m) for m in modality_data.get("output") or ()),
    )

    metadata = dict(data.get("metadata") or {})
    for extra in ("knowledge", "release_date", "last_updated", "temperature"):
        if extra in data:
            metadata.setdefault(extra, data[extra])

    return Model(
        id=model_id,
        provider_id=provider_id,
        name=str(data.get("name") or model_id),
        description=str(data.get("description") or ""),
        capabilities=derive_capabilities(data, cost, modalities, metadata),
        cost=cost,
        limits=limits,
        modalities=modalities,
        metadata=metadata,
    )


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def derive_capabilities(
    data: Mapping[str, Any],
    cost: ModelCost,
    modalities: Modalities,
    metadata: Mapping[str, Any],
) -> frozenset[str]:
    """Compute the capability tags of one model entry."""
    tags = {str(tag) for tag in data.get("capabilities") or ()}

    if data.get("reasoning") or cost.reasoning is not None:
        tags.add("reasoning")
    if data.get("tool_call") or metadata.get("supports_tools") is True:
        tags.add("tool_call")
    if data.get("attachment") or any(
        marker in modality for modality in modalities.input for marker in _ATTACHMENT_MARKERS
    ):
        tags.add("attachment")
    if "image" in modalities.input:
        tags.add("vision")
    if "audio" in modalities.input:
        tags.add("audio")
    if "text" in modalities.output:
        tags.add("text")
    if data.get("open_weights"):
        tags.add("open_weights")

    return frozenset(tags)


__all__ = ["derive_capabilities", "parse_catalog_payload"]
