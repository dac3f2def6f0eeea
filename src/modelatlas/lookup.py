"""Name-based lookups over a catalog snapshot.

These helpers answer questions users phrase loosely ("which provider serves
``gpt-4o``?", "what is the provider for Bedrock?"). Like the selection
functions they are pure and deterministic.
"""

from __future__ import annotations

from typing import Optional

from modelatlas.catalog.types import Catalog

# Model-id prefix -> provider id, checked in order.
MODEL_PREFIX_HINTS: tuple[tuple[str, str], ...] = (
    ("gpt-", "openai"),
    ("text-davinci-", "openai"),
    ("text-curie-", "openai"),
    ("text-babbage-", "openai"),
    ("text-ada-", "openai"),
    ("claude-", "anthropic"),
    ("gemini-", "google"),
    ("text-bison-", "google"),
    ("chat-bison-", "google"),
    ("llama-", "meta"),
    ("mistral-", "mistral"),
    ("mixtral-", "mistral"),
    ("command-", "cohere"),
    ("embed-", "cohere"),
    ("azure-", "azure"),
)

# Service name -> candidate provider ids, first one present in the catalog wins.
CLOUD_SERVICE_ALIASES: dict[str, tuple[str, ...]] = {
    "openai": ("openai",),
    "anthropic": ("anthropic",),
    "claude": ("anthropic",),
    "google": ("google",),
    "gemini": ("google",),
    "bard": ("google",),
    "meta": ("meta",),
    "llama": ("meta",),
    "mistral": ("mistral",),
    "mixtral": ("mistral",),
    "cohere": ("cohere",),
    "command": ("cohere",),
    "azure": ("azure",),
    "microsoft": ("azure",),
    "aws": ("amazon-bedrock", "aws"),
    "amazon": ("amazon-bedrock", "aws"),
    "bedrock": ("amazon-bedrock", "aws"),
}


def find_provider_for_model(catalog: Catalog, model_id: str) -> Optional[str]:
    """Guess which provider serves ``model_id``.

    Resolution order:

    1. the first provider (in snapshot order) listing a model with that exact id;
    2. well-known model-id prefixes such as ``gpt-`` or ``claude-``;
    3. an explicit ``provider/model`` form;
    4. a provider id that prefixes the model id.

    Heuristic matches only count when the provider is in the snapshot.

    Returns:
        The provider id, or ``None`` if nothing matches.
    """
    for provider in catalog.providers:
        if provider.get_model(model_id) is not None:
            return provider.id

    lowered = model_id.lower()
    for prefix, provider_id in MODEL_PREFIX_HINTS:
        if lowered.startswith(prefix) and catalog.get_provider(provider_id) is not None:
            return provider_id

    if "/" in model_id:
        head = model_id.split("/", 1)[0]
        if catalog.get_provider(head) is not None:
            return head

    for provider in catalog.providers:
        if lowered.startswith(provider.id.lower()):
            return provider.id
    return None


def find_provider_for_cloud_service(catalog: Catalog, service: str) -> Optional[str]:
    """Resolve a cloud service or brand name to a provider id in the snapshot."""
    name = service.strip().lower()
    for provider_id in CLOUD_SERVICE_ALIASES.get(name, ()):
        if catalog.get_provider(provider_id) is not None:
            return provider_id
    if catalog.get_provider(name) is not None:
        return name
    return None


def list_providers_for_npm_package(catalog: Catalog, package: str) -> list[str]:
    return [provider.id for provider in catalog.providers if provider.npm_package == package]


def get_providers_summary(catalog: Catalog) -> list[tuple[str, str, list[str]]]:
    """Return ``(provider_id, provider_name, model_ids)`` for every provider."""
    return [
        (provider.id, provider.name, [model.id for model in provider.models])
        for provider in catalog.providers
    ]


__all__ = [
    "CLOUD_SERVICE_ALIASES",
    "MODEL_PREFIX_HINTS",
    "find_provider_for_cloud_service",
    "find_provider_for_model",
    "get_providers_summary",
    "list_providers_for_npm_package",
]
