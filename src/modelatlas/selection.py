"""Capability filtering and use-case ranking over a catalog snapshot.

Everything here is a pure function of its arguments: no I/O and no shared
state, so it is safe to call from any thread while a refresh is running.
Given the same catalog, every function returns the same answer.

Ranking uses capability tags and context size only. Use cases that are about
latency or price, such as ``fast``, ``quick``, ``cheap`` and ``budget``, have no
profile of their own and resolve to ``general`` like any other unknown name.

Examples:
    >>> resolve_use_case("programming").name
    'code'
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from modelatlas.catalog.types import Catalog, Model, Provider

ProviderFilter = Callable[[Provider], bool]

KNOWN_CAPABILITIES: tuple[str, ...] = (
    "reasoning",
    "tool_call",
    "attachment",
    "vision",
    "audio",
    "text",
    "code",
    "chat",
    "open_weights",
)


@dataclass(frozen=True)
class UseCaseProfile:
    """Capability tags a use case needs (required) and favours (preferred)."""

    name: str
    required: tuple[str, ...] = ()
    preferred: tuple[str, ...] = ()


USE_CASE_PROFILES: dict[str, UseCaseProfile] = {
    "chat": UseCaseProfile("chat", preferred=("chat", "text", "tool_call")),
    "code": UseCaseProfile("code", preferred=("code", "tool_call", "reasoning")),
    "reasoning": UseCaseProfile("reasoning", required=("reasoning",), preferred=("tool_call", "code")),
    "vision": UseCaseProfile("vision", required=("vision",), preferred=("chat", "tool_call")),
    "agent": UseCaseProfile("agent", required=("tool_call",), preferred=("reasoning", "code")),
    "documents": UseCaseProfile("documents", required=("attachment",), preferred=("vision",)),
    "general": UseCaseProfile("general", preferred=("text",)),
}

USE_CASE_ALIASES: dict[str, str] = {
    "conversation": "chat",
    "programming": "code",
    "analysis": "reasoning",
    "image": "vision",
    "tools": "agent",
    "attachment": "documents",
}

DEFAULT_USE_CASE = "general"


@dataclass(frozen=True)
class ScoredModel:
    """A candidate model and the components of its ranking key."""

    provider_id: str
    model_id: str
    required_matched: int
    preferred_matched: int
    max_tokens: int

    @property
    def key(self) -> tuple[str, str]:
        return (self.provider_id, self.model_id)

    def sort_key(self) -> tuple[int, int, int, str, str]:
        return (
            -self.required_matched,
            -self.preferred_matched,
            -self.max_tokens,
            self.provider_id,
            self.model_id,
        )


def resolve_use_case(use_case: str) -> UseCaseProfile:
    """Map a use-case name or alias to its profile.

    Unknown names fall back to the ``general`` profile.
    """
    name = (use_case or "").strip().lower()
    name = USE_CASE_ALIASES.get(name, name)
    return USE_CASE_PROFILES.get(name, USE_CASE_PROFILES[DEFAULT_USE_CASE])


def find_models_with_capability(catalog: Catalog, capability: str) -> list[tuple[str, str]]:
    """Return ``(provider_id, model_id)`` for every model tagged ``capability``.

    Order follows the snapshot: providers first, then models within each provider.
    """
    return [
        model.key for _, model in catalog.iter_models() if model.has_capability(capability)
    ]


def _score(model: Model, profile: UseCaseProfile) -> Optional[ScoredModel]:
    if not all(model.has_capability(tag) for tag in profile.required):
        return None
    return ScoredModel(
        provider_id=model.provider_id,
        model_id=model.id,
        required_matched=len(profile.required),
        preferred_matched=sum(1 for tag in profile.preferred if model.has_capability(tag)),
        max_tokens=model.max_tokens,
    )


def rank_models_for_use_case(
    catalog: Catalog,
    use_case: str,
    provider_filter: Optional[ProviderFilter] = None,
    limit: Optional[int] = None,
) -> list[ScoredModel]:
    """Rank every model that satisfies the use case's required capabilities.

    Ranking: required tags matched, then preferred tags matched, then max
    tokens (all descending), then provider id and model id ascending.

    Args:
        catalog: Snapshot to rank.
        use_case: Use-case name or alias, e.g. ``"chat"`` or ``"code"``.
        provider_filter: Optional predicate restricting candidate providers.
        limit: Return at most this many entries.
    """
    profile = resolve_use_case(use_case)
    scored: list[ScoredModel] = []
    for provider in catalog.providers:
        if provider_filter is not None and not provider_filter(provider):
            continue
        for model in provider.models:
            candidate = _score(model, profile)
            if candidate is not None:
                scored.append(candidate)
    scored.sort(key=ScoredModel.sort_key)
    return scored if limit is None else scored[:limit]


def find_best_model_for_use_case(
    catalog: Catalog,
    use_case: str,
    provider_filter: Optional[ProviderFilter] = None,
) -> Optional[tuple[str, str]]:
    """Return the top-ranked ``(provider_id, model_id)`` or ``None``."""
    ranked = rank_models_for_use_case(catalog, use_case, provider_filter, limit=1)
    return ranked[0].key if ranked else None


def get_capability_summary(catalog: Catalog) -> dict[str, list[tuple[str, str]]]:
    """Map each capability tag to the models carrying it.

    Known tags are always present (possibly empty); any other tag found in the
    snapshot is added, keyed in sorted order after the known ones.
    """
    seen = {tag for _, model in catalog.iter_models() for tag in model.capabilities}
    tags = list(KNOWN_CAPABILITIES) + sorted(seen.difference(KNOWN_CAPABILITIES))
    return {tag: find_models_with_capability(catalog, tag) for tag in tags}


__all__ = [
    "DEFAULT_USE_CASE",
    "KNOWN_CAPABILITIES",
    "USE_CASE_ALIASES",
    "USE_CASE_PROFILES",
    "ScoredModel",
    "UseCaseProfile",
    "find_best_model_for_use_case",
    "find_models_with_capability",
    "get_capability_summary",
    "rank_models_for_use_case",
    "resolve_use_case",
]
