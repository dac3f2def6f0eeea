"""Interface between the registry and whatever transport produces catalogs."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from modelatlas.catalog.types import Catalog


@runtime_checkable
class CatalogFetcher(Protocol):
    """Fetch one complete catalog snapshot from the remote catalog service.

    Implementations raise a :class:`~modelatlas.exceptions.FetchError`
    subclass on failure and never return a partial catalog.

    A fetcher may set ``supports_cancellation = True`` when ``fetch`` can be
    cancelled mid-request without side effects. The registry then abandons a
    fetch once nobody is waiting for it.
    """

    async def fetch(self) -> Catalog:
        ...


def supports_cancellation(fetcher: object) -> bool:
    return bool(getattr(fetcher, "supports_cancellation", False))


__all__ = ["CatalogFetcher", "supports_cancellation"]
