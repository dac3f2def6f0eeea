"""Catalog discovery: the fetcher protocol, the models.dev fetcher and payload parsing."""

from modelatlas.discovery.fetcher import CatalogFetcher, supports_cancellation
from modelatlas.discovery.models_dev import ModelsDevFetcher
from modelatlas.discovery.parsing import derive_capabilities, parse_catalog_payload

__all__ = [
    "CatalogFetcher",
    "ModelsDevFetcher",
    "derive_capabilities",
    "parse_catalog_payload",
    "supports_cancellation",
]
