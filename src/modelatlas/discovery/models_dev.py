"""HTTP fetcher for the models.dev catalog."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from modelatlas.catalog.types import Catalog
from modelatlas.config.settings import DEFAULT_CATALOG_URL, RegistrySettings
from modelatlas.discovery.parsing import parse_catalog_payload
from modelatlas.exceptions import (
    FetchTimeoutError,
    HttpStatusError,
    MalformedResponseError,
    NetworkError,
)
from modelatlas.utils.retry_utils import ExponentialBackoffStrategy, IRetryStrategy

logger = logging.getLogger(__name__)


class TransientHttpStatusError(HttpStatusError):
    """HTTP status that may succeed on retry (5xx and 429)."""


RETRYABLE_ERRORS = (NetworkError, FetchTimeoutError, TransientHttpStatusError)


def is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def default_backoff(max_attempts: int = 3) -> ExponentialBackoffStrategy:
    return ExponentialBackoffStrategy(
        min_wait=1, max_wait=10, max_attempts=max_attempts, retry_on=RETRYABLE_ERRORS
    )


class ModelsDevFetcher:
    """Fetch the full provider and model catalog over HTTP.

    Network failures, timeouts, 5xx and 429 responses are retried with
    exponential backoff. Everything else fails on the first attempt.

    Args:
        url: Catalog endpoint.
        timeout: Per-request timeout in seconds.
        backoff: Retry strategy; defaults to three attempts with exponential backoff.
        client: Pre-built ``httpx.AsyncClient`` (tests pass one with a mock
            transport). When omitted, a client is created per fetch.
        clock: Source of the snapshot timestamp.
    """

    supports_cancellation = True

    def __init__(
        self,
        url: str = DEFAULT_CATALOG_URL,
        *,
        timeout: float = 30.0,
        backoff: Optional[IRetryStrategy] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._backoff = backoff or default_backoff()
        self._client = client
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(
        cls, settings: RegistrySettings, *, client: Optional[httpx.AsyncClient] = None
    ) -> "ModelsDevFetcher":
        return cls(
            settings.catalog_url,
            timeout=settings.fetch_timeout,
            backoff=default_backoff(settings.fetch_attempts),
            client=client,
        )

    async def fetch(self) -> Catalog:
        """Download and parse the catalog.

        Raises:
            NetworkError: The service could not be reached.
            FetchTimeoutError: Every attempt timed out.
            HttpStatusError: The service answered with a non-success status.
            MalformedResponseError: The body is not a valid catalog.
        """
        payload = await self._backoff.execute(self._get_json)
        catalog = parse_catalog_payload(payload, self._clock())
        logger.debug(
            "Fetched %d providers and %d models from %s",
            len(catalog.providers),
            catalog.model_count,
            self.url,
        )
        return catalog

    async def _get_json(self) -> object:
        context = {"url": self.url}
        try:
            if self._client is not None:
                response = await self._client.get(self.url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.url)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.warning("Timed out fetching catalog from %s", self.url)
            raise FetchTimeoutError(f"Timed out fetching catalog: {e}", context=context) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("Catalog service at %s returned HTTP %d", self.url, status)
            if is_transient_status(status):
                raise TransientHttpStatusError(status, context=context) from e
            raise HttpStatusError(status, context=context) from e
        except httpx.RequestError as e:
            logger.warning("Could not reach catalog service at %s: %s", self.url, e)
            raise NetworkError(f"Could not reach catalog service: {e}", context=context) from e

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Catalog response is not valid JSON: {e}", context=context
            ) from e


__all__ = [
    "ModelsDevFetcher",
    "RETRYABLE_ERRORS",
    "TransientHttpStatusError",
    "default_backoff",
    "is_transient_status",
]
