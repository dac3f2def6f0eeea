"""Exception hierarchy for the model catalog registry.

Fetch and persistence failures are reported conditions, never fatal ones: the
registry keeps serving whatever snapshot it already holds. Lookups for unknown
providers or models are not errors at all and return ``None``.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional


class AtlasError(Exception):
    """Base class for all custom exceptions in modelatlas."""

    def __init__(self, message: str = "", *, context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})


class FetchErrorKind(str, Enum):
    """Why a catalog fetch failed."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed_response"
    HTTP_STATUS = "http_status"


class FetchError(AtlasError):
    """Raised when the remote catalog cannot be fetched or parsed.

    Every kind is treated the same way for cache retention: a failed fetch
    never evicts a previously cached snapshot.
    """

    kind: FetchErrorKind = FetchErrorKind.NETWORK


class NetworkError(FetchError):
    """Raised when the catalog service cannot be reached."""

    kind = FetchErrorKind.NETWORK


class FetchTimeoutError(FetchError):
    """Raised when the catalog request times out."""

    kind = FetchErrorKind.TIMEOUT


class MalformedResponseError(FetchError):
    """Raised when the catalog response cannot be decoded into a Catalog."""

    kind = FetchErrorKind.MALFORMED_RESPONSE


class HttpStatusError(FetchError):
    """Raised when the catalog service answers with a non-success status."""

    kind = FetchErrorKind.HTTP_STATUS

    def __init__(
        self,
        status_code: int,
        message: str = "",
        *,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(
            message or f"Catalog service returned HTTP {status_code}",
            context=context,
        )
        self.status_code = status_code


class PersistError(AtlasError):
    """Raised when a catalog snapshot cannot be written to disk."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Failed to persist catalog to {path}: {reason}", context={"path": str(path)})
        self.path = path
        self.reason = reason


class ConfigurationError(AtlasError):
    """Raised when registry settings are invalid.

    This is fatal at construction time and never raised by queries.
    """


__all__ = [
    "AtlasError",
    "FetchErrorKind",
    "FetchError",
    "NetworkError",
    "FetchTimeoutError",
    "MalformedResponseError",
    "HttpStatusError",
    "PersistError",
    "ConfigurationError",
]
