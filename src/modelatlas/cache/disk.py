"""On-disk tier of the catalog cache.

The last known good snapshot is kept in a single JSON record::

    {"schema_version": 1, "fetched_at": "...", "catalog": {...}}

Persistence is an optimization. A missing, corrupt or schema-mismatched file
loads as ``None`` (cold start) and a failed write raises :class:`PersistError`
for the caller to log.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional, Union

from modelatlas.catalog.serialization import catalog_from_dict, catalog_to_dict, parse_timestamp
from modelatlas.catalog.types import CacheEntry, CacheSource
from modelatlas.exceptions import PersistError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class DiskStore:
    """Persist and reload one catalog snapshot at a fixed path.

    Attributes:
        path: Location of the JSON record.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path).expanduser()
        self._write_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[CacheEntry]:
        """Read the stored snapshot, or ``None`` if there is nothing usable."""
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                record = json.load(fh)
        except FileNotFoundError:
            logger.debug("No cached catalog at %s", self._path)
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable catalog cache %s: %s", self._path, exc)
            return None

        try:
            return self._decode(record)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring incompatible catalog cache %s: %s", self._path, exc)
            return None

    def save(self, entry: CacheEntry) -> None:
        """Atomically write ``entry`` to disk.

        Raises:
            PersistError: If the record cannot be serialized or written.
        """
        record = {
            "schema_version": SCHEMA_VERSION,
            "fetched_at": entry.fetched_at.isoformat(),
            "catalog": catalog_to_dict(entry.catalog),
        }
        with self._write_lock:
            try:
                self._write(record)
            except (OSError, TypeError, ValueError) as exc:
                raise PersistError(self._path, str(exc)) from exc
        logger.debug("Saved catalog snapshot to %s", self._path)

    def clear(self) -> None:
        with self._write_lock:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as exc:
                raise PersistError(self._path, str(exc)) from exc

    # Internal helpers -------------------------------------------------
    def _write(self, record: dict[str, Any]) -> None:
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(directory), prefix="catalog-", suffix=".json.tmp")
        os.close(fd)
        tmp_path = Path(tmp_name)

        try:
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(record, fh, allow_nan=False)
            os.replace(tmp_path, self._path)
        finally:
            tmp_path.unlink(missing_ok=True)

    @staticmethod
    def _decode(record: Any) -> CacheEntry:
        if not isinstance(record, dict):
            raise TypeError("cache record must be an object")
        version = record.get("schema_version")
        if version != SCHEMA_VERSION:
            raise ValueError(f"unsupported schema version {version!r}")
        catalog = catalog_from_dict(record["catalog"])
        if parse_timestamp(record["fetched_at"]) != catalog.fetched_at:
            raise ValueError("record timestamp does not match catalog timestamp")
        return CacheEntry(catalog=catalog, source=CacheSource.DISK)


__all__ = ["DiskStore", "SCHEMA_VERSION"]
