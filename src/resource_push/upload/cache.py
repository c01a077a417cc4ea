"""Persistent cache of store-assigned upload identifiers.

When a large upload is interrupted, the store keeps the parts it has already
acknowledged under an upload identifier. This module remembers that
identifier, keyed by the artifact, the resource name and the SHA-256 of the
content, so a retried invocation can resume instead of starting over. Keying
on the content hash means a changed file is never resumed against a stale
session.

Cache Structure:
    ~/.cache/resource-push/
    ├── upload-ids.json        # UploadCacheIndex
    └── upload-ids.json.lock   # flock target

Each public operation opens, mutates and closes the file under an exclusive
``fcntl.flock``. Writes go to a temporary file that is renamed over the
original, so an interrupted process never leaves a half-written index.

Example:
    >>> from resource_push.upload.cache import UploadIdCache
    >>>
    >>> cache = UploadIdCache(Path("~/.cache/resource-push/upload-ids.json").expanduser())
    >>> cache.remove_expired()
    >>> try:
    ...     entry = cache.lookup("cs:~me/wordpress-3", "website", content_hash)
    ... except CacheEntryNotFoundError:
    ...     entry = None
"""

from __future__ import annotations

import fcntl
import json
import os
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from resource_push.errors import CacheEntryNotFoundError, CacheError
from resource_push.schemas.config import UPLOAD_ID_CACHE_EXPIRY_HOURS
from resource_push.schemas.upload import UploadCacheEntry, UploadCacheIndex

if TYPE_CHECKING:
    from collections.abc import Generator

logger = structlog.get_logger(__name__)


def _hex(content_hash: bytes | str) -> str:
    if isinstance(content_hash, bytes):
        return content_hash.hex()
    return content_hash


class UploadIdCache:
    """File-backed map of (artifact, resource, content hash) to upload id.

    Attributes:
        path: Location of the cache file.
        expiry: Entries older than this are treated as absent.
    """

    def __init__(
        self,
        path: Path,
        expiry: timedelta = timedelta(hours=UPLOAD_ID_CACHE_EXPIRY_HOURS),
        *,
        log: Any | None = None,
    ) -> None:
        """Initialize UploadIdCache.

        Args:
            path: Cache file path. The parent directory is created if needed.
            expiry: Maximum entry age.
            log: Bound structlog logger. Defaults to the module logger.

        Raises:
            CacheError: If the cache directory cannot be created.
        """
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + ".lock")
        self._expiry = expiry
        self._log = (log or logger).bind(cache_path=str(self._path))

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(
                "init",
                f"Failed to create cache directory: {e}",
                str(self._path.parent),
            ) from e

    @property
    def path(self) -> Path:
        """Return the cache file path."""
        return self._path

    @property
    def expiry(self) -> timedelta:
        """Return the expiry window."""
        return self._expiry

    def remove_expired(self) -> int:
        """Delete every entry older than the expiry window.

        Returns:
            Number of entries removed.

        Raises:
            CacheError: If the cache file cannot be written.
        """
        with self._lock():
            index = self._load_index()
            removed = index.drop_expired(self._expiry)
            if removed:
                self._save_index(index)
                self._log.info("upload_cache_expired_removed", removed=removed)
        return removed

    def lookup(
        self, artifact_id: str, resource_name: str, content_hash: bytes | str
    ) -> UploadCacheEntry:
        """Return the unexpired entry matching the key exactly.

        Args:
            artifact_id: Owning artifact identity.
            resource_name: Resource name within the artifact.
            content_hash: SHA-256 of the resource content (bytes or hex).

        Returns:
            The matching UploadCacheEntry.

        Raises:
            CacheEntryNotFoundError: If no unexpired entry matches.
        """
        with self._lock():
            index = self._load_index()
        entry = index.find(artifact_id, resource_name, _hex(content_hash))
        if entry is None or entry.is_expired(self._expiry):
            self._log.debug(
                "upload_cache_miss",
                artifact_id=artifact_id,
                resource_name=resource_name,
                expired=entry is not None,
            )
            raise CacheEntryNotFoundError(artifact_id, resource_name)

        self._log.debug(
            "upload_cache_hit",
            artifact_id=artifact_id,
            resource_name=resource_name,
            upload_id=entry.upload_id,
        )
        return entry

    def update(
        self,
        upload_id: str,
        artifact_id: str,
        resource_name: str,
        content_hash: bytes | str,
    ) -> None:
        """Insert or overwrite the entry for the key with a fresh timestamp.

        Raises:
            CacheError: If the cache file cannot be written.
        """
        entry = UploadCacheEntry(
            artifact_id=artifact_id,
            resource_name=resource_name,
            content_hash=_hex(content_hash),
            upload_id=upload_id,
        )
        with self._lock():
            index = self._load_index()
            index.put(entry)
            self._save_index(index)
        self._log.debug(
            "upload_cache_updated",
            artifact_id=artifact_id,
            resource_name=resource_name,
            upload_id=upload_id,
        )

    def remove(self, artifact_id: str, resource_name: str, content_hash: bytes | str) -> None:
        """Delete the entry for the key. Removing an absent key is a no-op.

        Raises:
            CacheError: If the cache file cannot be written.
        """
        with self._lock():
            index = self._load_index()
            if index.discard(artifact_id, resource_name, _hex(content_hash)):
                self._save_index(index)
                self._log.debug(
                    "upload_cache_removed",
                    artifact_id=artifact_id,
                    resource_name=resource_name,
                )

    def _load_index(self) -> UploadCacheIndex:
        """Load the index from disk.

        Returns:
            The stored index, or an empty one if the file is missing or corrupt.
        """
        if not self._path.exists():
            return UploadCacheIndex()

        try:
            data = json.loads(self._path.read_text())
            return UploadCacheIndex.model_validate(data)
        except Exception as e:
            self._log.warning("upload_cache_load_failed", error=str(e))
            return UploadCacheIndex()

    def _save_index(self, index: UploadCacheIndex) -> None:
        """Write the index to disk atomically.

        Raises:
            CacheError: If the write fails.
        """
        temp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            temp_path.write_text(index.model_dump_json(indent=2))
            os.replace(temp_path, self._path)
        except OSError as e:
            raise CacheError(
                "save",
                f"Failed to save upload cache: {e}",
                str(self._path),
            ) from e

    @contextmanager
    def _lock(self) -> Generator[None, None, None]:
        """Hold an exclusive flock on the sibling lock file.

        Raises:
            CacheError: If the lock file cannot be opened.
        """
        try:
            lock_fd = os.open(str(self._lock_path), os.O_RDWR | os.O_CREAT, 0o600)
        except OSError as e:
            raise CacheError("lock", f"Failed to open lock file: {e}", str(self._lock_path)) from e
        try:
            fcntl.flock(lock_fd, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(lock_fd, fcntl.LOCK_UN)
            os.close(lock_fd)


__all__: list[str] = ["UploadIdCache"]
