"""Resumable upload engine.

Uploads one file resource, resuming an interrupted upload of the same
content when the upload-identifier cache remembers one.

Upload Flow:
    1. If a cache is configured, sweep expired entries (best effort),
       hash the content and look up a previous upload id.
    2. Hit: resume that upload. If the store no longer knows the session,
       restart once with a fresh upload.
    3. Miss, or no cache: fresh upload.
    4. The store reports a new session id through a callback; the id is
       written to the cache before the transfer completes.
    5. On success the cache entry is removed so it is never resumed again.

Cache bookkeeping never fails an upload: sweep, update and remove errors
are logged and dropped. Only a fresh upload that also reports the session
as missing, or any other transfer failure, fails the call.

Example:
    >>> uploader = ResumableUploader(store, cache=UploadIdCache(cache_path))
    >>> with open("site.tar.gz", "rb") as f:
    ...     revision = uploader.upload("cs:~me/wordpress-3", "website", f, size)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, BinaryIO

import structlog

from resource_push.errors import (
    CacheError,
    ErrorKind,
    ResourcePushError,
    UploadFailedError,
)
from resource_push.telemetry.tracing import SPAN_UPLOAD, get_tracer
from resource_push.upload.hashing import sha256_of

if TYPE_CHECKING:
    from resource_push.store import ProgressCallback, ResourceStore
    from resource_push.upload.cache import UploadIdCache

logger = structlog.get_logger(__name__)

NotifyCallback = Callable[[str], None]
"""Receives user-facing informational notes."""

RESUMING_NOTE = "resuming previous upload"
EXPIRED_NOTE = "previous upload seems to have expired; restarting."


class ResumableUploader:
    """Uploads file resources with resume-and-fallback semantics.

    Attributes:
        store: The artifact store to upload to.
        cache: Upload-identifier cache, or None for cache-free uploads.
    """

    def __init__(
        self,
        store: ResourceStore,
        cache: UploadIdCache | None = None,
        *,
        log: Any | None = None,
        notify: NotifyCallback | None = None,
    ) -> None:
        """Initialize ResumableUploader.

        Args:
            store: The artifact store to upload to.
            cache: Upload-identifier cache. None skips resumption entirely.
            log: Bound structlog logger. Defaults to the module logger.
            notify: Sink for user-facing notes such as "resuming previous upload".
        """
        self._store = store
        self._cache = cache
        self._log = log or logger
        self._notify = notify or (lambda _: None)

    @property
    def store(self) -> ResourceStore:
        """Return the artifact store."""
        return self._store

    @property
    def cache(self) -> UploadIdCache | None:
        """Return the upload-identifier cache, if any."""
        return self._cache

    def upload(
        self,
        artifact_id: str,
        resource_name: str,
        reader: BinaryIO,
        size: int,
        *,
        filename: str = "",
        progress: ProgressCallback | None = None,
    ) -> int:
        """Upload resource content, resuming a previous upload when possible.

        Args:
            artifact_id: Owning artifact identity.
            resource_name: Resource name within the artifact.
            reader: Readable, seekable content source.
            size: Content length in bytes.
            filename: Original file name, recorded by the store.
            progress: Optional byte-count progress sink.

        Returns:
            The new resource revision assigned by the store.

        Raises:
            ContentHashError: If the content cannot be hashed.
            CacheError: If the cache lookup fails for a reason other than a miss.
            UploadFailedError: If the transfer fails.
        """
        log = self._log.bind(artifact_id=artifact_id, resource_name=resource_name)

        with get_tracer().start_as_current_span(SPAN_UPLOAD) as span:
            span.set_attribute("resource_push.artifact_id", artifact_id)
            span.set_attribute("resource_push.resource_name", resource_name)
            span.set_attribute("resource_push.size", size)
            span.set_attribute("resource_push.cache_enabled", self._cache is not None)

            content_hash = b""
            upload_id = ""
            cache = self._cache
            if cache is not None:
                _remove_expired(cache, log)
                content_hash = sha256_of(reader)
                upload_id = _lookup(cache, artifact_id, resource_name, content_hash)
                if upload_id:
                    self._notify(RESUMING_NOTE)
                    log.info("upload_resume_attempt", upload_id=upload_id)
            span.set_attribute("resource_push.resumed", bool(upload_id))

            def session_started(new_upload_id: str) -> None:
                if cache is None:
                    return
                try:
                    cache.update(new_upload_id, artifact_id, resource_name, content_hash)
                except CacheError as e:
                    log.error("upload_cache_update_failed", upload_id=new_upload_id, error=str(e))

            def transfer(resume_id: str) -> int:
                return self._store.upload(
                    resume_id,
                    artifact_id,
                    resource_name,
                    reader,
                    size,
                    filename=filename,
                    progress=progress,
                    on_session_started=session_started,
                )

            try:
                try:
                    revision = transfer(upload_id)
                except ResourcePushError as e:
                    if not upload_id or e.kind is not ErrorKind.NOT_FOUND:
                        raise
                    self._notify(EXPIRED_NOTE)
                    log.info("upload_session_expired", upload_id=upload_id)
                    span.set_attribute("resource_push.restarted", True)
                    reader.seek(0)
                    revision = transfer("")
            except ResourcePushError as e:
                log.error("upload_failed", error=str(e), kind=e.kind.value)
                raise UploadFailedError(e) from e

            span.set_attribute("resource_push.revision", revision)

            if cache is not None:
                try:
                    cache.remove(artifact_id, resource_name, content_hash)
                except CacheError as e:
                    log.error("upload_cache_remove_failed", error=str(e))

        log.info("resource_uploaded", revision=revision, size=size)
        return revision


def _remove_expired(cache: UploadIdCache, log: Any) -> None:
    try:
        cache.remove_expired()
    except CacheError as e:
        log.warning("upload_cache_sweep_failed", error=str(e))


def _lookup(
    cache: UploadIdCache, artifact_id: str, resource_name: str, content_hash: bytes
) -> str:
    """Return the cached upload id for the content, or "" on a miss."""
    try:
        entry = cache.lookup(artifact_id, resource_name, content_hash)
    except ResourcePushError as e:
        if e.kind is ErrorKind.NOT_FOUND:
            return ""
        raise
    return entry.upload_id


__all__: list[str] = [
    "EXPIRED_NOTE",
    "RESUMING_NOTE",
    "NotifyCallback",
    "ResumableUploader",
]
