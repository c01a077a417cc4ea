"""Artifact store API client.

The resumable upload engine talks to the store through the ResourceStore
interface. HTTPResourceStore implements it against the store's multipart
upload API:

    POST {url}/upload                          start a session
    GET  {url}/upload/{id}                     parts acknowledged so far
    PUT  {url}/upload/{id}/{part}?hash&offset  upload one part
    POST {url}/upload/{id}                     finish the session
    POST {url}/{artifact}/resource/{name}      attach an upload or an image

Part hashes are hex SHA-384, as the store verifies them.

Example:
    >>> store = HTTPResourceStore("https://api.example.com/charmstore/v5")
    >>> with open("site.tar.gz", "rb") as f:
    ...     revision = store.upload("", "cs:~me/wordpress-3", "website", f, size)
"""

from __future__ import annotations

import hashlib
import math
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, BinaryIO
from urllib.parse import quote

import httpx
import structlog

from resource_push.errors import ErrorKind, StoreError, UploadNotFoundError

if TYPE_CHECKING:
    from resource_push.schemas.config import StoreAuth

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[int], None]
"""Receives the total number of bytes the store has acknowledged so far."""

SessionStartedCallback = Callable[[str], None]
"""Receives a newly allocated upload identifier."""

DEFAULT_PART_SIZE = 64 * 1024 * 1024


class ResourceStore(ABC):
    """Interface to the artifact store used by the upload driver."""

    @abstractmethod
    def upload(
        self,
        upload_id: str,
        artifact_id: str,
        resource_name: str,
        reader: BinaryIO,
        size: int,
        *,
        filename: str = "",
        progress: ProgressCallback | None = None,
        on_session_started: SessionStartedCallback | None = None,
    ) -> int:
        """Upload resource content, resuming ``upload_id`` when it is non-empty.

        Args:
            upload_id: Session to resume, or "" for a fresh upload.
            artifact_id: Owning artifact identity.
            resource_name: Resource name within the artifact.
            reader: Seekable content source.
            size: Content length in bytes.
            filename: Original file name, recorded by the store.
            progress: Optional byte-count progress sink.
            on_session_started: Called at most once, with the identifier of a
                newly allocated session, before the transfer completes.

        Returns:
            The new resource revision.

        Raises:
            UploadNotFoundError: If ``upload_id`` is not known to the store.
            StoreError: For any other failure.
        """
        ...

    @abstractmethod
    def register_image(
        self, artifact_id: str, resource_name: str, image_name: str, digest: str
    ) -> int:
        """Register an externally hosted image by digest.

        Returns:
            The new resource revision.

        Raises:
            StoreError: If the store rejects the registration.
        """
        ...


def _once(callback: SessionStartedCallback | None) -> SessionStartedCallback:
    called = False

    def notify(upload_id: str) -> None:
        nonlocal called
        if callback is None or called:
            return
        called = True
        callback(upload_id)

    return notify


class HTTPResourceStore(ResourceStore):
    """httpx implementation of ResourceStore.

    Attributes:
        url: Store API root without a trailing slash.
    """

    def __init__(
        self,
        url: str,
        *,
        auth: StoreAuth | None = None,
        part_size: int = DEFAULT_PART_SIZE,
        timeout: float = 60.0,
        client: httpx.Client | None = None,
        log: Any | None = None,
    ) -> None:
        """Initialize HTTPResourceStore.

        Args:
            url: Store API root.
            auth: Optional basic auth credentials.
            part_size: Preferred part size; clamped to the store's limits.
            timeout: Per-request timeout in seconds.
            client: Pre-configured httpx client (tests inject a MockTransport).
            log: Bound structlog logger. Defaults to the module logger.
        """
        self._url = url.rstrip("/")
        self._part_size = part_size
        if client is None:
            basic = (
                httpx.BasicAuth(auth.username, auth.password.get_secret_value())
                if auth is not None
                else None
            )
            client = httpx.Client(auth=basic, timeout=timeout)
        self._client = client
        self._log = (log or logger).bind(store=self._url)

    @property
    def url(self) -> str:
        """Return the store API root."""
        return self._url

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def upload(
        self,
        upload_id: str,
        artifact_id: str,
        resource_name: str,
        reader: BinaryIO,
        size: int,
        *,
        filename: str = "",
        progress: ProgressCallback | None = None,
        on_session_started: SessionStartedCallback | None = None,
    ) -> int:
        """Upload resource content, resuming ``upload_id`` when it is non-empty."""
        notify = _once(on_session_started)
        progress = progress or (lambda _: None)

        if upload_id:
            info = self._resume_info(upload_id)
            parts = info["Parts"]
            # Keep the part layout the session already uses.
            preferred = parts[0]["Size"] if parts else 0
            part_size = _fit_part_size(preferred or self._part_size, size, info, "resume upload")
            self._log.info(
                "upload_resuming", upload_id=upload_id, parts=len(parts), part_size=part_size
            )
            resumed_id = upload_id
        else:
            upload_id, part_size = self._new_upload(size)
            notify(upload_id)
            parts = []
            resumed_id = ""

        hashes = self._skip_acknowledged(reader, parts, size)
        offset = sum(p["Size"] for p in parts[: len(hashes)])
        progress(offset)

        reader.seek(offset)
        while offset < size:
            chunk = reader.read(min(part_size, size - offset))
            if not chunk:
                raise StoreError(
                    "upload resource",
                    f"content ended at {offset} bytes, expected {size}",
                )
            part_hash = hashlib.sha384(chunk).hexdigest()
            self._request(
                "PUT",
                f"/upload/{upload_id}/{len(hashes)}",
                operation="upload part",
                upload_id=resumed_id,
                params={"hash": part_hash, "offset": offset},
                content=chunk,
            )
            hashes.append(part_hash)
            offset += len(chunk)
            progress(offset)

        self._request(
            "POST",
            f"/upload/{upload_id}",
            operation="finish upload",
            upload_id=resumed_id,
            json={"Parts": [{"Hash": h} for h in hashes]},
        )
        response = self._request(
            "POST",
            f"/{_artifact_path(artifact_id)}/resource/{_quote(resource_name)}",
            operation="attach resource",
            params={"upload-id": upload_id, "filename": filename},
        )
        revision = self._revision(response, "attach resource")
        self._log.info(
            "upload_complete",
            artifact_id=artifact_id,
            resource_name=resource_name,
            upload_id=upload_id,
            revision=revision,
            size=size,
        )
        return revision

    def register_image(
        self, artifact_id: str, resource_name: str, image_name: str, digest: str
    ) -> int:
        """Register an externally hosted image by digest."""
        response = self._request(
            "POST",
            f"/{_artifact_path(artifact_id)}/resource/{_quote(resource_name)}",
            operation="add docker resource",
            json={"ImageName": image_name, "Digest": digest},
        )
        revision = self._revision(response, "add docker resource")
        self._log.info(
            "image_registered",
            artifact_id=artifact_id,
            resource_name=resource_name,
            image_name=image_name,
            digest=digest,
            revision=revision,
        )
        return revision

    def _new_upload(self, size: int) -> tuple[str, int]:
        """Start a session and return its id and the part size to use."""
        response = self._request("POST", "/upload", operation="start upload")
        data = _json_object(response, "start upload")
        upload_id = data.get("UploadId")
        if not upload_id or not isinstance(upload_id, str):
            raise StoreError("start upload", "store returned no upload id")

        part_size = _fit_part_size(self._part_size, size, data, "start upload")
        self._log.debug("upload_session_started", upload_id=upload_id, part_size=part_size)
        return upload_id, part_size

    def _resume_info(self, upload_id: str) -> dict[str, Any]:
        """Return the session info with ``Parts`` normalized to a list of dicts."""
        response = self._request(
            "GET", f"/upload/{upload_id}", operation="get upload info", upload_id=upload_id
        )
        data = _json_object(response, "get upload info")
        parts = data.get("Parts") or []
        if not isinstance(parts, list) or not all(isinstance(p, dict) for p in parts):
            raise StoreError("get upload info", "unexpected store response: malformed Parts")
        try:
            data["Parts"] = [
                {**p, "Size": int(p.get("Size") or 0), "Complete": bool(p.get("Complete"))}
                for p in parts
            ]
        except (ValueError, TypeError) as e:
            raise StoreError("get upload info", f"unexpected store response: {e}") from e
        return data

    def _skip_acknowledged(
        self, reader: BinaryIO, parts: list[dict[str, Any]], size: int
    ) -> list[str]:
        """Return hashes of the leading parts the store already holds intact.

        A part counts only if the store marked it complete and its hash
        matches the local bytes at the same offset.
        """
        hashes: list[str] = []
        offset = 0
        reader.seek(0)
        for part in parts:
            part_size = part["Size"]
            if not part["Complete"] or part_size <= 0 or offset + part_size > size:
                break
            local_hash = hashlib.sha384(reader.read(part_size)).hexdigest()
            if local_hash != part.get("Hash"):
                break
            hashes.append(local_hash)
            offset += part_size
        return hashes

    def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        upload_id: str = "",
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and map failures to store errors.

        Raises:
            UploadNotFoundError: On 404 for a request on the resumed session
                ``upload_id``. A 404 on a session started in the same call is
                a plain StoreError.
            StoreError: On transport failures and other error responses.
        """
        try:
            response = self._client.request(method, self._url + path, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(operation, str(e), kind=ErrorKind.TRANSIENT) from e

        if response.status_code == 404 and upload_id:
            raise UploadNotFoundError(upload_id)
        if response.is_error:
            raise StoreError(
                operation,
                _error_message(response),
                status_code=response.status_code,
                kind=ErrorKind.TRANSIENT if response.status_code >= 500 else ErrorKind.FATAL,
            )
        return response

    @staticmethod
    def _revision(response: httpx.Response, operation: str) -> int:
        data = _json_object(response, operation)
        try:
            return int(data["Revision"])
        except (ValueError, KeyError, TypeError) as e:
            raise StoreError(operation, f"unexpected store response: {e}") from e


def _json_object(response: httpx.Response, operation: str) -> dict[str, Any]:
    """Decode a store response body that must be a JSON object.

    Raises:
        StoreError: If the body is not JSON or not an object.
    """
    try:
        data = response.json()
    except ValueError as e:
        raise StoreError(operation, f"unexpected store response: {e}") from e
    if not isinstance(data, dict):
        raise StoreError(
            operation, f"unexpected store response: expected an object, got {type(data).__name__}"
        )
    return data


def _fit_part_size(preferred: int, size: int, limits: dict[str, Any], operation: str) -> int:
    """Return a part size for ``size`` bytes within the store's part limits.

    ``limits`` may carry MinPartSize, MaxPartSize and MaxParts; missing or zero
    values impose no limit. The part count limit wins over the preferred size,
    the MaxPartSize limit wins over both.

    Raises:
        StoreError: If the limits are malformed or the content cannot fit.
    """
    try:
        min_size = int(limits.get("MinPartSize") or 0)
        max_size = int(limits.get("MaxPartSize") or 0)
        max_parts = int(limits.get("MaxParts") or 0)
    except (ValueError, TypeError) as e:
        raise StoreError(operation, f"unexpected store response: {e}") from e

    part_size = preferred
    if max_parts > 0:
        part_size = max(part_size, math.ceil(size / max_parts))
    if min_size > 0:
        part_size = max(part_size, min_size)
    if max_size > 0:
        part_size = min(part_size, max_size)

    if max_parts > 0 and size > part_size * max_parts:
        raise StoreError(
            operation,
            f"{size} bytes do not fit in {max_parts} parts of at most {part_size} bytes",
        )
    return part_size


def _artifact_path(artifact_id: str) -> str:
    """Return the URL path for an artifact id such as cs:~me/wordpress-3."""
    return quote(artifact_id.removeprefix("cs:"), safe="~/")


def _quote(segment: str) -> str:
    return quote(segment, safe="")


def _error_message(response: httpx.Response) -> str:
    """Extract the store's error message from a failed response."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("Message"):
        return str(data["Message"])
    return f"{response.status_code} {response.reason_phrase}"


__all__: list[str] = [
    "DEFAULT_PART_SIZE",
    "HTTPResourceStore",
    "ProgressCallback",
    "ResourceStore",
    "SessionStartedCallback",
]
