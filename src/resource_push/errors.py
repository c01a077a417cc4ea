"""Exception hierarchy for resource-push.

All exceptions inherit from ResourcePushError. Every exception carries an
``exit_code`` for the CLI and a ``kind`` that call sites switch on directly
instead of unwrapping cause chains.

Exception Hierarchy:
    ResourcePushError (base)
    ├── ConfigError                # Invalid configuration or credentials
    ├── ResourceError              # Unknown resource or bad resource metadata
    │   └── UnsupportedResourceError
    ├── InvalidReferenceError      # Unparseable image reference
    ├── ContentHashError           # Local content could not be hashed
    ├── CacheError                 # Upload-id cache I/O failed
    ├── CacheEntryNotFoundError    # No matching unexpired cache entry
    ├── StoreError                 # Artifact store request failed
    │   └── UploadNotFoundError    # Store no longer knows the upload session
    ├── UploadFailedError          # Upload failed after resume/fallback
    ├── RegistryUnavailableError   # Registry not reachable
    ├── RegistryAuthError          # Token exchange failed
    ├── RegistryResponseError      # Registry answered with a non-200 status
    ├── IncompatibleRegistryError  # Registry is not a v2 registry
    ├── MissingDigestError         # Registry omitted the content digest
    └── DigestMismatchError        # Tag and digest lookups disagree

Exit Codes:
    1 - General error
    2 - Configuration or usage error
    3 - Not found
    5 - Network/connectivity error
    6 - Registry protocol error

Example:
    >>> from resource_push.errors import ErrorKind, UploadNotFoundError
    >>> try:
    ...     store.upload(upload_id, ...)
    ... except ResourcePushError as e:
    ...     if e.kind is ErrorKind.NOT_FOUND:
    ...         store.upload("", ...)
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Discriminated error kinds."""

    NOT_FOUND = "not_found"
    """Expected miss that drives a fallback path."""

    PROTOCOL = "protocol"
    """The remote side speaks an API the client cannot safely trust."""

    TRANSIENT = "transient"
    """Network or transfer failure; the caller may retry."""

    FATAL = "fatal"
    """Anything else."""


class ResourcePushError(Exception):
    """Base exception for all resource-push errors.

    Attributes:
        exit_code: CLI exit code for this error type (default: 1).
        kind: Error kind that call sites switch on (default: FATAL).
    """

    exit_code: int = 1
    kind: ErrorKind = ErrorKind.FATAL


class ConfigError(ResourcePushError):
    """Raised when configuration or credentials are invalid."""

    exit_code: int = 2


class ResourceError(ResourcePushError):
    """Raised when a resource cannot be uploaded as requested.

    Example:
        >>> raise ResourceError("no such resource 'website'")
    """


class UnsupportedResourceError(ResourceError):
    """Raised for resource types or references this client cannot push."""

    exit_code: int = 2


class InvalidReferenceError(ResourcePushError):
    """Raised when an image reference cannot be parsed.

    Attributes:
        reference: The offending reference string.
        reason: Why parsing failed.
    """

    exit_code: int = 2

    def __init__(self, reference: str, reason: str) -> None:
        self.reference = reference
        self.reason = reason
        super().__init__(f"invalid image name {reference!r}: {reason}")


class ContentHashError(ResourcePushError):
    """Raised when local content cannot be read or rewound for hashing."""

    kind: ErrorKind = ErrorKind.TRANSIENT


class CacheError(ResourcePushError):
    """Raised when an upload-id cache operation fails.

    Attributes:
        operation: The cache operation that failed (init, load, save).
        reason: Description of the failure.
        path: The cache path involved (if applicable).

    Example:
        >>> raise CacheError("save", "Disk full", "/home/me/.cache/upload-ids.json")
        Traceback (most recent call last):
            ...
        CacheError: Cache operation 'save' failed: Disk full (path: ...)
    """

    def __init__(self, operation: str, reason: str, path: str | None = None) -> None:
        self.operation = operation
        self.reason = reason
        self.path = path

        msg = f"Cache operation '{operation}' failed: {reason}"
        if path:
            msg += f" (path: {path})"
        super().__init__(msg)


class CacheEntryNotFoundError(ResourcePushError):
    """Raised by a cache lookup when no unexpired entry matches exactly."""

    exit_code: int = 3
    kind: ErrorKind = ErrorKind.NOT_FOUND

    def __init__(self, artifact_id: str, resource_name: str) -> None:
        self.artifact_id = artifact_id
        self.resource_name = resource_name
        super().__init__(f"no upload cache entry for {artifact_id} resource {resource_name!r}")


class StoreError(ResourcePushError):
    """Raised when an artifact store request fails.

    Attributes:
        operation: The store operation that failed.
        reason: Description of the failure (the store's message when present).
        status_code: HTTP status returned by the store, if any.
    """

    def __init__(
        self,
        operation: str,
        reason: str,
        *,
        status_code: int | None = None,
        kind: ErrorKind | None = None,
    ) -> None:
        self.operation = operation
        self.reason = reason
        self.status_code = status_code
        if kind is not None:
            self.kind = kind
        if self.kind is ErrorKind.TRANSIENT:
            self.exit_code = 5
        super().__init__(f"cannot {operation}: {reason}")


class UploadNotFoundError(StoreError):
    """Raised when the store no longer recognises an upload session."""

    exit_code: int = 3
    kind: ErrorKind = ErrorKind.NOT_FOUND

    def __init__(self, upload_id: str) -> None:
        self.upload_id = upload_id
        super().__init__("resume upload", f"upload {upload_id!r} not found", status_code=404)


class UploadFailedError(ResourcePushError):
    """Raised when a resource upload fails.

    Keeps the kind and exit code of the underlying cause so callers
    and the CLI report it the same way.
    """

    def __init__(self, cause: ResourcePushError) -> None:
        self.cause = cause
        self.kind = cause.kind
        self.exit_code = cause.exit_code
        super().__init__(f"can't upload resource: {cause}")


class RegistryUnavailableError(ResourcePushError):
    """Raised when a registry cannot be reached.

    Attributes:
        registry: The registry endpoint that is unreachable.
        reason: Description of the connectivity failure.
    """

    exit_code: int = 5
    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, registry: str, reason: str) -> None:
        self.registry = registry
        self.reason = reason
        super().__init__(f"Registry unavailable: {registry}: {reason}")


class RegistryAuthError(ResourcePushError):
    """Raised when the registry token exchange fails."""

    exit_code: int = 5

    def __init__(self, registry: str, reason: str) -> None:
        self.registry = registry
        self.reason = reason
        super().__init__(f"cannot get registry authorization for {registry}: {reason}")


class RegistryResponseError(ResourcePushError):
    """Raised when a manifest lookup does not return HTTP 200.

    Attributes:
        message: What the client was trying to do.
        status: The HTTP status line reported by the registry.
    """

    exit_code: int = 5

    def __init__(self, message: str, status: str) -> None:
        self.message = message
        self.status = status
        super().__init__(f"{message}: {status}")


class IncompatibleRegistryError(ResourcePushError):
    """Raised when the registry does not report a v2 API version."""

    exit_code: int = 6
    kind: ErrorKind = ErrorKind.PROTOCOL

    def __init__(self, version: str) -> None:
        self.version = version
        super().__init__(f"incompatible registry version {version!r}")


class MissingDigestError(ResourcePushError):
    """Raised when a manifest response carries no content digest."""

    exit_code: int = 6
    kind: ErrorKind = ErrorKind.PROTOCOL

    def __init__(self, reference: str) -> None:
        self.reference = reference
        super().__init__(f"no digest in response for {reference}")


class DigestMismatchError(ResourcePushError):
    """Raised when a lookup by digest reports a different digest.

    Attributes:
        expected: The digest discovered through the tag.
        actual: The digest reported when fetching by that digest.
        reference: The image reference being resolved.
    """

    exit_code: int = 6
    kind: ErrorKind = ErrorKind.PROTOCOL

    def __init__(self, expected: str, actual: str, reference: str) -> None:
        self.expected = expected
        self.actual = actual
        self.reference = reference
        super().__init__(
            f"cannot verify image digest for {reference}: "
            f"expected {expected[:19]}..., got {actual[:19] or '<none>'}..."
        )


__all__: list[str] = [
    "CacheEntryNotFoundError",
    "CacheError",
    "ConfigError",
    "ContentHashError",
    "DigestMismatchError",
    "ErrorKind",
    "IncompatibleRegistryError",
    "InvalidReferenceError",
    "MissingDigestError",
    "RegistryAuthError",
    "RegistryResponseError",
    "RegistryUnavailableError",
    "ResourceError",
    "ResourcePushError",
    "StoreError",
    "UnsupportedResourceError",
    "UploadFailedError",
    "UploadNotFoundError",
]
