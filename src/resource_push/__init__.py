"""resource-push: resumable resource uploads to an artifact store.

Pushes resources attached to an artifact (a charm or bundle) into an
artifact store. File resources are uploaded in parts and resumed after an
interruption. Images hosted on an external registry are registered by
digest after resolving it from the registry.

Key Components:
- upload_resource / UploadParams: Upload one declared resource
- ResumableUploader: Resume-or-restart upload engine
- UploadIdCache: Persistent upload-id cache
- HTTPResourceStore: Artifact store API client
- RegistryDigestResolver: Registry digest lookup with token auth

Example:
    >>> from resource_push import HTTPResourceStore, UploadParams, upload_resource
    >>> store = HTTPResourceStore("https://api.jujucharms.com/charmstore/v5")
    >>> revision = upload_resource(UploadParams(..., store=store))
"""

from __future__ import annotations

from resource_push.config import load_config, parse_auth
from resource_push.driver import (
    FileResource,
    ImageResource,
    Resource,
    UploadParams,
    load_artifact_meta,
    parse_resource,
    upload_resource,
)
from resource_push.errors import ErrorKind, ResourcePushError
from resource_push.registry import RegistryDigestResolver, parse_reference
from resource_push.store import HTTPResourceStore, ResourceStore
from resource_push.upload import ResumableUploader, UploadIdCache, sha256_of

__all__: list[str] = [
    "ErrorKind",
    "FileResource",
    "HTTPResourceStore",
    "ImageResource",
    "RegistryDigestResolver",
    "Resource",
    "ResourcePushError",
    "ResourceStore",
    "ResumableUploader",
    "UploadIdCache",
    "UploadParams",
    "load_artifact_meta",
    "load_config",
    "parse_auth",
    "parse_reference",
    "parse_resource",
    "sha256_of",
    "upload_resource",
]
