"""Pydantic schemas for resource-push.

Configuration Models:
    UploaderConfig: Store URL, credentials, cache and transfer settings
    UploadCacheConfig: Upload-identifier cache location and expiry
    StoreAuth: Artifact store basic credentials

Upload Cache Models:
    UploadCacheEntry: One cached upload identifier
    UploadCacheIndex: Persisted cache file content

Resource Models:
    ArtifactMeta: Resources declared by an artifact
    ResourceMeta: A single resource declaration
    ResourceType: file or oci-image
"""

from __future__ import annotations

from resource_push.schemas.config import (
    DEFAULT_CACHE_PATH,
    DEFAULT_STORE_URL,
    UPLOAD_ID_CACHE_EXPIRY_HOURS,
    StoreAuth,
    UploadCacheConfig,
    UploaderConfig,
)
from resource_push.schemas.resources import ArtifactMeta, ResourceMeta, ResourceType
from resource_push.schemas.upload import (
    CACHE_FORMAT_VERSION,
    UploadCacheEntry,
    UploadCacheIndex,
)

__all__: list[str] = [
    "CACHE_FORMAT_VERSION",
    "DEFAULT_CACHE_PATH",
    "DEFAULT_STORE_URL",
    "UPLOAD_ID_CACHE_EXPIRY_HOURS",
    "ArtifactMeta",
    "ResourceMeta",
    "ResourceType",
    "StoreAuth",
    "UploadCacheConfig",
    "UploadCacheEntry",
    "UploadCacheIndex",
    "UploaderConfig",
]
