"""Configuration schemas for resource-push.

The configuration lives under the ``upload`` key of a YAML file and can be
overridden from the environment (see resource_push.config).

Example config.yaml:
    upload:
      store_url: https://api.jujucharms.com/charmstore/v5
      cache:
        path: ~/.cache/resource-push/upload-ids.json
        expiry_hours: 48
      part_size_bytes: 67108864
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

DEFAULT_STORE_URL = "https://api.jujucharms.com/charmstore/v5"
"""Artifact store API root used when nothing else is configured."""

DEFAULT_CACHE_PATH = Path("~/.cache/resource-push/upload-ids.json")
"""Default location of the upload-identifier cache file."""

UPLOAD_ID_CACHE_EXPIRY_HOURS = 48
"""Cache entries older than this are never resumed."""


class StoreAuth(BaseModel):
    """HTTP basic credentials for the artifact store.

    Examples:
        >>> auth = StoreAuth(username="admin", password="secret")
        >>> auth.password
        SecretStr('**********')
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    username: str = Field(..., min_length=1, description="Store username")
    password: SecretStr = Field(..., description="Store password")


class UploadCacheConfig(BaseModel):
    """Upload-identifier cache configuration.

    Examples:
        >>> config = UploadCacheConfig(expiry_hours=12)
        >>> config.expiry
        datetime.timedelta(seconds=43200)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(default=True, description="Cache upload ids for resumption")
    path: Path = Field(default=DEFAULT_CACHE_PATH, description="Cache file path")
    expiry_hours: int = Field(
        default=UPLOAD_ID_CACHE_EXPIRY_HOURS,
        ge=1,
        description="Age after which cached upload ids are discarded",
    )

    @field_validator("path")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        """Expand ``~`` in the cache path."""
        return v.expanduser()

    @property
    def expiry(self) -> timedelta:
        """Return the expiry window as a timedelta."""
        return timedelta(hours=self.expiry_hours)


class UploaderConfig(BaseModel):
    """Top-level resource-push configuration.

    Examples:
        >>> config = UploaderConfig(store_url="https://store.example.com/v5")
        >>> config.cache.enabled
        True
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    store_url: str = Field(
        default=DEFAULT_STORE_URL,
        pattern=r"^https?://",
        description="Artifact store API root",
    )
    auth: StoreAuth | None = Field(default=None, description="Store basic auth credentials")
    cache: UploadCacheConfig = Field(
        default_factory=UploadCacheConfig,
        description="Upload-identifier cache configuration",
    )
    part_size_bytes: int = Field(
        default=64 * 1024 * 1024,
        ge=1024,
        description="Preferred multipart upload part size",
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Per-request network timeout",
    )

    @field_validator("store_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalise the store URL so paths can be appended."""
        return v.rstrip("/")


__all__: list[str] = [
    "DEFAULT_CACHE_PATH",
    "DEFAULT_STORE_URL",
    "UPLOAD_ID_CACHE_EXPIRY_HOURS",
    "StoreAuth",
    "UploadCacheConfig",
    "UploaderConfig",
]
