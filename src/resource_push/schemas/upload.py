"""Upload-identifier cache schemas.

The cache file holds an UploadCacheIndex serialized as JSON. Entries are keyed
by (artifact_id, resource_name, content_hash); the content hash is the hex
SHA-256 of the resource bytes at the time the upload began.

Example cache file:
    {
      "version": 1,
      "entries": [
        {
          "artifact_id": "cs:~me/wordpress-3",
          "resource_name": "website",
          "content_hash": "e3b0c442...b855",
          "upload_id": "0d9a47e1c2f2",
          "created_at": "2026-10-19T09:12:44.123456Z"
        }
      ]
    }
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

CACHE_FORMAT_VERSION = 1
"""Version written to new cache files."""


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class UploadCacheEntry(BaseModel):
    """A cached upload identifier for one exact resource content.

    Examples:
        >>> entry = UploadCacheEntry(
        ...     artifact_id="cs:~me/wordpress-3",
        ...     resource_name="website",
        ...     content_hash="ab" * 32,
        ...     upload_id="0d9a47e1c2f2",
        ... )
        >>> entry.is_expired(timedelta(hours=48))
        False
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    artifact_id: str = Field(..., min_length=1, description="Owning artifact identity")
    resource_name: str = Field(..., min_length=1, description="Resource name in the artifact")
    content_hash: str = Field(
        ...,
        pattern=r"^[a-f0-9]{64}$",
        description="Hex SHA-256 of the resource content",
    )
    upload_id: str = Field(..., min_length=1, description="Store-assigned upload session id")
    created_at: datetime = Field(
        default_factory=_utc_now,
        description="When the entry was written",
    )

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def matches(self, artifact_id: str, resource_name: str, content_hash: str) -> bool:
        """Check whether this entry is for exactly the given key."""
        return (
            self.artifact_id == artifact_id
            and self.resource_name == resource_name
            and self.content_hash == content_hash
        )

    def is_expired(self, expiry: timedelta, now: datetime | None = None) -> bool:
        """Check whether the entry is older than the expiry window."""
        now = now or _utc_now()
        return now - self.created_at > expiry


class UploadCacheIndex(BaseModel):
    """Persisted content of the upload-identifier cache file."""

    model_config = ConfigDict(frozen=False, extra="ignore")

    version: int = Field(default=CACHE_FORMAT_VERSION, ge=1)
    entries: list[UploadCacheEntry] = Field(default_factory=list)

    def find(
        self, artifact_id: str, resource_name: str, content_hash: str
    ) -> UploadCacheEntry | None:
        """Return the entry for the key, expired or not."""
        for entry in self.entries:
            if entry.matches(artifact_id, resource_name, content_hash):
                return entry
        return None

    def put(self, entry: UploadCacheEntry) -> None:
        """Insert or overwrite the entry with the same key."""
        self.discard(entry.artifact_id, entry.resource_name, entry.content_hash)
        self.entries.append(entry)

    def discard(self, artifact_id: str, resource_name: str, content_hash: str) -> bool:
        """Remove the entry for the key. Returns True if one was removed."""
        kept = [e for e in self.entries if not e.matches(artifact_id, resource_name, content_hash)]
        removed = len(kept) != len(self.entries)
        self.entries = kept
        return removed

    def drop_expired(self, expiry: timedelta, now: datetime | None = None) -> int:
        """Remove every expired entry and return how many were removed."""
        now = now or _utc_now()
        kept = [e for e in self.entries if not e.is_expired(expiry, now)]
        removed = len(self.entries) - len(kept)
        self.entries = kept
        return removed


__all__: list[str] = [
    "CACHE_FORMAT_VERSION",
    "UploadCacheEntry",
    "UploadCacheIndex",
]
