"""Resumable resource uploads.

Key Components:
- sha256_of: Content hash of a seekable source, rewinding it afterwards
- UploadIdCache: Persistent upload-id cache keyed by content hash
- ResumableUploader: Resume-or-restart upload engine
"""

from __future__ import annotations

from resource_push.upload.cache import UploadIdCache
from resource_push.upload.engine import EXPIRED_NOTE, RESUMING_NOTE, ResumableUploader
from resource_push.upload.hashing import sha256_of

__all__: list[str] = [
    "EXPIRED_NOTE",
    "RESUMING_NOTE",
    "ResumableUploader",
    "UploadIdCache",
    "sha256_of",
]
