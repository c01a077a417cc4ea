"""Content hashing for seekable byte sources."""

from __future__ import annotations

import hashlib
from typing import BinaryIO

from resource_push.errors import ContentHashError

CHUNK_SIZE = 1024 * 1024


def sha256_of(reader: BinaryIO) -> bytes:
    """Return the SHA-256 digest of everything in ``reader``.

    Hashing starts at byte zero and the reader is rewound to byte zero
    afterwards, whether or not hashing succeeded.

    Args:
        reader: A readable, seekable binary stream.

    Returns:
        The 32-byte digest.

    Raises:
        ContentHashError: If the content cannot be read or the reader
            cannot be repositioned.
    """
    hasher = hashlib.sha256()
    try:
        reader.seek(0)
        try:
            for chunk in iter(lambda: reader.read(CHUNK_SIZE), b""):
                hasher.update(chunk)
        finally:
            reader.seek(0)
    except OSError as e:
        raise ContentHashError(f"cannot hash resource content: {e}") from e
    return hasher.digest()


__all__: list[str] = ["CHUNK_SIZE", "sha256_of"]
