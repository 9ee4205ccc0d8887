"""
Blob Store Port.

Protocol-based interface for the binary object store that holds article
images and their HTML sources. Keys are opaque paths such as
"{article_id}/{name}.png". The metadata store is the source of truth for
ordering and existence; the blob store only does put/get/delete by key.

Implementations: local filesystem (src/adapters/local_storage.py).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Protocol


@dataclass
class StoredObject:
    """Metadata for a stored object."""

    key: str
    size_bytes: int
    content_type: str
    sha256: str
    etag: str


class BlobStorePort(Protocol):
    """
    Object storage port interface.

    Writes either create a new key or, with overwrite=True, replace an existing
    one in place. The store keeps no versions of its own.
    """

    def ensure_container(self) -> None:
        """
        Prepare the backing container (bucket, directory).

        Idempotent: safe to call at every process start.
        """
        ...

    def put(
        self,
        key: str,
        data: bytes | BinaryIO,
        content_type: str,
        *,
        overwrite: bool = False,
    ) -> StoredObject:
        """
        Store object bytes under the given key.

        Raises:
            KeyExistsError: If key exists and overwrite is False
            StorageError: If the backend write fails
        """
        ...

    def get(self, key: str) -> tuple[bytes, StoredObject]:
        """
        Retrieve object bytes by key.

        Raises:
            KeyNotFoundError: If key doesn't exist
        """
        ...

    def exists(self, key: str) -> bool:
        """Check if key exists in storage."""
        ...

    def delete(self, key: str) -> bool:
        """
        Delete object by key.

        Returns:
            True if deleted, False if key didn't exist
        """
        ...


class StorageError(Exception):
    """Base class for storage errors."""


class KeyExistsError(StorageError):
    """Raised when writing to an existing key without overwrite."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key already exists: {key}")


class KeyNotFoundError(StorageError):
    """Raised when key doesn't exist."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key not found: {key}")
