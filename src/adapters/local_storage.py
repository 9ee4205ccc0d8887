"""
Local Filesystem Blob Store.

Implements BlobStorePort on the local filesystem for development and
single-server deployments. Each object is a data file plus a JSON sidecar
holding its metadata:

    key "abc-123/uuid.png" -> {base_path}/{container}/abc-123/uuid.png.bin
                              {base_path}/{container}/abc-123/uuid.png.meta.json
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import BinaryIO

from src.core.ports.storage import (
    KeyExistsError,
    KeyNotFoundError,
    StorageError,
    StoredObject,
)

logger = logging.getLogger(__name__)


class LocalFileStorage:
    """Local filesystem implementation of BlobStorePort."""

    def __init__(self, base_path: str | Path, *, container: str = "article-images") -> None:
        self.base_path = Path(base_path)
        self.container = container
        self._container_ready = False

    @property
    def root(self) -> Path:
        return self.base_path / self.container

    def ensure_container(self) -> None:
        """Create the container directory once; later calls are no-ops."""
        if self._container_ready:
            return
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create container {self.root}: {e}") from e
        self._container_ready = True
        logger.debug("Blob container ready at %s", self.root)

    def _key_to_paths(self, key: str) -> tuple[Path, Path]:
        """Convert storage key to file paths (data and metadata)."""
        # Sanitize key to prevent directory traversal
        safe_key = key.replace("..", "").lstrip("/")
        if not safe_key:
            raise StorageError("Empty storage key")
        data_path = self.root / f"{safe_key}.bin"
        meta_path = self.root / f"{safe_key}.meta.json"
        return data_path, meta_path

    @staticmethod
    def _read_all(data: bytes | BinaryIO) -> bytes:
        if isinstance(data, bytes):
            return data
        chunks = []
        while True:
            chunk = data.read(8192)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)

    @staticmethod
    def _compute_etag(sha256_hex: str) -> str:
        return f'"{sha256_hex[:32]}"'

    def put(
        self,
        key: str,
        data: bytes | BinaryIO,
        content_type: str,
        *,
        overwrite: bool = False,
    ) -> StoredObject:
        """Store object bytes under the given key."""
        self.ensure_container()
        data_path, meta_path = self._key_to_paths(key)

        if data_path.exists() and not overwrite:
            raise KeyExistsError(key)

        data_bytes = self._read_all(data)
        sha256_hex = hashlib.sha256(data_bytes).hexdigest()
        metadata = StoredObject(
            key=key,
            size_bytes=len(data_bytes),
            content_type=content_type,
            sha256=sha256_hex,
            etag=self._compute_etag(sha256_hex),
        )

        try:
            data_path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a temp file first so readers never see a half-written blob
            tmp_path = data_path.with_name(data_path.name + ".tmp")
            with open(tmp_path, "wb") as f:
                f.write(data_bytes)
            os.replace(tmp_path, data_path)

            with open(meta_path, "w") as f:
                json.dump(
                    {
                        "key": metadata.key,
                        "size_bytes": metadata.size_bytes,
                        "content_type": metadata.content_type,
                        "sha256": metadata.sha256,
                        "etag": metadata.etag,
                    },
                    f,
                )
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

        return metadata

    def get(self, key: str) -> tuple[bytes, StoredObject]:
        """Retrieve object bytes by key."""
        data_path, meta_path = self._key_to_paths(key)

        if not data_path.exists():
            raise KeyNotFoundError(key)

        try:
            with open(data_path, "rb") as f:
                data = f.read()
        except FileNotFoundError as e:
            raise KeyNotFoundError(key) from e
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

        return data, self._load_metadata(meta_path, key, data)

    def exists(self, key: str) -> bool:
        data_path, _ = self._key_to_paths(key)
        return data_path.exists()

    def delete(self, key: str) -> bool:
        """Delete object by key. Returns False if it didn't exist."""
        data_path, meta_path = self._key_to_paths(key)

        if not data_path.exists():
            return False

        try:
            data_path.unlink()
            if meta_path.exists():
                meta_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

        return True

    def _load_metadata(self, meta_path: Path, key: str, data: bytes) -> StoredObject:
        """Load metadata from the JSON sidecar, rebuilding it if missing."""
        if not meta_path.exists():
            sha256_hex = hashlib.sha256(data).hexdigest()
            return StoredObject(
                key=key,
                size_bytes=len(data),
                content_type="application/octet-stream",
                sha256=sha256_hex,
                etag=self._compute_etag(sha256_hex),
            )

        with open(meta_path) as f:
            meta = json.load(f)

        return StoredObject(
            key=meta["key"],
            size_bytes=meta["size_bytes"],
            content_type=meta["content_type"],
            sha256=meta["sha256"],
            etag=meta["etag"],
        )
