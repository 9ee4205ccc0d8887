# content-ops: Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from src.core.ports.db import (
    ArticleFilter,
    ArticleRepoPort,
    DuplicateVersionError,
    ImageRepoPort,
    StatsRepoPort,
    VersionRepoPort,
)
from src.core.ports.storage import (
    BlobStorePort,
    KeyExistsError,
    KeyNotFoundError,
    StorageError,
    StoredObject,
)
from src.core.ports.time import TimePort

__all__ = [
    # Metadata store
    "ArticleFilter",
    "ArticleRepoPort",
    "DuplicateVersionError",
    "ImageRepoPort",
    "StatsRepoPort",
    "VersionRepoPort",
    # Blob store
    "BlobStorePort",
    "KeyExistsError",
    "KeyNotFoundError",
    "StorageError",
    "StoredObject",
    # Time
    "TimePort",
]
