"""
Database Adapter Interfaces.

Protocol-based interfaces for the article metadata store.
Implementations: SQLite (src/adapters/sqlite/repos.py).

The two read-modify-write points of the system are pushed down into the
repositories as single atomic operations:
- ArticleRepoPort.compare_and_set_status (status CAS)
- VersionRepoPort.insert_next (max(version_num)+1 and insert)
- VersionRepoPort.update_and_insert_next (content edit and its version together)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from src.domain.entities import (
    Article,
    ArticleImage,
    ArticleStats,
    ArticleStatus,
    ArticleVersion,
)


class DuplicateVersionError(Exception):
    """Raised when (article_id, version_num) already exists."""

    def __init__(self, article_id: UUID, version_num: int) -> None:
        self.article_id = article_id
        self.version_num = version_num
        super().__init__(f"Version {version_num} already exists for article {article_id}")


@dataclass(frozen=True)
class ArticleFilter:
    """Filter options for listing articles."""

    status: ArticleStatus | None = None
    tag: str | None = None
    category: str | None = None
    search: str | None = None
    limit: int = 50
    offset: int = 0


# -----------------------------------------------------------------------------
# Articles
# -----------------------------------------------------------------------------


class ArticleRepoPort(Protocol):
    def get_by_id(self, article_id: UUID) -> Article | None:
        """Get article by ID."""
        ...

    def insert(self, article: Article) -> Article:
        """Insert a new article row."""
        ...

    def update_fields(
        self, article_id: UUID, fields: dict[str, Any], updated_at: datetime
    ) -> Article | None:
        """
        Update only the given columns (title, content, tags, category).

        Returns the updated article, or None if it no longer exists.
        """
        ...

    def compare_and_set_status(
        self,
        article_id: UUID,
        expected: ArticleStatus,
        new: ArticleStatus,
        updated_at: datetime,
    ) -> bool:
        """Write new status only if the stored status still equals expected."""
        ...

    def mark_published(
        self, article_id: UUID, xhs_note_id: str, updated_at: datetime
    ) -> Article | None:
        """Set the external publication id and force status to published."""
        ...

    def delete_cascade(self, article_id: UUID) -> bool:
        """
        Delete the article with its versions, images and stats in one transaction.

        Returns False if the article didn't exist.
        """
        ...

    def list(self, filters: ArticleFilter) -> tuple[list[Article], int]:
        """List articles matching filters. Returns (page, total_count)."""
        ...


# -----------------------------------------------------------------------------
# Versions
# -----------------------------------------------------------------------------


class VersionRepoPort(Protocol):
    def insert_next(
        self,
        article_id: UUID,
        title: str,
        content: str | None,
        created_at: datetime,
    ) -> ArticleVersion:
        """
        Atomically assign max(version_num)+1 and insert the snapshot.

        Raises:
            DuplicateVersionError: unique (article_id, version_num) violated
            LookupError: the article no longer exists
        """
        ...

    def update_and_insert_next(
        self, article_id: UUID, fields: dict[str, Any], updated_at: datetime
    ) -> tuple[Article, ArticleVersion] | None:
        """
        Apply an edit to the article row and append its resulting snapshot.

        Both writes commit or roll back together. The version holds the
        (title, content) of the row as written, not values read earlier.
        Returns None if the article doesn't exist.

        Raises:
            DuplicateVersionError: unique (article_id, version_num) violated
        """
        ...

    def list_by_article(self, article_id: UUID) -> list[ArticleVersion]:
        """List versions, newest (highest version_num) first."""
        ...


# -----------------------------------------------------------------------------
# Images
# -----------------------------------------------------------------------------


class ImageRepoPort(Protocol):
    def get_by_id(self, image_id: UUID) -> ArticleImage | None:
        """Get image by ID."""
        ...

    def insert(self, image: ArticleImage) -> ArticleImage:
        """Insert image metadata."""
        ...

    def set_html(
        self, image_id: UUID, html_url: str | None, html_storage_path: str | None
    ) -> ArticleImage | None:
        """Set or clear the HTML source fields. Returns None if image is gone."""
        ...

    def delete(self, image_id: UUID) -> None:
        """Delete image metadata."""
        ...

    def list_by_article(self, article_id: UUID) -> list[ArticleImage]:
        """List images ordered by sort_order, then creation order."""
        ...


# -----------------------------------------------------------------------------
# Stats
# -----------------------------------------------------------------------------


class StatsRepoPort(Protocol):
    def insert(self, stats: ArticleStats) -> ArticleStats:
        """Append a stats snapshot."""
        ...

    def list_by_article(self, article_id: UUID) -> list[ArticleStats]:
        """List stats snapshots, newest first."""
        ...
