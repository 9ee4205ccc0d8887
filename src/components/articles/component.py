"""
Articles component - aggregate root for article CRUD.

Owns the article row and its status field, and orchestrates version
creation on content edits.

Operations:
- create: new draft + version 1 as one logical unit
- get / list (filtered, paginated, most recently updated first)
- update: partial; presence of title or content appends a version
- delete: removes blobs (best effort), then versions, images, stats, article
- status_options / transition: status engine + compare-and-swap write

Concurrency:
- transition retries the whole read-validate-write cycle when the CAS
  write loses a race, up to cas_attempts times, then raises ConflictError
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any
from uuid import UUID

from src.components.versions import VersionLedger, touches_versioned_fields
from src.core.errors import ConflictError, NotFoundError, ValidationError
from src.core.ports.db import ArticleFilter, ArticleRepoPort
from src.core.ports.time import TimePort
from src.domain.entities import Article
from src.domain.state import (
    INITIAL_STATUS,
    StatusChange,
    allowed_next,
    apply_transition,
    is_valid_status,
)

from .models import EDITABLE_FIELDS, ArticlePage, StatusOptions

if TYPE_CHECKING:
    from src.components.images import ImageLinkage

logger = logging.getLogger(__name__)

DEFAULT_CAS_ATTEMPTS = 3
DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 200


def _validate_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required", field="title")
    return title


def _validate_tags(tags: Any) -> list[str]:
    if tags is None:
        return []
    if not isinstance(tags, list | tuple) or not all(isinstance(t, str) for t in tags):
        raise ValidationError("Tags must be a list of strings", field="tags")
    return list(tags)


class ArticleStore:
    def __init__(
        self,
        repo: ArticleRepoPort,
        ledger: VersionLedger,
        clock: TimePort,
        *,
        images: ImageLinkage | None = None,
        cas_attempts: int = DEFAULT_CAS_ATTEMPTS,
        default_limit: int = DEFAULT_PAGE_LIMIT,
        max_limit: int = MAX_PAGE_LIMIT,
    ) -> None:
        self._repo = repo
        self._ledger = ledger
        self._clock = clock
        self._images = images
        self._cas_attempts = max(2, cas_attempts)
        self._default_limit = default_limit
        self._max_limit = max_limit

    # --- Reads ---

    def get(self, article_id: UUID) -> Article:
        article = self._repo.get_by_id(article_id)
        if article is None:
            raise NotFoundError(f"Article {article_id} not found")
        return article

    def list(self, filters: ArticleFilter | None = None) -> ArticlePage:
        """
        List articles matching the filter.

        total counts the whole filtered set, before limit/offset are applied.
        """
        filters = self._normalize_filter(filters or ArticleFilter(limit=self._default_limit))
        articles, total = self._repo.list(filters)
        return ArticlePage(
            articles=articles,
            total=total,
            limit=filters.limit,
            offset=filters.offset,
        )

    def _normalize_filter(self, filters: ArticleFilter) -> ArticleFilter:
        if filters.status is not None and not is_valid_status(filters.status):
            raise ValidationError(f"Unknown status '{filters.status}'", field="status")
        if filters.offset < 0:
            raise ValidationError("offset must not be negative", field="offset")

        limit = filters.limit if filters.limit > 0 else self._default_limit
        limit = min(limit, self._max_limit)
        return ArticleFilter(
            status=filters.status,
            tag=filters.tag or None,
            category=filters.category or None,
            search=filters.search or None,
            limit=limit,
            offset=filters.offset,
        )

    # --- Writes ---

    def create(
        self,
        title: str,
        content: str | None = None,
        tags: list[str] | None = None,
        category: str | None = None,
    ) -> Article:
        """
        Create a draft article together with its first version.

        If the version write fails the article row is removed again, so a
        half-created article is never left behind.
        """
        title = _validate_title(title)
        now = self._clock.now_utc()
        article = Article(
            title=title,
            content=content or None,
            status=INITIAL_STATUS,
            tags=_validate_tags(tags),
            category=category or None,
            created_at=now,
            updated_at=now,
        )
        saved = self._repo.insert(article)

        try:
            version = self._ledger.append_version(saved.id, saved.title, saved.content)
            if version.version_num != 1:
                raise ConflictError(
                    f"New article {saved.id} got version {version.version_num}, expected 1"
                )
        except Exception:
            logger.error("Version write failed for new article %s; rolling back", saved.id)
            self._repo.delete_cascade(saved.id)
            raise

        logger.info("Created article %s", saved.id)
        return saved

    def update(self, article_id: UUID, updates: Mapping[str, Any]) -> Article:
        """
        Partially update title, content, tags and/or category.

        Only keys present in updates change. Any other key (status, id, ...) is
        ignored. If title or content is present, the edit and a new version with
        the merged snapshot are written together, even when the value is
        unchanged.
        """
        fields = {name: updates[name] for name in EDITABLE_FIELDS if name in updates}
        current = self.get(article_id)

        if not fields:
            return current

        if "title" in fields:
            fields["title"] = _validate_title(fields["title"])
        if "tags" in fields:
            fields["tags"] = _validate_tags(fields["tags"])

        if touches_versioned_fields(fields):
            updated, _ = self._ledger.record_edit(article_id, fields)
            return updated

        updated = self._repo.update_fields(article_id, fields, self._clock.now_utc())
        if updated is None:
            raise NotFoundError(f"Article {article_id} not found")
        return updated

    def delete(self, article_id: UUID) -> None:
        """
        Delete the article and everything hanging off it.

        Blob cleanup failures are logged and never block the metadata delete.
        """
        self.get(article_id)

        if self._images is not None:
            self._images.purge_article_blobs(article_id)

        if not self._repo.delete_cascade(article_id):
            raise NotFoundError(f"Article {article_id} not found")
        logger.info("Deleted article %s", article_id)

    # --- Status ---

    def status_options(self, article_id: UUID) -> StatusOptions:
        article = self.get(article_id)
        return StatusOptions(
            current_status=article.status,
            allowed_next_statuses=allowed_next(article.status),
        )

    def transition(self, article_id: UUID, target: str) -> StatusChange:
        """
        Move the article to target if the transition table allows it.

        Raises:
            NotFoundError: article absent
            InvalidTransitionError: target not allowed from the current status
            ConflictError: status kept changing underneath us
        """
        for attempt in range(1, self._cas_attempts + 1):
            article = self.get(article_id)
            change = apply_transition(article, target)
            now = self._clock.now_utc()

            if self._repo.compare_and_set_status(
                article_id, change.previous_status, change.new_status, now
            ):
                logger.info(
                    "Article %s: %s -> %s",
                    article_id,
                    change.previous_status,
                    change.new_status,
                )
                return StatusChange(
                    article=change.article.model_copy(update={"updated_at": now}),
                    previous_status=change.previous_status,
                    new_status=change.new_status,
                )

            logger.warning(
                "Status CAS lost for article %s (attempt %d/%d)",
                article_id,
                attempt,
                self._cas_attempts,
            )

        raise ConflictError(
            f"Article {article_id} status changed concurrently; "
            f"gave up after {self._cas_attempts} attempts"
        )
