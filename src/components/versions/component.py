"""
Versions component - append-only article version ledger.

Every (title, content) snapshot an article has had is recorded with a
version_num that is strictly increasing and contiguous per article,
starting at 1.

Invariants:
- version_num = max(existing) + 1, assigned here, never client supplied
- no two appends for the same article produce the same number, even when
  concurrent (repo appends atomically; unique-constraint races are retried)
- an edit of title or content and its version commit together
- versions are immutable and only disappear with their article
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, TypeVar
from uuid import UUID

from src.core.errors import ConflictError, NotFoundError
from src.core.ports.db import DuplicateVersionError, VersionRepoPort
from src.core.ports.time import TimePort
from src.domain.entities import Article, ArticleVersion

logger = logging.getLogger(__name__)

DEFAULT_APPEND_ATTEMPTS = 5

T = TypeVar("T")

# Fields whose presence in an update triggers a new version
VERSIONED_FIELDS = ("title", "content")


def touches_versioned_fields(updates: Mapping[str, Any]) -> bool:
    """Presence (not change) of title or content is what triggers versioning."""
    return any(name in updates for name in VERSIONED_FIELDS)


class VersionLedger:
    def __init__(
        self,
        repo: VersionRepoPort,
        clock: TimePort,
        *,
        max_attempts: int = DEFAULT_APPEND_ATTEMPTS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._repo = repo
        self._clock = clock
        self._max_attempts = max_attempts

    def _with_retry(self, article_id: UUID, write: Callable[[datetime], T]) -> T:
        """Run one numbering write, retrying unique-constraint collisions."""
        for attempt in range(1, self._max_attempts + 1):
            try:
                return write(self._clock.now_utc())
            except DuplicateVersionError as e:
                logger.warning(
                    "Version %d collision for article %s (attempt %d/%d)",
                    e.version_num,
                    article_id,
                    attempt,
                    self._max_attempts,
                )
            except LookupError as e:
                raise NotFoundError(f"Article {article_id} not found") from e

        raise ConflictError(
            f"Could not assign a version number for article {article_id} "
            f"after {self._max_attempts} attempts"
        )

    def append_version(self, article_id: UUID, title: str, content: str | None) -> ArticleVersion:
        """
        Append a snapshot and return it with its assigned version_num.

        Raises:
            NotFoundError: the article no longer exists
            ConflictError: numbering kept colliding after max_attempts
        """
        version = self._with_retry(
            article_id,
            lambda now: self._repo.insert_next(article_id, title, content, now),
        )
        logger.debug("Article %s now at version %d", article_id, version.version_num)
        return version

    def record_edit(
        self, article_id: UUID, fields: Mapping[str, Any]
    ) -> tuple[Article, ArticleVersion]:
        """
        Apply a title/content edit and append the resulting snapshot atomically.

        Fields not in this edit keep the values the row holds when the edit
        is written, so a concurrent edit of the other field is never lost
        from the ledger. If the version cannot be written, neither is the edit.

        Raises:
            NotFoundError: the article no longer exists
            ConflictError: numbering kept colliding after max_attempts
        """
        result = self._with_retry(
            article_id,
            lambda now: self._repo.update_and_insert_next(article_id, dict(fields), now),
        )
        if result is None:
            raise NotFoundError(f"Article {article_id} not found")

        article, version = result
        logger.debug("Article %s edited, now at version %d", article_id, version.version_num)
        return article, version

    def list_versions(self, article_id: UUID) -> list[ArticleVersion]:
        """Versions for the article, highest version_num first."""
        return self._repo.list_by_article(article_id)
