"""
Publication component - marks articles as published on the external platform.

Publishing is a forced status write: it does not consult the transition
table, so an article can be marked published from any status (including
archived). The previous status is logged so the bypass stays visible.

A stats snapshot is recorded only when at least one metric is supplied;
metrics left out of a supplied set default to 0.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from uuid import UUID

from src.core.errors import NotFoundError, ValidationError
from src.core.ports.db import ArticleRepoPort, StatsRepoPort
from src.core.ports.time import TimePort
from src.domain.entities import ArticleStats

from .models import METRIC_FIELDS, PublishResult

logger = logging.getLogger(__name__)


def _normalize_metrics(metrics: Mapping[str, int | None] | None) -> dict[str, int] | None:
    """Return the full metric set with defaults, or None when nothing was supplied."""
    if not metrics:
        return None

    supplied = {k: v for k, v in metrics.items() if k in METRIC_FIELDS and v is not None}
    if not supplied:
        return None

    for name, value in supplied.items():
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(f"{name} must be a non-negative integer", field=name)

    return {name: supplied.get(name, 0) for name in METRIC_FIELDS}


class PublicationRecorder:
    def __init__(
        self,
        article_repo: ArticleRepoPort,
        stats_repo: StatsRepoPort,
        clock: TimePort,
    ) -> None:
        self._articles = article_repo
        self._stats = stats_repo
        self._clock = clock

    def publish(
        self,
        article_id: UUID,
        xhs_note_id: str,
        metrics: Mapping[str, int | None] | None = None,
    ) -> PublishResult:
        """
        Record the external note id, force status to published and
        optionally snapshot engagement metrics.

        Raises:
            ValidationError: blank note id or a negative metric
            NotFoundError: article absent
        """
        if not isinstance(xhs_note_id, str) or not xhs_note_id.strip():
            raise ValidationError("xhs_note_id is required", field="xhs_note_id")
        values = _normalize_metrics(metrics)

        current = self._articles.get_by_id(article_id)
        if current is None:
            raise NotFoundError(f"Article {article_id} not found")

        now = self._clock.now_utc()
        article = self._articles.mark_published(article_id, xhs_note_id, now)
        if article is None:
            raise NotFoundError(f"Article {article_id} not found")

        logger.info(
            "Article %s force-published as note %s (was %s)",
            article_id,
            xhs_note_id,
            current.status,
        )

        stats = None
        if values is not None:
            stats = self._stats.insert(
                ArticleStats(article_id=article_id, recorded_at=now, **values)
            )

        return PublishResult(article=article, stats=stats)

    def list_stats(self, article_id: UUID) -> list[ArticleStats]:
        """Stats snapshots for the article, newest first."""
        return self._stats.list_by_article(article_id)
