"""
Publication component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.domain.entities import Article, ArticleStats

# Engagement counters accepted on publish
METRIC_FIELDS = ("views", "likes", "favorites", "comments")

PUBLISHED_MESSAGE = "Article marked as published"


@dataclass(frozen=True)
class PublishResult:
    """Outcome of marking an article as published."""

    article: Article
    stats: ArticleStats | None
    message: str = PUBLISHED_MESSAGE
