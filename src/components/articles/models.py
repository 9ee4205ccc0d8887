"""
Articles component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.domain.entities import Article, ArticleStatus

# Fields a caller may change through update(); status has its own operations
EDITABLE_FIELDS = ("title", "content", "tags", "category")


@dataclass(frozen=True)
class ArticlePage:
    """One page of a filtered article listing."""

    articles: list[Article]
    total: int
    limit: int
    offset: int


@dataclass(frozen=True)
class StatusOptions:
    """Current status and the statuses reachable from it."""

    current_status: ArticleStatus
    allowed_next_statuses: list[ArticleStatus] = field(default_factory=list)
