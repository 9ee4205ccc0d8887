"""
Article status engine.

A fixed finite-state machine over the editorial pipeline. The transition
table is data, so it can be audited and tested on its own:

    draft          -> pending_render, archived
    pending_render -> pending_review, draft, archived
    pending_review -> published, pending_render, archived
    published      -> archived
    archived       -> draft

There is no absorbing state (archived cycles back to draft) and no
self-transition appears in any row.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

from src.core.errors import InvalidTransitionError
from src.domain.entities import ARTICLE_STATUSES, Article, ArticleStatus

INITIAL_STATUS: ArticleStatus = "draft"

TRANSITIONS: MappingProxyType[str, tuple[ArticleStatus, ...]] = MappingProxyType(
    {
        "draft": ("pending_render", "archived"),
        "pending_render": ("pending_review", "draft", "archived"),
        "pending_review": ("published", "pending_render", "archived"),
        "published": ("archived",),
        "archived": ("draft",),
    }
)


@dataclass(frozen=True)
class StatusChange:
    """Result of an applied transition."""

    article: Article
    previous_status: ArticleStatus
    new_status: ArticleStatus


def is_valid_status(value: str) -> bool:
    return value in ARTICLE_STATUSES


def can_transition(current: str, target: str) -> bool:
    """True iff target is in the adjacency row of current."""
    return target in TRANSITIONS.get(current, ())


def allowed_next(current: str) -> list[ArticleStatus]:
    """Adjacency row for current, in table order. Empty for unknown states."""
    return list(TRANSITIONS.get(current, ()))


def apply_transition(article: Article, target: str) -> StatusChange:
    """
    Return a copy of the article moved to target.

    Only the status field changes; timestamps and persistence are the
    caller's business.

    Raises:
        InvalidTransitionError: target is not reachable from the current status.
    """
    current = article.status
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target, allowed_next(current))

    new_status: ArticleStatus = target  # type: ignore[assignment]
    return StatusChange(
        article=article.model_copy(update={"status": new_status}),
        previous_status=current,
        new_status=new_status,
    )
