"""
Articles component - article CRUD, listing and status workflow.
"""

from .component import (
    DEFAULT_CAS_ATTEMPTS,
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
    ArticleStore,
)
from .models import EDITABLE_FIELDS, ArticlePage, StatusOptions

__all__ = [
    "ArticleStore",
    "ArticlePage",
    "StatusOptions",
    "EDITABLE_FIELDS",
    "DEFAULT_CAS_ATTEMPTS",
    "DEFAULT_PAGE_LIMIT",
    "MAX_PAGE_LIMIT",
]
