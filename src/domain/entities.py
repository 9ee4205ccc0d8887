from datetime import UTC, datetime
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

# --- Enums / Literals ---
ArticleStatus = Literal["draft", "pending_render", "pending_review", "published", "archived"]

ARTICLE_STATUSES: tuple[ArticleStatus, ...] = (
    "draft",
    "pending_render",
    "pending_review",
    "published",
    "archived",
)


def utc_now() -> datetime:
    return datetime.now(UTC)


# --- Articles ---

class Article(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    title: str
    content: str | None = None
    status: ArticleStatus = "draft"
    tags: list[str] = Field(default_factory=list)
    category: str | None = None
    xhs_note_id: str | None = None  # External publication id, set on publish
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ArticleVersion(BaseModel):
    """Immutable (title, content) snapshot. version_num is assigned by the ledger."""

    id: UUID = Field(default_factory=uuid4)
    article_id: UUID
    title: str
    content: str | None = None
    version_num: int = Field(ge=1)
    created_at: datetime = Field(default_factory=utc_now)


# --- Images ---

class ArticleImage(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    article_id: UUID
    url: str
    storage_path: str | None = None
    html_url: str | None = None
    html_storage_path: str | None = None
    sort_order: int = 0
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def has_html(self) -> bool:
        return self.html_storage_path is not None


# --- Publication telemetry ---

class ArticleStats(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    article_id: UUID
    views: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    favorites: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    recorded_at: datetime = Field(default_factory=utc_now)
