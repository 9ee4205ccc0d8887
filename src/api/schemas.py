from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from src.domain.entities import ArticleStatus


# --- Articles ---
class ArticleCreateRequest(BaseModel):
    # Optional here so a missing title gets the same 400 as a blank one
    title: str | None = None
    content: str | None = None
    tags: list[str] | None = None
    category: str | None = None


class ArticleUpdateRequest(BaseModel):
    """Partial update. Only fields present in the JSON body are applied."""

    title: str | None = None
    content: str | None = None
    tags: list[str] | None = None
    category: str | None = None


class ArticleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    content: str | None = None
    status: ArticleStatus
    tags: list[str] = []
    category: str | None = None
    xhs_note_id: str | None = None
    created_at: datetime
    updated_at: datetime


class ArticleListResponse(BaseModel):
    articles: list[ArticleResponse]
    total: int
    limit: int
    offset: int


# --- Status ---
class StatusTransitionRequest(BaseModel):
    # Plain str so unknown targets reach the status engine and get the allowed list back
    status: str


class StatusOptionsResponse(BaseModel):
    current_status: ArticleStatus
    allowed_next_statuses: list[ArticleStatus]


class StatusChangeResponse(BaseModel):
    article: ArticleResponse
    previous_status: ArticleStatus
    new_status: ArticleStatus


# --- Publication ---
class PublishRequest(BaseModel):
    xhs_note_id: str | None = None
    views: int | None = None
    likes: int | None = None
    favorites: int | None = None
    comments: int | None = None


class PublishResponse(BaseModel):
    article: ArticleResponse
    message: str


# --- Versions ---
class VersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    article_id: UUID
    title: str
    content: str | None = None
    version_num: int
    created_at: datetime


class VersionListResponse(BaseModel):
    article_id: UUID
    versions: list[VersionResponse]
    total: int


# --- Images ---
class ImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    article_id: UUID
    url: str
    storage_path: str | None = None
    html_url: str | None = None
    html_storage_path: str | None = None
    sort_order: int
    created_at: datetime


class ImageListResponse(BaseModel):
    article_id: UUID
    images: list[ImageResponse]
    total: int


# --- HTML sources ---
class JsonHtmlBody(BaseModel):
    """HTML sent as a JSON document: {"html": "..."}."""

    kind: Literal["json"] = "json"
    html: str | None = None


class MultipartHtmlBody(BaseModel):
    """HTML sent as an uploaded file in a multipart form."""

    kind: Literal["multipart"] = "multipart"
    data: bytes | None = None


# Tagged union; "kind" tells the two request shapes apart. An absent payload
# is left for the images component to reject.
HtmlBody = JsonHtmlBody | MultipartHtmlBody


class HtmlSourceResponse(BaseModel):
    image_id: UUID
    html_url: str | None = None
    html_storage_path: str
    html_content: str


class HtmlUpdateResponse(BaseModel):
    image_id: UUID
    html_url: str | None = None
    html_storage_path: str
    message: str


# --- Generic ---
class MessageResponse(BaseModel):
    message: str
