"""
Article API routes.

CRUD, listing, status workflow, publication and version history for
articles. All routes here sit behind the API token.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from src.api.deps import get_article_store, get_publication_recorder, get_version_ledger
from src.api.schemas import (
    ArticleCreateRequest,
    ArticleListResponse,
    ArticleResponse,
    ArticleUpdateRequest,
    MessageResponse,
    PublishRequest,
    PublishResponse,
    StatusChangeResponse,
    StatusOptionsResponse,
    StatusTransitionRequest,
    VersionListResponse,
    VersionResponse,
)
from src.components.articles import ArticleStore
from src.components.publication import METRIC_FIELDS, PublicationRecorder
from src.components.versions import VersionLedger
from src.core.ports.db import ArticleFilter
from src.domain.entities import Article

router = APIRouter()


@router.get("", response_model=ArticleListResponse)
def list_articles(
    status: str | None = None,
    tag: str | None = None,
    category: str | None = None,
    search: str | None = None,
    limit: int = Query(0, description="0 uses the configured default page size"),
    offset: int = 0,
    store: ArticleStore = Depends(get_article_store),
) -> ArticleListResponse:
    """List articles, most recently updated first."""
    page = store.list(
        ArticleFilter(
            status=status,
            tag=tag,
            category=category,
            search=search,
            limit=limit,
            offset=offset,
        )
    )
    return ArticleListResponse(
        articles=[ArticleResponse.model_validate(a) for a in page.articles],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


@router.post("", response_model=ArticleResponse, status_code=201)
def create_article(
    req: ArticleCreateRequest,
    store: ArticleStore = Depends(get_article_store),
) -> Article:
    """Create a draft article with its first version."""
    return store.create(
        title=req.title,  # type: ignore[arg-type]
        content=req.content,
        tags=req.tags,
        category=req.category,
    )


@router.get("/{article_id}", response_model=ArticleResponse)
def get_article(
    article_id: UUID,
    store: ArticleStore = Depends(get_article_store),
) -> Article:
    return store.get(article_id)


@router.put("/{article_id}", response_model=ArticleResponse)
def update_article(
    article_id: UUID,
    req: ArticleUpdateRequest,
    store: ArticleStore = Depends(get_article_store),
) -> Article:
    """Partial update; title or content in the body appends a version."""
    return store.update(article_id, req.model_dump(exclude_unset=True))


@router.delete("/{article_id}", response_model=MessageResponse)
def delete_article(
    article_id: UUID,
    store: ArticleStore = Depends(get_article_store),
) -> MessageResponse:
    store.delete(article_id)
    return MessageResponse(message="Article deleted")


# --- Status ---


@router.get("/{article_id}/status", response_model=StatusOptionsResponse)
def get_article_status(
    article_id: UUID,
    store: ArticleStore = Depends(get_article_store),
) -> StatusOptionsResponse:
    options = store.status_options(article_id)
    return StatusOptionsResponse(
        current_status=options.current_status,
        allowed_next_statuses=options.allowed_next_statuses,
    )


@router.put("/{article_id}/status", response_model=StatusChangeResponse)
def transition_article_status(
    article_id: UUID,
    req: StatusTransitionRequest,
    store: ArticleStore = Depends(get_article_store),
) -> StatusChangeResponse:
    change = store.transition(article_id, req.status)
    return StatusChangeResponse(
        article=ArticleResponse.model_validate(change.article),
        previous_status=change.previous_status,
        new_status=change.new_status,
    )


# --- Publication ---


@router.post("/{article_id}/publish", response_model=PublishResponse)
def publish_article(
    article_id: UUID,
    req: PublishRequest,
    recorder: PublicationRecorder = Depends(get_publication_recorder),
) -> PublishResponse:
    """Mark published on the external platform, optionally recording metrics."""
    metrics = {name: getattr(req, name) for name in METRIC_FIELDS}
    result = recorder.publish(article_id, req.xhs_note_id or "", metrics)
    return PublishResponse(
        article=ArticleResponse.model_validate(result.article),
        message=result.message,
    )


# --- Versions ---


@router.get("/{article_id}/versions", response_model=VersionListResponse)
def list_article_versions(
    article_id: UUID,
    store: ArticleStore = Depends(get_article_store),
    ledger: VersionLedger = Depends(get_version_ledger),
) -> VersionListResponse:
    """Version history, newest first."""
    store.get(article_id)
    versions = ledger.list_versions(article_id)
    return VersionListResponse(
        article_id=article_id,
        versions=[VersionResponse.model_validate(v) for v in versions],
        total=len(versions),
    )
