import os
import secrets
from functools import lru_cache
from pathlib import Path

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.adapters.clock import SystemClock
from src.adapters.local_storage import LocalFileStorage
from src.adapters.sqlite.repos import (
    SQLiteArticleRepo,
    SQLiteImageRepo,
    SQLiteStatsRepo,
    SQLiteVersionRepo,
)

# Components are stateless; each request builds its own from injected ports.
from src.components.articles import ArticleStore
from src.components.images import ImageLinkage
from src.components.publication import PublicationRecorder
from src.components.versions import VersionLedger
from src.rules.loader import load_rules
from src.rules.models import Rules

DB_FILENAME = "content_ops.db"


# --- Settings ---
class Settings:
    def __init__(
        self,
        data_dir: str | Path | None = None,
        rules_path: str | Path | None = None,
        api_token: str | None = None,
    ) -> None:
        self.data_dir = Path(data_dir or os.environ.get("CONTENT_OPS_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / DB_FILENAME)
        self.blob_path = self.data_dir / "blobs"
        self.rules_path = Path(
            rules_path or os.environ.get("CONTENT_OPS_RULES_PATH", "./rules.yaml")
        )
        self.api_token = api_token if api_token is not None else os.environ.get("API_AUTH_TOKEN")


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


# --- Adapters ---
def get_clock() -> SystemClock:
    return SystemClock()


def get_blob_store(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> LocalFileStorage:
    return LocalFileStorage(settings.blob_path, container=rules.storage.container)


# --- Repos ---
def get_article_repo(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> SQLiteArticleRepo:
    return SQLiteArticleRepo(settings.db_path, busy_timeout=rules.database.busy_timeout_seconds)


def get_version_repo(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> SQLiteVersionRepo:
    return SQLiteVersionRepo(settings.db_path, busy_timeout=rules.database.busy_timeout_seconds)


def get_image_repo(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> SQLiteImageRepo:
    return SQLiteImageRepo(settings.db_path, busy_timeout=rules.database.busy_timeout_seconds)


def get_stats_repo(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> SQLiteStatsRepo:
    return SQLiteStatsRepo(settings.db_path, busy_timeout=rules.database.busy_timeout_seconds)


# --- Component Services ---
def get_version_ledger(
    repo: SQLiteVersionRepo = Depends(get_version_repo),
    clock: SystemClock = Depends(get_clock),
    rules: Rules = Depends(get_rules),
) -> VersionLedger:
    return VersionLedger(repo, clock, max_attempts=rules.concurrency.version_append_attempts)


def get_image_linkage(
    image_repo: SQLiteImageRepo = Depends(get_image_repo),
    article_repo: SQLiteArticleRepo = Depends(get_article_repo),
    store: LocalFileStorage = Depends(get_blob_store),
    clock: SystemClock = Depends(get_clock),
    rules: Rules = Depends(get_rules),
) -> ImageLinkage:
    return ImageLinkage(
        image_repo,
        article_repo,
        store,
        clock,
        max_upload_bytes=rules.uploads.max_upload_bytes,
        allowed_mime_types=rules.uploads.allowlist_mime_types,
        url_prefix=rules.storage.public_url_prefix,
    )


def get_article_store(
    repo: SQLiteArticleRepo = Depends(get_article_repo),
    ledger: VersionLedger = Depends(get_version_ledger),
    images: ImageLinkage = Depends(get_image_linkage),
    clock: SystemClock = Depends(get_clock),
    rules: Rules = Depends(get_rules),
) -> ArticleStore:
    return ArticleStore(
        repo,
        ledger,
        clock,
        images=images,
        cas_attempts=rules.concurrency.status_cas_attempts,
        default_limit=rules.listing.default_limit,
        max_limit=rules.listing.max_limit,
    )


def get_publication_recorder(
    article_repo: SQLiteArticleRepo = Depends(get_article_repo),
    stats_repo: SQLiteStatsRepo = Depends(get_stats_repo),
    clock: SystemClock = Depends(get_clock),
) -> PublicationRecorder:
    return PublicationRecorder(article_repo, stats_repo, clock)


# --- Auth ---
bearer_scheme = HTTPBearer(auto_error=False)


def require_api_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Gate a route behind the shared API token.

    With no API_AUTH_TOKEN configured every gated request is rejected.
    """
    expected = settings.api_token
    if (
        not expected
        or credentials is None
        or not secrets.compare_digest(credentials.credentials.encode(), expected.encode())
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
