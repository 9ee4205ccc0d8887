import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.adapters.local_storage import LocalFileStorage
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.api.deps import get_settings, require_api_token
from src.app_shell.config import validate_runtime
from src.core.errors import (
    ConflictError,
    ContentOpsError,
    InvalidTransitionError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from src.core.ports.storage import StorageError
from src.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    logging.basicConfig(level=logging.INFO)
    settings = app.dependency_overrides.get(get_settings, get_settings)()

    # Rules are required; a bad rules file stops startup
    rules = load_rules(settings.rules_path)
    logger.info("Rules loaded from %s", settings.rules_path)

    validate_runtime(rules, settings.data_dir, settings.api_token)
    SQLiteMigrator(settings.db_path).run_migrations()
    LocalFileStorage(settings.blob_path, container=rules.storage.container).ensure_container()

    yield


app = FastAPI(
    title="Content Ops API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# --- Error mapping ---
STATUS_BY_ERROR: dict[type[ContentOpsError], int] = {
    ValidationError: 400,
    InvalidTransitionError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    StorageUnavailableError: 502,
}


@app.exception_handler(ContentOpsError)
async def content_ops_error_handler(request: Request, exc: ContentOpsError) -> JSONResponse:
    status_code = next(
        (code for cls, code in STATUS_BY_ERROR.items() if isinstance(exc, cls)), 500
    )
    body: dict[str, Any] = {"detail": exc.message}
    if isinstance(exc, InvalidTransitionError):
        body["allowed_next_statuses"] = exc.allowed
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Blob store failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": "Storage unavailable"})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{loc}: {first.get('msg', 'invalid')}" if loc else first.get("msg", "invalid")
    else:
        detail = "Invalid request"
    return JSONResponse(status_code=400, content={"detail": detail})


# --- Routers ---
from src.api.routes import articles, files, images  # noqa: E402

gated = [Depends(require_api_token)]
app.include_router(articles.router, prefix="/api/articles", tags=["Articles"], dependencies=gated)
app.include_router(images.router, prefix="/api/articles", tags=["Images"], dependencies=gated)
app.include_router(files.router, prefix="/api/images", tags=["Files Public"])


# CORS (Allow Frontend)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "content-ops"}
