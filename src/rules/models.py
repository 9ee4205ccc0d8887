from pydantic import BaseModel, Field


class ProjectRules(BaseModel):
    slug: str = "content-ops"
    rules_version: str = "1"


class StorageRules(BaseModel):
    container: str = "article-images"
    public_url_prefix: str = "/api/images"


class UploadsRules(BaseModel):
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    allowlist_mime_types: list[str] = Field(
        default_factory=lambda: [
            "image/jpeg",
            "image/png",
            "image/gif",
            "image/webp",
            "image/svg+xml",
        ]
    )


class ListingRules(BaseModel):
    default_limit: int = Field(default=50, ge=1)
    max_limit: int = Field(default=200, ge=1)


class ConcurrencyRules(BaseModel):
    status_cas_attempts: int = Field(default=3, ge=2, le=10)
    version_append_attempts: int = Field(default=5, ge=1, le=20)


class DatabaseRules(BaseModel):
    busy_timeout_seconds: float = Field(default=30.0, gt=0)


class Rules(BaseModel):
    project: ProjectRules = Field(default_factory=ProjectRules)
    storage: StorageRules = Field(default_factory=StorageRules)
    uploads: UploadsRules = Field(default_factory=UploadsRules)
    listing: ListingRules = Field(default_factory=ListingRules)
    concurrency: ConcurrencyRules = Field(default_factory=ConcurrencyRules)
    database: DatabaseRules = Field(default_factory=DatabaseRules)
