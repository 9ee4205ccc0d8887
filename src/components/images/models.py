"""
Images component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

HTML_CONTENT_TYPE = "text/html; charset=utf-8"

# MIME type -> file extension used in storage keys
MIME_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}

EXTENSION_MIME_TYPES: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}


@dataclass(frozen=True)
class HtmlSource:
    """HTML source attached to an image."""

    image_id: UUID
    html_url: str | None
    html_storage_path: str
    html_content: str
