"""
Images component - article image attachments and their HTML sources.
"""

from .component import (
    DEFAULT_ALLOWED_MIME_TYPES,
    DEFAULT_MAX_UPLOAD_BYTES,
    ImageLinkage,
    derive_html_path,
    generate_storage_key,
)
from .models import HTML_CONTENT_TYPE, HtmlSource

__all__ = [
    "ImageLinkage",
    "HtmlSource",
    "derive_html_path",
    "generate_storage_key",
    "DEFAULT_ALLOWED_MIME_TYPES",
    "DEFAULT_MAX_UPLOAD_BYTES",
    "HTML_CONTENT_TYPE",
]
