"""
Images component - ordered image attachments per article.

Each image may be paired with an HTML source file. Binary data lives in the
blob store; the metadata row is the source of truth for existence and order.

Invariants:
- a blob write failure on add/attach leaves no metadata row behind
- blob delete failures are logged and never block metadata cleanup
- HTML storage path = image storage path with its final extension
  replaced by ".html" (see derive_html_path)
- an image key's extension follows its MIME type, so its HTML path never
  equals the image path
- sort_order defaults to 0 and siblings are never renumbered
"""

from __future__ import annotations

import logging
import re
from uuid import UUID, uuid4

from src.core.errors import (
    ConflictError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from src.core.ports.db import ArticleRepoPort, ImageRepoPort
from src.core.ports.storage import BlobStorePort, KeyNotFoundError, StorageError
from src.core.ports.time import TimePort
from src.domain.entities import ArticleImage

from .models import EXTENSION_MIME_TYPES, HTML_CONTENT_TYPE, MIME_EXTENSIONS, HtmlSource

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
DEFAULT_ALLOWED_MIME_TYPES = tuple(MIME_EXTENSIONS)
DEFAULT_URL_PREFIX = "/api/images"

_EXTENSION_RE = re.compile(r"^[A-Za-z0-9]{1,10}$")


def derive_html_path(storage_path: str) -> str:
    """
    Replace the final extension segment (last "." to end) with ".html".

    "abc-123/uuid.png"    -> "abc-123/uuid.html"
    "abc-123/uuid.tar.gz" -> "abc-123/uuid.tar.html"

    Raises:
        ValidationError: the path has no extension segment to replace
    """
    dot = storage_path.rfind(".")
    if dot == -1 or dot == len(storage_path) - 1:
        raise ValidationError(
            f"Cannot derive an HTML path from '{storage_path}': no file extension",
            field="storage_path",
        )
    return storage_path[:dot] + ".html"


def _extension_from_filename(filename: str | None) -> str | None:
    if not filename or "." not in filename:
        return None
    ext = filename.rsplit(".", 1)[1]
    return ext.lower() if _EXTENSION_RE.match(ext) else None


def generate_storage_key(article_id: UUID, extension: str) -> str:
    """Collision-resistant key scoped under the article id."""
    return f"{article_id}/{uuid4().hex}.{extension}"


class ImageLinkage:
    def __init__(
        self,
        image_repo: ImageRepoPort,
        article_repo: ArticleRepoPort,
        store: BlobStorePort,
        clock: TimePort,
        *,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        allowed_mime_types: tuple[str, ...] | list[str] = DEFAULT_ALLOWED_MIME_TYPES,
        url_prefix: str = DEFAULT_URL_PREFIX,
    ) -> None:
        self._images = image_repo
        self._articles = article_repo
        self._store = store
        self._clock = clock
        self._max_upload_bytes = max_upload_bytes
        self._allowed_mime_types = tuple(allowed_mime_types)
        self._url_prefix = url_prefix.rstrip("/")

    # --- Helpers ---

    def _url_for(self, key: str) -> str:
        return f"{self._url_prefix}/{key}"

    def _get_image(self, image_id: UUID, article_id: UUID | None = None) -> ArticleImage:
        image = self._images.get_by_id(image_id)
        if image is None or (article_id is not None and image.article_id != article_id):
            raise NotFoundError(f"Image {image_id} not found")
        return image

    def _delete_blob_quietly(self, key: str | None) -> None:
        if not key:
            return
        try:
            self._store.delete(key)
        except StorageError as e:
            logger.warning("Failed to delete blob %s: %s", key, e)

    def _write_blob(self, key: str, data: bytes, content_type: str, *, overwrite: bool) -> None:
        try:
            self._store.put(key, data, content_type, overwrite=overwrite)
        except StorageError as e:
            raise StorageUnavailableError(f"Blob store write failed for {key}: {e}") from e

    def _resolve_upload_type(
        self, filename: str | None, content_type: str | None
    ) -> tuple[str, str]:
        """
        Return (mime_type, extension) for an upload, validating the MIME type.

        The key extension always follows the validated MIME type. A filename
        extension is only kept when it names that same type ("jpeg" vs "jpg").
        """
        ext = _extension_from_filename(filename)
        mime_type = (content_type or "").split(";")[0].strip().lower()
        if not mime_type or mime_type == "application/octet-stream":
            mime_type = EXTENSION_MIME_TYPES.get(ext or "", "")

        if mime_type not in self._allowed_mime_types:
            allowed = ", ".join(self._allowed_mime_types)
            raise ValidationError(
                f"File type '{mime_type or 'unknown'}' is not allowed. Allowed types: {allowed}",
                field="file",
            )
        if ext is None or EXTENSION_MIME_TYPES.get(ext) != mime_type:
            ext = MIME_EXTENSIONS.get(mime_type, "bin")
        return mime_type, ext

    @staticmethod
    def _validate_html(html: str | bytes | None) -> str:
        """Return the HTML as text. Uploaded bytes must be UTF-8."""
        if isinstance(html, bytes):
            try:
                html = html.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ValidationError("HTML file must be UTF-8 encoded", field="file") from e
        if not isinstance(html, str) or not html:
            raise ValidationError("html is required", field="html")
        return html

    # --- Images ---

    def add_image(
        self,
        article_id: UUID,
        data: bytes,
        *,
        filename: str | None = None,
        content_type: str | None = None,
        sort_order: int | None = None,
    ) -> ArticleImage:
        """
        Store an image blob and record it against the article.

        The blob is written first; if that fails no row is created.
        """
        if self._articles.get_by_id(article_id) is None:
            raise NotFoundError(f"Article {article_id} not found")
        if not data:
            raise ValidationError("No file uploaded", field="file")
        if len(data) > self._max_upload_bytes:
            raise ValidationError(
                f"File size {len(data)} bytes exceeds maximum of {self._max_upload_bytes} bytes",
                field="file",
            )

        mime_type, ext = self._resolve_upload_type(filename, content_type)
        key = generate_storage_key(article_id, ext)
        self._write_blob(key, data, mime_type, overwrite=False)

        image = ArticleImage(
            article_id=article_id,
            url=self._url_for(key),
            storage_path=key,
            sort_order=sort_order if sort_order is not None else 0,
            created_at=self._clock.now_utc(),
        )
        try:
            saved = self._images.insert(image)
        except Exception:
            # Don't leave an unreferenced blob behind
            self._delete_blob_quietly(key)
            raise

        logger.info("Added image %s to article %s", saved.id, article_id)
        return saved

    def list_images(self, article_id: UUID) -> list[ArticleImage]:
        """Images by sort_order ascending, ties in creation order."""
        return self._images.list_by_article(article_id)

    def get_image(self, article_id: UUID, image_id: UUID) -> ArticleImage:
        return self._get_image(image_id, article_id)

    def delete_image(self, article_id: UUID, image_id: UUID) -> None:
        image = self._get_image(image_id, article_id)
        self._delete_blob_quietly(image.storage_path)
        self._delete_blob_quietly(image.html_storage_path)
        self._images.delete(image.id)
        logger.info("Deleted image %s from article %s", image_id, article_id)

    def purge_article_blobs(self, article_id: UUID) -> int:
        """
        Remove every image and HTML blob of an article from the blob store.

        Used by article deletion before the metadata cascade. Returns the
        number of delete calls issued.
        """
        calls = 0
        for image in self._images.list_by_article(article_id):
            for key in (image.storage_path, image.html_storage_path):
                if key:
                    self._delete_blob_quietly(key)
                    calls += 1
        return calls

    # --- HTML sources ---

    def attach_html(
        self, image_id: UUID, html: str | bytes | None, article_id: UUID | None = None
    ) -> ArticleImage:
        """
        Attach an HTML source to an image that doesn't have one yet.

        The image's state is checked before the HTML itself.

        Raises:
            ConflictError: the image already has an HTML source (use update_html)
            ValidationError: no usable storage path to derive from, or bad HTML
        """
        image = self._get_image(image_id, article_id)

        if image.has_html:
            raise ConflictError(f"Image {image_id} already has an HTML source; update it instead")
        if not image.storage_path:
            raise ValidationError(f"Image {image_id} has no storage path", field="storage_path")

        html_path = derive_html_path(image.storage_path)
        if html_path == image.storage_path:
            # Writing here would replace the image bytes with the HTML
            raise ValidationError(
                f"Image {image_id} is stored at an .html path; cannot attach HTML",
                field="storage_path",
            )
        html = self._validate_html(html)

        self._write_blob(html_path, html.encode("utf-8"), HTML_CONTENT_TYPE, overwrite=True)

        updated = self._images.set_html(image.id, self._url_for(html_path), html_path)
        if updated is None:
            raise NotFoundError(f"Image {image_id} not found")
        return updated

    def get_html(self, image_id: UUID, article_id: UUID | None = None) -> HtmlSource:
        image = self._get_image(image_id, article_id)
        if not image.html_storage_path:
            raise NotFoundError(f"Image {image_id} has no HTML source")

        try:
            data, _ = self._store.get(image.html_storage_path)
        except KeyNotFoundError as e:
            raise NotFoundError(f"HTML file for image {image_id} is missing") from e
        except StorageError as e:
            raise StorageUnavailableError(f"Blob store read failed: {e}") from e

        return HtmlSource(
            image_id=image.id,
            html_url=image.html_url,
            html_storage_path=image.html_storage_path,
            html_content=data.decode("utf-8", errors="replace"),
        )

    def update_html(
        self, image_id: UUID, html: str | bytes | None, article_id: UUID | None = None
    ) -> HtmlSource:
        """Overwrite an existing HTML source in place (same path)."""
        image = self._get_image(image_id, article_id)

        if not image.html_storage_path:
            raise ValidationError(
                f"Image {image_id} has no HTML source; use attach instead",
                field="html",
            )
        html = self._validate_html(html)

        self._write_blob(
            image.html_storage_path, html.encode("utf-8"), HTML_CONTENT_TYPE, overwrite=True
        )
        return HtmlSource(
            image_id=image.id,
            html_url=image.html_url,
            html_storage_path=image.html_storage_path,
            html_content=html,
        )

    def remove_html(self, image_id: UUID, article_id: UUID | None = None) -> ArticleImage:
        """Drop the HTML source; the image itself stays."""
        image = self._get_image(image_id, article_id)
        if not image.html_storage_path:
            raise NotFoundError(f"Image {image_id} has no HTML source")

        self._delete_blob_quietly(image.html_storage_path)
        updated = self._images.set_html(image.id, None, None)
        if updated is None:
            raise NotFoundError(f"Image {image_id} not found")
        return updated
