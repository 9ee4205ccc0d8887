"""
Article image API routes.

Image upload/list/delete and the per-image HTML source. HTML may arrive as
JSON ({"html": "..."}) or as a multipart "file" upload; both are resolved
here into one HtmlBody before reaching the images component.
"""

import json
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from src.api.deps import get_image_linkage
from src.api.schemas import (
    HtmlBody,
    HtmlSourceResponse,
    HtmlUpdateResponse,
    ImageListResponse,
    ImageResponse,
    JsonHtmlBody,
    MessageResponse,
    MultipartHtmlBody,
)
from src.components.images import ImageLinkage
from src.core.errors import ValidationError
from src.domain.entities import ArticleImage

router = APIRouter()


# --- HTML body resolution ---


async def read_html_body(request: Request) -> HtmlBody:
    """
    Resolve a JSON or multipart request body into an HtmlBody.

    Never rejects the body itself: a missing or unusable payload resolves to
    an empty body, and the images component reports it only after checking
    the image's state.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if upload is not None and not isinstance(upload, str):
            return MultipartHtmlBody(data=await upload.read())
        # Tolerate the HTML being sent as a plain form field
        html_field = form.get("html")
        if isinstance(html_field, str):
            return MultipartHtmlBody(data=html_field.encode("utf-8"))
        return MultipartHtmlBody()

    try:
        payload = json.loads(await request.body() or b"null")
    except ValueError:
        return JsonHtmlBody()

    if isinstance(payload, dict) and isinstance(payload.get("html"), str):
        return JsonHtmlBody(html=payload["html"])
    return JsonHtmlBody()


def html_payload(body: HtmlBody) -> str | bytes | None:
    if isinstance(body, MultipartHtmlBody):
        return body.data
    return body.html


# --- Images ---


@router.get("/{article_id}/images", response_model=ImageListResponse)
def list_images(
    article_id: UUID,
    images: ImageLinkage = Depends(get_image_linkage),
) -> ImageListResponse:
    items = images.list_images(article_id)
    return ImageListResponse(
        article_id=article_id,
        images=[ImageResponse.model_validate(i) for i in items],
        total=len(items),
    )


@router.post("/{article_id}/images", response_model=ImageResponse, status_code=201)
def upload_image(
    article_id: UUID,
    file: UploadFile = File(...),
    sort_order: int | None = Form(None),
    images: ImageLinkage = Depends(get_image_linkage),
) -> ArticleImage:
    """Upload an image and attach it to the article."""
    data = file.file.read()
    return images.add_image(
        article_id,
        data,
        filename=file.filename,
        content_type=file.content_type,
        sort_order=sort_order,
    )


@router.delete("/{article_id}/images", response_model=MessageResponse)
def delete_image(
    article_id: UUID,
    image_id: UUID | None = None,
    images: ImageLinkage = Depends(get_image_linkage),
) -> MessageResponse:
    if image_id is None:
        raise ValidationError("image_id is required", field="image_id")
    images.delete_image(article_id, image_id)
    return MessageResponse(message="Image deleted")


# --- HTML sources ---


@router.get("/{article_id}/images/{image_id}/html", response_model=HtmlSourceResponse)
def get_image_html(
    article_id: UUID,
    image_id: UUID,
    images: ImageLinkage = Depends(get_image_linkage),
) -> HtmlSourceResponse:
    source = images.get_html(image_id, article_id=article_id)
    return HtmlSourceResponse(
        image_id=source.image_id,
        html_url=source.html_url,
        html_storage_path=source.html_storage_path,
        html_content=source.html_content,
    )


@router.post(
    "/{article_id}/images/{image_id}/html",
    response_model=ImageResponse,
    status_code=201,
)
def attach_image_html(
    article_id: UUID,
    image_id: UUID,
    body: HtmlBody = Depends(read_html_body),
    images: ImageLinkage = Depends(get_image_linkage),
) -> ArticleImage:
    """Attach an HTML source; 409 if the image already has one."""
    return images.attach_html(image_id, html_payload(body), article_id=article_id)


@router.put("/{article_id}/images/{image_id}/html", response_model=HtmlUpdateResponse)
def update_image_html(
    article_id: UUID,
    image_id: UUID,
    body: HtmlBody = Depends(read_html_body),
    images: ImageLinkage = Depends(get_image_linkage),
) -> HtmlUpdateResponse:
    source = images.update_html(image_id, html_payload(body), article_id=article_id)
    return HtmlUpdateResponse(
        image_id=source.image_id,
        html_url=source.html_url,
        html_storage_path=source.html_storage_path,
        message="HTML updated",
    )


@router.delete("/{article_id}/images/{image_id}/html", response_model=MessageResponse)
def remove_image_html(
    article_id: UUID,
    image_id: UUID,
    images: ImageLinkage = Depends(get_image_linkage),
) -> MessageResponse:
    images.remove_html(image_id, article_id=article_id)
    return MessageResponse(message="HTML removed")
