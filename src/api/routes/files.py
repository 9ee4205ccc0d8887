"""
Public blob serving.

Serves stored image and HTML bytes by storage key. Keys embed a random
component, so responses are cached as immutable.

Headers:
- Content-Type: the type recorded when the object was stored
- ETag: derived from the SHA256 of the bytes
- Cache-Control: public, one year, immutable
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from src.adapters.local_storage import LocalFileStorage
from src.api.deps import get_blob_store
from src.core.ports.storage import KeyNotFoundError

router = APIRouter()

# Cache for 1 year (keys are never reused)
CACHE_MAX_AGE = 31536000
CACHE_CONTROL_IMMUTABLE = f"public, max-age={CACHE_MAX_AGE}, immutable"


@router.get("/{key:path}")
def serve_blob(
    key: str,
    store: LocalFileStorage = Depends(get_blob_store),
) -> Response:
    try:
        data, meta = store.get(key)
    except KeyNotFoundError as e:
        raise HTTPException(status_code=404, detail="File not found") from e

    return Response(
        content=data,
        media_type=meta.content_type,
        headers={
            "Cache-Control": CACHE_CONTROL_IMMUTABLE,
            "ETag": meta.etag,
        },
    )
