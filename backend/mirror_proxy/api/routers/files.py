import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse

from mirror_proxy.api.deps import get_mirror_service, require_authentication
from mirror_proxy.schemas import (
    DeletionRequest,
    DownloadRequest,
    RequestBodyError,
    UploadRequest,
    classify,
)
from mirror_proxy.schemas.requests import RequestBodyBase
from mirror_proxy.services.mirror import MirrorService, UpstreamError
from mirror_proxy.services.storage import BucketBindingError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


async def _handle(
    body: bytes,
    allowed: tuple[type[RequestBodyBase], ...],
    mirror: MirrorService,
) -> str:
    try:
        payload = classify(body, allowed)
    except RequestBodyError as exc:
        logger.info("Rejected request body: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid request body",
        ) from exc

    try:
        return await mirror.dispatch(payload)
    except BucketBindingError as exc:
        logger.error("%s. This should not happen.", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR) from exc
    except UpstreamError as exc:
        logger.exception("Failed to handle %s request", payload.kind)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR) from exc


# Any path is accepted; only the method and body select the operation.
@router.put("/{request_path:path}", response_class=PlainTextResponse)
async def put_file(
    request_path: str,
    body: bytes = Depends(require_authentication),
    mirror: MirrorService = Depends(get_mirror_service),
) -> str:
    """Store a file sent inline as base64 or fetched from a URL."""
    return await _handle(body, (UploadRequest, DownloadRequest), mirror)


@router.delete("/{request_path:path}", response_class=PlainTextResponse)
async def delete_files(
    request_path: str,
    body: bytes = Depends(require_authentication),
    mirror: MirrorService = Depends(get_mirror_service),
) -> str:
    return await _handle(body, (DeletionRequest,), mirror)
