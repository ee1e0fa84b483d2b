from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Request,
    status
)
from fastapi.responses import PlainTextResponse
import logging
from python_multipart.multipart import parse_options_header

from upload_api.config.settings import Settings
from upload_api.pipeline import stream_upload_to_bucket
from upload_api.s3.bucket import BucketHandle

logger = logging.getLogger(__name__)

MULTIPART_FORM_DATA = b"multipart/form-data"

router = APIRouter()


def require_multipart_form_data(request: Request) -> str:
    """Reject any body that is not multipart/form-data before it is read."""
    content_type = request.headers.get("content-type", "")
    media_type, _ = parse_options_header(content_type)
    if media_type.lower() != MULTIPART_FORM_DATA:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Unsupported content type: {content_type or 'none'}"
        )
    return content_type


def get_bucket(request: Request) -> BucketHandle:
    """The process-wide bucket handle opened at startup."""
    return request.app.state.bucket


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


@router.post(
    "/upload",
    response_class=PlainTextResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"description": "`name` and `myfile` parts missing or out of order"},
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"description": "Body is not multipart/form-data"},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Malformed body or storage failure"},
    },
)
async def upload_file(
    request: Request,
    content_type: str = Depends(require_multipart_form_data),
    bucket: BucketHandle = Depends(get_bucket),
    settings: Settings = Depends(get_app_settings),
) -> PlainTextResponse:
    """
    Stream an uploaded file straight into the bucket.

    The multipart body must hold a `name` field (optional override of the
    stored filename, may be empty) followed by a `myfile` file field. The
    file is copied to storage while it is received; nothing is buffered on
    local disk.

    Returns:
        PlainTextResponse: The stored object's URL, newline-terminated.
    """
    attrs = await stream_upload_to_bucket(
        request.stream(),
        content_type,
        bucket,
        max_name_bytes=settings.max_name_bytes,
        part_size=settings.upload_part_size_bytes,
        abort_incomplete_uploads=settings.abort_incomplete_uploads,
        read_timeout=settings.read_timeout,
        write_timeout=settings.write_timeout,
    )
    logger.info(f"file uploaded: {attrs.media_link}")
    return PlainTextResponse(f"{attrs.media_link}\n")
