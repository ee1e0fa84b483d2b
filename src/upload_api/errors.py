"""Error taxonomy for uploads and the FastAPI handlers that render it.

Every failure of the upload pipeline is one of two kinds:

- :class:`UploadValidationError`: the client sent something we cannot accept
  (wrong field order, missing file). The message is safe to show the caller.
- :class:`UploadInternalError`: framing, storage or timeout failures. The cause
  is logged, the caller only gets a generic message.
"""

import logging
from typing import Optional

from fastapi import Request, status
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)

INTERNAL_SERVER_ERROR_MESSAGE = "internal server error"


class UploadError(Exception):
    """Base class for classified upload failures."""


class UploadValidationError(UploadError):
    """Client-caused failure; resubmitting corrected input can succeed."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UploadInternalError(UploadError):
    """Server-side failure; details stay in the logs."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause!r}"


def status_code_for(err: UploadError) -> int:
    """Map an upload error kind to its HTTP status code."""
    if isinstance(err, UploadValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(err, UploadInternalError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    raise TypeError(f"Unclassified upload error: {type(err).__name__}")


async def handle_upload_validation_error(request: Request, exc: UploadValidationError) -> PlainTextResponse:
    """Echo the validation message back to the client."""
    logger.info(f"rejected upload to {request.url.path}: {exc.message}")
    return PlainTextResponse(exc.message, status_code=status_code_for(exc))


async def handle_upload_internal_error(request: Request, exc: UploadInternalError) -> PlainTextResponse:
    """Log the full cause and answer with a generic message."""
    logger.error(f"error during upload: {exc}", exc_info=exc.cause or exc)
    return PlainTextResponse(INTERNAL_SERVER_ERROR_MESSAGE, status_code=status_code_for(exc))


async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that propagates up from a route."""
    try:
        return await call_next(request)
    except Exception as err:
        logger.exception(f"unhandled error for {request.method} {request.url.path}: {err}")
        return PlainTextResponse(
            INTERNAL_SERVER_ERROR_MESSAGE,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
