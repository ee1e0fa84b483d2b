"""Streaming upload pipeline: multipart request body -> S3 object.

The request body must carry exactly two parts, in this order:

1. ``name``: optional override for the stored object's key (may be empty).
2. ``myfile``: the file payload, with its own filename metadata.

The pipeline is a fixed two-slot state machine::

    AWAIT_NAME -> AWAIT_FILE -> STREAMING -> DONE

The file payload is copied chunk by chunk from the client connection into an
:class:`~upload_api.s3.write_objects.ObjectWriter`; the next chunk is only
read once the writer accepted the previous one. Parts after ``myfile`` are
never read.
"""

import logging
import posixpath
from enum import Enum
from typing import AsyncIterator, Optional

import anyio
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from upload_api.config.settings import DEFAULT_MAX_NAME_BYTES, DEFAULT_UPLOAD_PART_SIZE_BYTES
from upload_api.errors import UploadInternalError, UploadValidationError
from upload_api.multipart import MultipartFramingError, MultipartReader, Part, PartTooLarge
from upload_api.s3.bucket import BucketHandle, ObjectHandle
from upload_api.s3.write_objects import ObjectWriter
from upload_api.schemas import ObjectAttributes
from upload_api.utils.decorators import async_log_execution_time

logger = logging.getLogger(__name__)

NAME_FIELD = "name"
FILE_FIELD = "myfile"

_READ_ERRORS = (MultipartFramingError, ClientDisconnect)
_STORAGE_ERRORS = (BotoCoreError, ClientError)

# keys that would turn into relative path segments in the media link
_DOT_SEGMENTS = (".", "..")


class UploadState(str, Enum):
    AWAIT_NAME = "await_name"
    AWAIT_FILE = "await_file"
    STREAMING = "streaming"
    DONE = "done"


def _base_name(filename: Optional[str]) -> str:
    """Last path element of a client-supplied filename, for either separator."""
    if not filename:
        return ""
    name = posixpath.basename(filename.replace("\\", "/"))
    return "" if name in _DOT_SEGMENTS else name


def _deadline(timeout: Optional[float]) -> Optional[float]:
    # 0 means no limit
    return timeout or None


class StreamingUpload:
    """One upload, from the raw request body to a finalized object.

    Instances are request scoped and must not be reused.
    """

    def __init__(
        self,
        bucket: BucketHandle,
        max_name_bytes: int = DEFAULT_MAX_NAME_BYTES,
        part_size: int = DEFAULT_UPLOAD_PART_SIZE_BYTES,
        abort_incomplete_uploads: bool = True,
        read_timeout: Optional[float] = None,
        write_timeout: Optional[float] = None,
    ):
        self.bucket = bucket
        self.max_name_bytes = max_name_bytes
        self.part_size = part_size
        self.abort_incomplete_uploads = abort_incomplete_uploads
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

        self.state = UploadState.AWAIT_NAME
        self._object: Optional[ObjectHandle] = None
        self._writer: Optional[ObjectWriter] = None

    def _advance(self, state: UploadState) -> None:
        logger.debug(f"upload state {self.state.value} -> {state.value}")
        self.state = state

    async def run(self, body: AsyncIterator[bytes], content_type: str) -> ObjectAttributes:
        """Consume the body and store the file part.

        Raises:
            UploadValidationError: The parts are missing or out of order.
            UploadInternalError: Framing, storage or timeout failure.
        """
        try:
            try:
                with anyio.fail_after(_deadline(self.read_timeout)):
                    await self._ingest(body, content_type)
            except TimeoutError as err:
                raise UploadInternalError(f"upload not received within {self.read_timeout}s", err) from err

            try:
                with anyio.fail_after(_deadline(self.write_timeout)):
                    attrs = await self._finalize()
            except TimeoutError as err:
                raise UploadInternalError(f"upload not finalized within {self.write_timeout}s", err) from err
        except BaseException:
            await self._abort_pending_write()
            raise

        self._advance(UploadState.DONE)
        return attrs

    async def _ingest(self, body: AsyncIterator[bytes], content_type: str) -> None:
        try:
            reader = MultipartReader(body, content_type)
        except MultipartFramingError as err:
            raise UploadInternalError("unable to open multipart reader", err) from err

        # HANDLE FILE RENAME --------------------------------------------------
        part = await self._next_part(reader, "first")
        if part is None or part.name != NAME_FIELD:
            raise UploadValidationError("expected name first")
        override_name = await self._read_name(part)
        self._advance(UploadState.AWAIT_FILE)

        # HANDLE FILE UPLOAD --------------------------------------------------
        part = await self._next_part(reader, "second")
        if part is None or part.name != FILE_FIELD:
            raise UploadValidationError("file required")

        object_key = override_name or _base_name(part.filename)
        if not object_key:
            raise UploadValidationError("filename required")
        if object_key in _DOT_SEGMENTS:
            raise UploadValidationError("invalid name")

        # WRITE TO BUCKET -----------------------------------------------------
        self._advance(UploadState.STREAMING)
        self._object = self.bucket.object(object_key)
        self._writer = self._object.new_writer(content_type=part.content_type, part_size=self.part_size)
        await self._copy(part, self._writer)

    async def _next_part(self, reader: MultipartReader, which: str) -> Optional[Part]:
        try:
            return await reader.next_part()
        except _READ_ERRORS as err:
            raise UploadInternalError(f"next part failure on {which} read", err) from err

    async def _read_name(self, part: Part) -> str:
        # the name part is a short string, never file content
        try:
            raw = await part.read(limit=self.max_name_bytes)
        except PartTooLarge as err:
            raise UploadValidationError("name too long") from err
        except _READ_ERRORS as err:
            raise UploadInternalError("reading name part failed", err) from err

        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as err:
            raise UploadValidationError("name must be valid UTF-8") from err

    async def _copy(self, part: Part, writer: ObjectWriter) -> None:
        try:
            async for chunk in part:
                await run_in_threadpool(writer.write, chunk)
        except _READ_ERRORS as err:
            raise UploadInternalError(f"reading file part for {self._object!r} failed", err) from err
        except _STORAGE_ERRORS as err:
            raise UploadInternalError(f"writing {self._object!r} failed", err) from err

    async def _finalize(self) -> ObjectAttributes:
        # attributes do not exist until the writer is closed
        try:
            await run_in_threadpool(self._writer.close)
        except _STORAGE_ERRORS as err:
            raise UploadInternalError(f"unable to close writer after writing {self._object!r}", err) from err

        try:
            attrs = await run_in_threadpool(self._object.attrs)
        except _STORAGE_ERRORS as err:
            raise UploadInternalError(f"cannot fetch attributes for {self._object!r}", err) from err

        logger.info(f"stored {self._object!r} ({attrs.size_bytes} bytes)")
        return attrs

    async def _abort_pending_write(self) -> None:
        writer = self._writer
        if writer is None or writer.closed:
            return
        if not self.abort_incomplete_uploads:
            logger.warning(f"leaving incomplete upload for {self._object!r} (upload_id={writer.upload_id})")
            return

        # must run even when the request is being cancelled
        with anyio.CancelScope(shield=True):
            try:
                await run_in_threadpool(writer.abort)
            except _STORAGE_ERRORS as err:
                logger.error(f"failed to abort incomplete upload for {self._object!r}: {err}")


@async_log_execution_time(expected=(UploadValidationError,))
async def stream_upload_to_bucket(
    body: AsyncIterator[bytes],
    content_type: str,
    bucket: BucketHandle,
    max_name_bytes: int = DEFAULT_MAX_NAME_BYTES,
    part_size: int = DEFAULT_UPLOAD_PART_SIZE_BYTES,
    abort_incomplete_uploads: bool = True,
    read_timeout: Optional[float] = None,
    write_timeout: Optional[float] = None,
) -> ObjectAttributes:
    """Stream a two-part multipart body into `bucket`.

    Args:
        body: The request body as an async iterator of byte chunks.
        content_type: The request's Content-Type header, boundary included.
        bucket: The shared bucket handle.
        max_name_bytes: Size limit of the ``name`` part.
        part_size: Multipart upload part size of the object writer.
        abort_incomplete_uploads: Abort the pending multipart upload on failure.
        read_timeout: Seconds allowed to read and copy the body (None or 0 = no limit).
        write_timeout: Seconds allowed to finalize the object (None or 0 = no limit).

    Returns:
        ObjectAttributes: The stored object's attributes, media link included.
    """
    upload = StreamingUpload(
        bucket,
        max_name_bytes=max_name_bytes,
        part_size=part_size,
        abort_incomplete_uploads=abort_incomplete_uploads,
        read_timeout=read_timeout,
        write_timeout=write_timeout,
    )
    return await upload.run(body, content_type)
