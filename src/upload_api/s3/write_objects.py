"""Functions for writing objects to an S3 bucket--the "C" and "U" in CRUD."""

import logging
from typing import TYPE_CHECKING, List, Optional

from upload_api.config.settings import DEFAULT_UPLOAD_PART_SIZE_BYTES, MIN_UPLOAD_PART_SIZE_BYTES

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client
    from mypy_boto3_s3.type_defs import CompletedPartTypeDef

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class ObjectWriter:
    """
    Incremental writer for a single S3 object.

    Bytes are buffered until a full part is available, then sent with
    `upload_part`; the first full part starts a multipart upload. Nothing is
    visible in the bucket until :meth:`close` completes the upload, so a writer
    that is never closed leaves at most a pending multipart upload behind.
    Objects smaller than one part skip the multipart API and are written with
    a single `put_object` on close.

    Memory use is bounded by `part_size`, independent of the object size.

    :param bucket_name: The name of the S3 bucket.
    :param object_key: path to the object in the S3 bucket.
    :param s3_client: The boto3 S3 client.
    :param content_type: The MIME type of the object, e.g. "text/plain" for a text file.
    :param part_size: Size in bytes of every part but the last.
    """

    def __init__(
        self,
        bucket_name: str,
        object_key: str,
        s3_client: "S3Client",
        content_type: Optional[str] = None,
        part_size: int = DEFAULT_UPLOAD_PART_SIZE_BYTES,
    ):
        if part_size < MIN_UPLOAD_PART_SIZE_BYTES:
            raise ValueError(f"part_size must be at least {MIN_UPLOAD_PART_SIZE_BYTES} bytes")

        self.bucket_name = bucket_name
        self.object_key = object_key
        self.content_type = content_type or DEFAULT_CONTENT_TYPE
        self.part_size = part_size
        self.bytes_written = 0

        self._s3_client = s3_client
        self._buffer = bytearray()
        self._upload_id: Optional[str] = None
        self._parts: List["CompletedPartTypeDef"] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def upload_id(self) -> Optional[str]:
        """Id of the pending multipart upload, if one was started."""
        return self._upload_id

    def write(self, data: bytes) -> int:
        """Append bytes to the object, uploading every part that fills up."""
        if self._closed:
            raise ValueError(f"write to closed ObjectWriter for {self.object_key}")

        self._buffer += data
        self.bytes_written += len(data)
        while len(self._buffer) >= self.part_size:
            part = bytes(self._buffer[:self.part_size])
            del self._buffer[:self.part_size]
            self._upload_part(part)
        return len(data)

    def close(self) -> None:
        """Flush the buffered tail and finalize the object.

        Object attributes only exist once this returns successfully.
        """
        if self._closed:
            return

        if self._upload_id is None:
            self._s3_client.put_object(
                Bucket=self.bucket_name,
                Key=self.object_key,
                Body=bytes(self._buffer),
                ContentType=self.content_type,
            )
        else:
            if self._buffer:
                self._upload_part(bytes(self._buffer))
            self._s3_client.complete_multipart_upload(
                Bucket=self.bucket_name,
                Key=self.object_key,
                UploadId=self._upload_id,
                MultipartUpload={"Parts": self._parts},
            )

        self._buffer = bytearray()
        self._closed = True
        logger.debug(
            f"Finalized s3://{self.bucket_name}/{self.object_key} "
            f"({self.bytes_written} bytes, {len(self._parts)} parts)"
        )

    def abort(self) -> None:
        """Discard the pending multipart upload, if any.

        Does nothing when no multipart upload was started or the object was
        already finalized.
        """
        self._buffer = bytearray()
        if self._upload_id is None or self._closed:
            self._closed = True
            return

        upload_id = self._upload_id
        self._closed = True
        self._s3_client.abort_multipart_upload(
            Bucket=self.bucket_name,
            Key=self.object_key,
            UploadId=upload_id,
        )
        logger.info(f"Aborted multipart upload {upload_id} for s3://{self.bucket_name}/{self.object_key}")

    def _upload_part(self, body: bytes) -> None:
        if self._upload_id is None:
            response = self._s3_client.create_multipart_upload(
                Bucket=self.bucket_name,
                Key=self.object_key,
                ContentType=self.content_type,
            )
            self._upload_id = response["UploadId"]
            logger.debug(f"Started multipart upload {self._upload_id} for s3://{self.bucket_name}/{self.object_key}")

        part_number = len(self._parts) + 1
        response = self._s3_client.upload_part(
            Bucket=self.bucket_name,
            Key=self.object_key,
            UploadId=self._upload_id,
            PartNumber=part_number,
            Body=body,
        )
        self._parts.append({"ETag": response["ETag"], "PartNumber": part_number})
