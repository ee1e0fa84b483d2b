"""Bucket and object handles over the shared S3 client.

A :class:`BucketHandle` is created once at startup and shared by all requests.
It holds no mutable state; each request gets its own :class:`ObjectHandle`
and :class:`~upload_api.s3.write_objects.ObjectWriter` from it.
"""

from typing import TYPE_CHECKING, Optional

from upload_api.config.settings import DEFAULT_UPLOAD_PART_SIZE_BYTES
from upload_api.s3.read_objects import bucket_exists, fetch_object_attributes
from upload_api.s3.write_objects import ObjectWriter
from upload_api.schemas import ObjectAttributes

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client


class ObjectHandle:
    """Reference to an object key; the object may not exist yet."""

    def __init__(self, bucket_name: str, key: str, s3_client: "S3Client"):
        self.bucket_name = bucket_name
        self.key = key
        self._s3_client = s3_client

    def new_writer(
        self,
        content_type: Optional[str] = None,
        part_size: int = DEFAULT_UPLOAD_PART_SIZE_BYTES,
    ) -> ObjectWriter:
        """Open a write stream that creates or overwrites the object on close."""
        return ObjectWriter(
            bucket_name=self.bucket_name,
            object_key=self.key,
            s3_client=self._s3_client,
            content_type=content_type,
            part_size=part_size,
        )

    def attrs(self) -> ObjectAttributes:
        """Fetch the attributes of the finalized object."""
        return fetch_object_attributes(self.bucket_name, self.key, self._s3_client)

    def __repr__(self) -> str:
        return f"ObjectHandle(s3://{self.bucket_name}/{self.key})"


class BucketHandle:
    """Named bucket on the shared S3 client."""

    def __init__(self, bucket_name: str, s3_client: "S3Client"):
        self.name = bucket_name
        self.s3_client = s3_client

    def object(self, key: str) -> ObjectHandle:
        return ObjectHandle(self.name, key, self.s3_client)

    def exists(self) -> bool:
        return bucket_exists(self.name, self.s3_client)
