"""Functions for reading object attributes from an S3 bucket--the "R" in CRUD."""

from typing import TYPE_CHECKING
from urllib.parse import quote

from botocore.exceptions import ClientError

from upload_api.schemas import ObjectAttributes

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client


def build_media_link(s3_client: "S3Client", bucket_name: str, object_key: str) -> str:
    """
    Build the path-style URL of an object.

    :param s3_client: The boto3 S3 client; its endpoint is the URL base.
    :param bucket_name: The name of the S3 bucket.
    :param object_key: path to the object in the S3 bucket.
    """
    endpoint = s3_client.meta.endpoint_url.rstrip("/")
    return f"{endpoint}/{quote(bucket_name, safe='')}/{quote(object_key, safe='')}"


def fetch_object_attributes(bucket_name: str, object_key: str, s3_client: "S3Client") -> ObjectAttributes:
    """
    Fetch the attributes of a finalized object.

    :param bucket_name: The name of the S3 bucket.
    :param object_key: path to the object in the S3 bucket.
    :param s3_client: The boto3 S3 client.

    :raises botocore.exceptions.ClientError: if the object does not exist.
    """
    response = s3_client.head_object(Bucket=bucket_name, Key=object_key)
    return ObjectAttributes(
        bucket=bucket_name,
        key=object_key,
        size_bytes=response["ContentLength"],
        etag=response.get("ETag"),
        content_type=response.get("ContentType"),
        last_modified=response.get("LastModified"),
        media_link=build_media_link(s3_client, bucket_name, object_key),
    )


def bucket_exists(bucket_name: str, s3_client: "S3Client") -> bool:
    """
    Check whether the bucket is reachable with the current credentials.

    :param bucket_name: The name of the S3 bucket.
    :param s3_client: The boto3 S3 client.
    """
    try:
        s3_client.head_bucket(Bucket=bucket_name)
    except ClientError as err:
        if err.response.get("Error", {}).get("Code") in ("404", "403", "NoSuchBucket"):
            return False
        raise
    return True
