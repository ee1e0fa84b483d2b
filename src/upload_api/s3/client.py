"""Construction of the process-wide S3 client."""
import logging
from typing import TYPE_CHECKING

import boto3
from botocore.config import Config

from upload_api.config.settings import Settings

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)


def create_s3_client(settings: Settings) -> "S3Client":
    """Create the S3 client shared by every request.

    boto3 clients are thread-safe, so a single instance is used from all the
    threadpool workers that perform storage calls.
    """
    client_kwargs = {
        'region_name': settings.aws_region,
        'config': Config(
            retries={"max_attempts": 3, "mode": "standard"},
            connect_timeout=10,
            read_timeout=60,
            signature_version="s3v4",
        ),
    }

    if settings.aws_access_key_id:
        client_kwargs['aws_access_key_id'] = settings.aws_access_key_id
    if settings.aws_secret_access_key:
        client_kwargs['aws_secret_access_key'] = settings.aws_secret_access_key
    if settings.aws_endpoint_url:
        client_kwargs['endpoint_url'] = settings.aws_endpoint_url

    try:
        client = boto3.client('s3', **client_kwargs)
    except Exception as e:
        logger.error(f"Error creating s3 client: {str(e)}")
        raise

    logger.info(f"Created s3 client (region={settings.aws_region}, endpoint={client.meta.endpoint_url})")
    return client
