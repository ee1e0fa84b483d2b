####################################
# --- Storage/response schemas --- #
####################################

from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class ObjectAttributes(BaseModel):
    """Attributes of an object once its write stream has been closed."""
    bucket: str = Field(description="The bucket holding the object.")
    key: str = Field(
        description="The key the object is stored under.",
        json_schema_extra={"example": "report.pdf"},
    )
    size_bytes: int = Field(description="The size of the object in bytes.", ge=0)
    etag: Optional[str] = Field(None, description="The entity tag assigned by S3.")
    content_type: Optional[str] = Field(None, description="The MIME type stored with the object.")
    last_modified: Optional[datetime] = Field(None, description="The last modified date of the object.")
    media_link: str = Field(description="URL of the stored object.")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "bucket": "uploads",
                "key": "report.pdf",
                "size_bytes": 512,
                "etag": "\"9b2cf535f27731c974343645a3985328\"",
                "content_type": "application/pdf",
                "last_modified": "2024-01-01T00:00:00Z",
                "media_link": "https://s3.amazonaws.com/uploads/report.pdf",
            }
        }
    )


class ComponentStatus(str, Enum):
    """Readiness of a single component."""
    READY = 'ready'
    UNAVAILABLE = 'unavailable'


class HealthResponse(BaseModel):
    """Response model for `GET /health`."""
    status: str = Field(description="'ok' when every component is ready, else 'degraded'.")
    bucket: str = Field(description="The bucket uploads are written to.")
    components: Dict[str, ComponentStatus]
    ready: bool

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "ok",
                "bucket": "uploads",
                "components": {"api": "ready", "storage": "ready"},
                "ready": True,
            }
        }
    )
