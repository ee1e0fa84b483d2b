import logging

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool

from upload_api.schemas import ComponentStatus, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Health check endpoint for monitoring API status and storage readiness.

    Storage errors are logged, never returned.
    """
    bucket = request.app.state.bucket

    components = {
        "api": ComponentStatus.READY,
        "storage": ComponentStatus.UNAVAILABLE,
    }

    try:
        if await run_in_threadpool(bucket.exists):
            components["storage"] = ComponentStatus.READY
        else:
            logger.warning(f"bucket {bucket.name} not found or not accessible")
    except (BotoCoreError, ClientError) as e:
        logger.error(f"storage health check failed: {str(e)}")

    ready = all(state == ComponentStatus.READY for state in components.values())
    return HealthResponse(
        status="ok" if ready else "degraded",
        bucket=bucket.name,
        components=components,
        ready=ready,
    )
