from contextlib import asynccontextmanager
from textwrap import dedent
import logging
from fastapi import FastAPI
from fastapi.routing import APIRoute

from upload_api.errors import (
    UploadInternalError,
    UploadValidationError,
    handle_broad_exceptions,
    handle_upload_internal_error,
    handle_upload_validation_error,
)
from upload_api.routers.upload import router as upload_router
from upload_api.routers.health import router as health_router
from upload_api.config.settings import Settings
from upload_api.logging_config import configure_logging
from upload_api.s3.bucket import BucketHandle
from upload_api.s3.client import create_s3_client

# Set up logging
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the shared storage handle on startup, close it once on shutdown.

    uvicorn runs the shutdown half only after it stopped accepting connections
    and in-flight requests finished or the grace period ran out.
    """
    settings: Settings = app.state.settings
    s3_client = create_s3_client(settings)
    app.state.bucket = BucketHandle(settings.s3_bucket_name, s3_client)
    logger.info(f"storage ready, uploading to bucket {settings.s3_bucket_name}")
    try:
        yield
    finally:
        logger.info("closing storage client")
        try:
            s3_client.close()
        except Exception as e:
            logger.error(f"failure closing storage client: {str(e)}")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application."""
    settings = settings or Settings()
    logger.info(f"config loaded: {settings.get_environment_dict()}")

    app = FastAPI(
        title="Upload API",
        summary="Stream multipart uploads into an S3 bucket",
        version="v1",  # a fancier version would read the semver from pkg metadata
        description=dedent(
            """\
        Upload a file with `POST /upload` as `multipart/form-data`:

        | Part | Notes |
        | --- | --- |
        | `name` | Optional override of the stored filename; send it first, empty to keep the file's own name |
        | `myfile` | The file; streamed to the bucket while it is received |
        """
        ),
        docs_url="/",  # its easier to find the docs when they live on the base url
        generate_unique_id_function=custom_generate_unique_id,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.include_router(upload_router, tags=["upload"])
    app.include_router(health_router, tags=["health"])

    app.add_exception_handler(
        exc_class_or_status_code=UploadValidationError,
        handler=handle_upload_validation_error,
    )
    app.add_exception_handler(
        exc_class_or_status_code=UploadInternalError,
        handler=handle_upload_internal_error,
    )
    app.middleware("http")(handle_broad_exceptions)

    return app


def uvicorn_options(settings: Settings, host: str | None = None, port: int | None = None) -> dict:
    """Keyword arguments for `uvicorn.run` derived from the settings.

    uvicorn handles the shutdown signals: it stops accepting connections,
    waits up to `timeout_graceful_shutdown` for in-flight uploads, then closes
    them and runs the lifespan shutdown that closes the storage client.
    """
    return dict(
        host=host or settings.api_host,
        port=port or settings.api_port,
        timeout_keep_alive=int(settings.idle_timeout),
        timeout_graceful_shutdown=int(settings.shutdown_timeout),
        log_level=settings.log_level.lower(),
        log_config=None,
    )


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    configure_logging(app.state.settings.log_level)
    uvicorn.run(app, **uvicorn_options(app.state.settings))
