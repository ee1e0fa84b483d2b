# cli.py
import logging
import sys

import click
import uvicorn
from pydantic import ValidationError

from upload_api.config.settings import Settings, get_settings
from upload_api.logging_config import configure_logging

# Configure logging
logger = logging.getLogger(__name__)


def _load_settings() -> Settings:
    try:
        return get_settings()
    except ValidationError as e:
        click.echo(f"cannot parse config: {e}", err=True)
        sys.exit(2)


@click.group()
def cli():
    """CLI commands for the Upload API"""
    pass


@cli.command()
def show_config():
    """Show current configuration"""
    settings = _load_settings()

    print("Current Configuration:")
    for key, value in settings.get_environment_dict().items():
        print(f"  {key}: {value}")


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to API_HOST)")
@click.option("--port", type=int, default=None, help="Port (defaults to API_PORT)")
@click.option("--reload/--no-reload", default=False, help="Enable/disable auto-reload for development")
def serve(host, port, reload):
    """Run the API server until SIGINT/SIGTERM"""
    from upload_api.main import create_app, uvicorn_options

    settings = _load_settings()
    configure_logging(settings.log_level)

    server_kwargs = uvicorn_options(settings, host=host, port=port)
    if reload:
        # reload only works with an import string
        uvicorn.run("upload_api.main:create_app", factory=True, reload=True, **server_kwargs)
    else:
        uvicorn.run(create_app(settings), **server_kwargs)
    logger.info("shutdown completed")


if __name__ == "__main__":
    cli()
