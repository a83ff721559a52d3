# SPDX-License-Identifier: MIT
"""Command-line interface for the sync cache service."""

import asyncio
import functools
import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import click
from aiohttp import web

from . import __version__
from .cache import CacheEngine
from .config import get_config_manager
from .enums import SyncStatus
from .logging_config import get_detail_logger, get_status_logger, setup_logging
from .server import SyncCacheServer, SyncCooldown
from .storage import create_storage


F = TypeVar("F", bound=Callable[..., Any])


def handle_cli_errors(func: F) -> F:
    """Decorator logging unexpected command errors and exiting with status 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except Exception as e:
            get_detail_logger().exception(f"Error in {func.__name__}: {e}")
            get_status_logger().error(f"Error: {e}")
            sys.exit(1)

    return wrapper  # type: ignore


def print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print version and exit if requested."""
    if value:
        click.echo(f"sync-cache version {__version__}")
        ctx.exit(0)


@click.group()
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version information and exit",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for the log file (default: .sync-cache/)",
)
def main(log_dir: Path | None) -> None:
    """Sync Cache - Serve incremental updates from a versioned object store."""
    setup_logging(log_dir)
    get_detail_logger().debug("CLI initialized")


@main.command()
@click.option("--host", default=None, help="Interface to listen on")
@click.option("--port", type=int, default=None, help="Port to listen on")
@handle_cli_errors
def serve(host: str | None, port: int | None) -> None:
    """Run the HTTP server."""
    config = get_config_manager().load_config()
    server_config = config.server
    status_logger = get_status_logger()

    storage = create_storage(config.storage)
    server = SyncCacheServer(
        storage,
        password=server_config.password,
        sync_interval_seconds=server_config.sync_interval_seconds,
        cooldown=SyncCooldown(server_config.sync_cooldown_seconds),
    )

    host = host or server_config.host
    port = port or server_config.port
    status_logger.info(f"Starting sync cache on {host}:{port}")
    web.run_app(server.create_app(), host=host, port=port, print=None)


@main.command()
@click.option(
    "--format",
    "output_format",
    default="text",
    type=click.Choice(["text", "json"]),
    help="Output format",
)
@handle_cli_errors
def sync(output_format: str) -> None:
    """Synchronize once against the configured storage and print the versions."""
    config = get_config_manager().load_config()
    engine = CacheEngine(create_storage(config.storage))

    asyncio.run(engine.synchronize())

    versions = engine.snapshot.versions
    if output_format == "json":
        click.echo(
            json.dumps(
                {"status": engine.last_sync_status.value, **versions.model_dump()},
                indent=2,
            )
        )
    else:
        click.echo(f"status: {engine.last_sync_status.value}")
        for name, value in versions.model_dump().items():
            click.echo(f"{name}: {value}")

    if engine.last_sync_status != SyncStatus.SUCCESS:
        sys.exit(1)


@main.command()
@handle_cli_errors
def config() -> None:
    """Show the complete current configuration."""
    click.echo(get_config_manager().show_config())


if __name__ == "__main__":
    main()
