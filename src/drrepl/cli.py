# src/drrepl/cli.py
"""Command-line interface for the drrepl tool."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
from dotenv import load_dotenv
from rich.logging import RichHandler

from drrepl.config import AppConfig, Config
from drrepl.exceptions import DrReplError

logger: logging.Logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    """Configure rich-based logging for the application."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # Silence noisy loggers
    for logger_name in ["aiobotocore", "botocore", "urllib3"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


async def main_async(config: Config) -> None:
    """
    Asynchronously execute the replication pipeline.

    Args:
        config (Config): The application configuration.
    """
    # Lazily import to keep CLI startup fast
    from drrepl.pipeline import ReplicationPipeline, ReplicationSummary

    pipeline: ReplicationPipeline = ReplicationPipeline(config)
    summary: ReplicationSummary = await pipeline.run()
    logger.info(summary.report())


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True, resolve_path=True),
    required=True,
    help="Working directory containing object_listing.txt.",
)
@click.option(
    "--input-file",
    type=click.Path(file_okay=True, dir_okay=False, resolve_path=True),
    default=None,
    help="Manifest file to read instead of DATA_DIR/object_listing.txt.",
)
@click.option(
    "--skip",
    "-s",
    type=click.IntRange(min=0),
    default=0,
    help="Number of manifest entries to skip, to resume a previous run.",
    show_default=True,
)
@click.option(
    "--dry-run",
    "--fake",
    "dry_run",
    is_flag=True,
    default=False,
    help="Log what would be copied or deleted without touching the target.",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=100,
    help="Number of concurrent replication workers.",
    show_default=True,
)
@click.option(
    "--queue-size",
    type=click.IntRange(min=1),
    default=256,
    help="Maximum number of manifest entries buffered ahead of the workers.",
    show_default=True,
)
@click.option(
    "--insecure",
    is_flag=True,
    default=False,
    help="Disable TLS certificate verification.",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug logging (same as --log-level DEBUG).",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set the logging level.",
    show_default=True,
)
def cli(**kwargs: Any) -> None:
    """
    Replicate object versions listed in a manifest to a target bucket.

    Each line of the manifest reads `bucket,object,versionID[,deleteMarker]`.
    Object versions are read from the source endpoint and written to the
    target bucket; delete markers are replicated as a delete of the same
    version on the target.

    Endpoints, credentials and buckets must be set via environment
    variables (DRREPL_SOURCE_* and DRREPL_TARGET_*), optionally from a
    .env file.
    """
    load_dotenv()
    setup_logging("DEBUG" if kwargs["debug"] else kwargs["log_level"])

    input_file: Optional[str] = kwargs["input_file"]
    try:
        app_config: AppConfig = AppConfig(
            data_dir=Path(kwargs["data_dir"]),
            input_file=Path(input_file) if input_file else None,
            skip=kwargs["skip"],
            dry_run=kwargs["dry_run"],
            concurrency=kwargs["concurrency"],
            queue_size=kwargs["queue_size"],
            insecure=kwargs["insecure"],
        )
        config: Config = Config(app=app_config)

        asyncio.run(main_async(config))
    except DrReplError as e:
        logger.critical(f"A critical application error occurred: {e}")
        sys.exit(1)
    except Exception:
        logger.critical(
            "An unexpected error caused the application to fail:", exc_info=True
        )
        sys.exit(1)


if __name__ == "__main__":
    cli()
