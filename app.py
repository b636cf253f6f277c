"""Batch command applying queued package metadata edits.

Usage:
    package-edits [--config PATH] [--dry-run] [--verbose]
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import asyncpg
import sentry_sdk
import typer

from models.edits import PipelineResult
from services.blob_storage_service import BlobStore, provide_blob_storage_service
from services.pipeline_service import provide_pipeline_service
from utilities.config import Config, SentryConfig, load_config
from utilities.errors import ConfigurationError

log = logging.getLogger(__name__)

app = typer.Typer(help="Apply queued package metadata edits to published packages.", add_completion=False)

EXIT_EDIT_FAILURES = 1
EXIT_CONFIG_ERROR = 2


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    # boto3 is chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)


def init_sentry(config: SentryConfig) -> bool:
    """Initialize Sentry when a DSN is configured.

    Returns:
        Whether Sentry was initialized.
    """
    if not config.dsn:
        log.debug("Sentry DSN not configured, error reporting disabled.")
        return False
    sentry_sdk.init(
        dsn=config.dsn,
        environment=config.environment,
        traces_sample_rate=config.traces_sample_rate,
    )
    return True


async def run_pipeline(config: Config, blob_store: BlobStore | None = None) -> PipelineResult:
    """Run the pipeline once against the configured stores.

    Args:
        config: Loaded configuration.
        blob_store: Store override; the S3 store from `config.storage` is used if omitted.

    Returns:
        Summary of the run.
    """
    pool = await asyncpg.create_pool(
        dsn=config.database.dsn,
        min_size=config.database.min_pool_size,
        max_size=config.database.max_pool_size,
    )
    try:
        store = blob_store or provide_blob_storage_service(config.storage)
        service = provide_pipeline_service(pool, store, config.pipeline)
        return await service.run()
    finally:
        await pool.close()


@app.command()
def handle_queued_edits(
    config_path: Optional[Path] = typer.Option(  # noqa: UP007
        None, "--config", "-c", help="Configuration file. Defaults to configs/{dev,prod}.toml."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log what would be done without changing anything."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Back up and rewrite every package with a pending metadata edit."""
    configure_logging(verbose)

    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        log.error("[!] %s", e.message)
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from e

    if dry_run:
        config.pipeline.dry_run = True
    init_sentry(config.sentry)

    result = asyncio.run(run_pipeline(config))
    if not result.ok:
        log.error("[!] %d edit(s) failed: %s", len(result.failed), ", ".join(map(str, result.failed)))
        raise typer.Exit(code=EXIT_EDIT_FAILURES)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
