"""Command-line entry point: import a Thinkery export into OneNote."""

import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

import click

from thinkery_import.config import Settings
from thinkery_import.db.repository import Repository
from thinkery_import.importer.engine import (
    DEFAULT_NOTEBOOK_NAME,
    ImportEngine,
)
from thinkery_import.mapping.loader import ConfigurationError, load_mapping
from thinkery_import.onenote.client import OneNoteClient, PublishError, SimulatedOneNoteClient
from thinkery_import.routing.classifier import DEFAULT_TINY_THRESHOLD
from thinkery_import.thinkery.loader import InputParseError, load_notes

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

EXIT_OK = 0
EXIT_INVALID_INPUT = 1
EXIT_PUBLISH_FAILED = 2


def configure_logging(level: str, log_dir: Path | None) -> Path | None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_file = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"thinkery-import-{datetime.now():%Y%m%d-%H%M%S}.log"
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    return log_file


async def run_import(
    settings: Settings,
    notes_file: Path,
    mapping_file: Path,
    *,
    notebook_name: str,
    tiny_threshold: int,
    simulate: bool,
    continue_on_error: bool,
    concurrency: int,
    use_ledger: bool,
) -> int:
    # Both inputs are validated before anything is created remotely
    mapping = load_mapping(mapping_file)
    loaded = load_notes(notes_file)

    if simulate:
        client = SimulatedOneNoteClient()
        logger.info("Simulate mode: no requests will be sent to OneNote")
    else:
        if not settings.onenote_access_token:
            raise ConfigurationError(
                "ONENOTE_ACCESS_TOKEN must be set (or use --simulate)"
            )
        client = OneNoteClient(
            settings.onenote_access_token,
            base_url=settings.graph_base_url,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
        )

    ledger = None
    if use_ledger:
        ledger = Repository(settings.database_url)
        await ledger.init_db()

    engine = ImportEngine(
        client,
        notebook_name=notebook_name,
        tiny_threshold=tiny_threshold,
        concurrency=concurrency,
        continue_on_error=continue_on_error,
        ledger=ledger,
        simulated=simulate,
    )

    try:
        report = await engine.run(loaded.notes, mapping, rejected=len(loaded.rejected))
    except PublishError as e:
        logger.error("Import halted: %s", e)
        click.echo(engine.report.summary())
        return EXIT_PUBLISH_FAILED
    finally:
        await client.close()
        if ledger:
            await ledger.close()

    click.echo(report.summary())
    if ledger:
        click.echo(f"Ledger run id: {engine.run_id}")
    return EXIT_PUBLISH_FAILED if report.failures else EXIT_OK


@click.command()
@click.argument("notes_file", type=click.Path(path_type=Path))
@click.argument("mapping_file", type=click.Path(path_type=Path))
@click.option(
    "--notebook-name",
    default=DEFAULT_NOTEBOOK_NAME,
    show_default=True,
    help="Display name of the OneNote notebook to create",
)
@click.option(
    "--tiny-threshold",
    type=click.IntRange(min=0),
    default=DEFAULT_TINY_THRESHOLD,
    show_default=True,
    help="Notes shorter than this many characters are combined per section and tags",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Also write the log to a timestamped file in this directory",
)
@click.option(
    "--simulate",
    is_flag=True,
    default=False,
    help="Classify and render everything but send nothing to OneNote",
)
@click.option(
    "--continue-on-error",
    is_flag=True,
    default=False,
    help="Record failed pages and keep going instead of halting the import",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum page uploads in flight (default: PUBLISH_CONCURRENCY or 4)",
)
@click.option(
    "--no-ledger",
    is_flag=True,
    default=False,
    help="Do not record this run in the import ledger database",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
def main(
    notes_file,
    mapping_file,
    notebook_name,
    tiny_threshold,
    log_dir,
    simulate,
    continue_on_error,
    concurrency,
    no_ledger,
    verbose,
):
    """Import a Thinkery JSON export into a new OneNote notebook.

    NOTES_FILE is the Thinkery export; MAPPING_FILE assigns Thinkery tags to
    OneNote section groups and sections.
    """
    settings = Settings()
    log_file = configure_logging("debug" if verbose else settings.log_level, log_dir)
    if log_file:
        logger.info("Writing log to %s", log_file)

    try:
        exit_code = asyncio.run(
            run_import(
                settings,
                notes_file,
                mapping_file,
                notebook_name=notebook_name,
                tiny_threshold=tiny_threshold,
                simulate=simulate,
                continue_on_error=continue_on_error,
                concurrency=concurrency or settings.publish_concurrency,
                use_ledger=not no_ledger,
            )
        )
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(EXIT_INVALID_INPUT)
    except InputParseError as e:
        click.echo(f"Input error: {e}", err=True)
        sys.exit(EXIT_INVALID_INPUT)
    except KeyboardInterrupt:
        click.echo("Import interrupted; containers and pages created so far are kept.", err=True)
        sys.exit(130)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
