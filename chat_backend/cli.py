"""Operator CLI for the embedding backfill."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from chat_backend.core.database import close_database, init_database, session_scope
from chat_backend.core.exceptions import AppError
from chat_backend.services.backfill_service import (
    BackfillReport,
    BackfillService,
    BackfillStats,
    BackfillValidationError,
)
from chat_backend.services.embedding_client import ProviderError


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )
    # Quiet noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


async def _run_backfill(batch_size: int | None, limit: int | None) -> BackfillReport:
    init_database()
    try:
        async with session_scope() as db:
            service = BackfillService(db)
            try:
                return await service.run_backfill(batch_size=batch_size, limit=limit)
            finally:
                await service.close()
    finally:
        await close_database()


async def _get_stats() -> BackfillStats:
    init_database()
    try:
        async with session_scope() as db:
            return await BackfillService(db).get_stats()
    finally:
        await close_database()


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output")
def cli(verbose: bool) -> None:
    """Chat backend maintenance commands."""
    _setup_logging(verbose)


@cli.group("backfill")
def backfill_group() -> None:
    """Generate embeddings for messages that don't have one."""
    pass


@backfill_group.command("run")
@click.option("--batch-size", type=click.IntRange(min=1), default=None, help="Texts per provider call")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Max pending messages to consider")
def backfill_run(batch_size: int | None, limit: int | None) -> None:
    """Run a backfill in this process."""
    try:
        report = asyncio.run(_run_backfill(batch_size, limit))
    except ProviderError as e:
        click.echo(f"Embedding provider failed, nothing was saved: {e}", err=True)
        sys.exit(1)
    except BackfillValidationError as e:
        click.echo(f"Embedding mismatch, nothing was saved: {e}", err=True)
        sys.exit(1)
    except AppError as e:
        click.echo(f"{e.title}: {e.detail}", err=True)
        sys.exit(1)

    click.echo(report.summary)
    click.echo(f"  selected:       {report.selected}")
    click.echo(f"  skipped empty:  {report.skipped_empty}")
    click.echo(f"  considered:     {report.total_considered}")
    click.echo(f"  processed:      {report.processed}")
    click.echo(f"  errors:         {report.error_count}")
    for error in report.errors:
        click.echo(f"    {error}")

    if report.errors:
        sys.exit(2)


@backfill_group.command("stats")
def backfill_stats() -> None:
    """Show how many messages still need an embedding."""
    try:
        stats = asyncio.run(_get_stats())
    except AppError as e:
        click.echo(f"{e.title}: {e.detail}", err=True)
        sys.exit(1)

    click.echo(f"total:               {stats.total}")
    click.echo(f"with embeddings:     {stats.with_embeddings}")
    click.echo(f"without embeddings:  {stats.without_embeddings}")


@backfill_group.command("enqueue")
@click.option("--batch-size", type=click.IntRange(min=1), default=None, help="Texts per provider call")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Max pending messages to consider")
def backfill_enqueue(batch_size: int | None, limit: int | None) -> None:
    """Queue a backfill for the RQ worker."""
    from chat_backend.workers.backfill_worker import queue_backfill

    job_id = queue_backfill(batch_size=batch_size, limit=limit)
    click.echo(f"Queued backfill job {job_id}")


if __name__ == "__main__":
    cli()
