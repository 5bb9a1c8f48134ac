"""Background worker for running embedding backfills off the request path."""

import asyncio
import logging
from typing import Any

from redis import Redis
from rq import Queue, Retry, get_current_job

from chat_backend.core.config import Settings, get_settings
from chat_backend.core.database import close_database, init_database, session_scope
from chat_backend.core.logging import job_id_var
from chat_backend.services.backfill_service import BackfillService

logger = logging.getLogger(__name__)

# A failed run leaves every pending row pending, so re-running the whole job is safe
JOB_RETRY = Retry(max=3, interval=[10, 30, 60])


def get_redis_connection(settings: Settings | None = None) -> Redis:  # type: ignore[type-arg]
    """Get Redis connection."""
    settings = settings or get_settings()
    return Redis.from_url(str(settings.redis_url))


def get_backfill_queue(settings: Settings | None = None) -> Queue:
    """Get the backfill job queue.

    Args:
        settings: Application settings

    Returns:
        RQ Queue instance
    """
    settings = settings or get_settings()
    conn = get_redis_connection(settings)
    return Queue(settings.backfill_queue_name, connection=conn)


async def process_backfill_job(
    batch_size: int | None = None,
    limit: int | None = None,
) -> dict[str, Any]:
    """Run one backfill and commit what it saved.

    Args:
        batch_size: Texts per provider call
        limit: Maximum number of pending messages to consider

    Returns:
        The caller-facing backfill report

    Raises:
        ProviderError: If embedding generation fails (the job is retried)
        StorageError: If pending messages can't be selected
    """
    job = get_current_job()
    token = job_id_var.set(job.id if job else None)
    logger.info(f"Starting backfill job (batch_size={batch_size}, limit={limit})")

    init_database()
    try:
        async with session_scope() as db_session:
            service = BackfillService(db_session)
            try:
                report = await service.run_backfill(batch_size=batch_size, limit=limit)
            finally:
                await service.close()

        logger.info(
            f"Backfill job completed: {report.processed}/{report.total_considered} "
            f"saved, {report.error_count} errors"
        )
        return report.to_dict()

    except Exception:
        logger.exception("Backfill job failed")
        raise

    finally:
        await close_database()
        job_id_var.reset(token)


def process_backfill_job_sync(
    batch_size: int | None = None,
    limit: int | None = None,
) -> dict[str, Any]:
    """Synchronous wrapper for process_backfill_job.

    RQ doesn't natively support async functions, so this wrapper
    runs the async function in an event loop.
    """
    return asyncio.run(process_backfill_job(batch_size=batch_size, limit=limit))


def queue_backfill(
    batch_size: int | None = None,
    limit: int | None = None,
    settings: Settings | None = None,
) -> str:
    """Queue a backfill job for processing.

    Args:
        batch_size: Texts per provider call
        limit: Maximum number of pending messages to consider
        settings: Application settings

    Returns:
        RQ job ID
    """
    queue = get_backfill_queue(settings)

    rq_job = queue.enqueue(
        "chat_backend.workers.backfill_worker.process_backfill_job_sync",
        batch_size=batch_size,
        limit=limit,
        job_timeout="15m",
        result_ttl=86400,
        failure_ttl=86400,
        retry=JOB_RETRY,
    )

    logger.info(f"Queued backfill job {rq_job.id} (batch_size={batch_size}, limit={limit})")

    return str(rq_job.id)
