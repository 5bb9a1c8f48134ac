"""Workers package for background job processing."""

from chat_backend.workers.backfill_worker import (
    process_backfill_job,
    process_backfill_job_sync,
    queue_backfill,
)

__all__ = [
    "process_backfill_job",
    "process_backfill_job_sync",
    "queue_backfill",
]
