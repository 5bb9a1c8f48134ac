"""Service for backfilling embeddings on messages that don't have one."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from chat_backend.core.config import Settings, get_settings
from chat_backend.core.exceptions import StorageError, ValidationError
from chat_backend.repositories.message_repo import MessageRepository, PendingMessage
from chat_backend.services.embedding_client import EmbeddingClient

logger = logging.getLogger(__name__)


class BackfillValidationError(Exception):
    """The provider's output doesn't line up with the rows it was asked about."""

    pass


@dataclass(frozen=True)
class BackfillRowError:
    """A row whose embedding was generated but could not be saved."""

    row_id: uuid.UUID
    message: str

    def __str__(self) -> str:
        return f"Message {self.row_id}: {self.message}"


@dataclass
class BackfillReport:
    """Outcome of one backfill run.

    ``total_considered`` counts the rows sent for embedding; rows with
    blank content are excluded from it and counted in ``skipped_empty``.
    ``not_attempted`` is only filled in when a run is cancelled while
    saving vectors; it then holds every row left without a saved vector.
    """

    processed: int = 0
    errors: list[BackfillRowError] = field(default_factory=list)
    total_considered: int = 0
    selected: int = 0
    skipped_empty: int = 0
    not_attempted: list[uuid.UUID] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def summary(self) -> str:
        """Human-readable outcome, as returned to API callers."""
        if self.selected == 0:
            return "No messages found without embeddings"
        if self.total_considered == 0:
            return "No messages with valid content to process"
        return "Backfill completed"

    def to_dict(self) -> dict[str, Any]:
        """Caller-facing representation of the report."""
        result: dict[str, Any] = {
            "message": self.summary,
            "processed": self.processed,
            "total": self.total_considered,
            "errors": self.error_count,
        }
        if self.errors:
            result["errorDetails"] = [str(error) for error in self.errors]
        return result


@dataclass(frozen=True)
class BackfillStats:
    """Read-only snapshot of embedding coverage."""

    without_embeddings: int
    total: int

    @property
    def with_embeddings(self) -> int:
        return self.total - self.without_embeddings

    def to_dict(self) -> dict[str, int]:
        return {
            "withoutEmbeddings": self.without_embeddings,
            "total": self.total,
            "withEmbeddings": self.with_embeddings,
        }


class BackfillService:
    """Finds messages without an embedding and fills them in.

    Handles the workflow of:
    1. Selecting pending messages, oldest first
    2. Dropping messages with blank content
    3. Embedding all remaining content in one chunked batch
    4. Saving each vector with its own single-row update
    5. Reporting what was saved and what failed

    A provider failure aborts the run before anything is written; the next
    run simply selects the same rows again. Once vectors are in hand, a
    failed write only affects its own row.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        settings: Settings | None = None,
        embedding_client: EmbeddingClient | None = None,
        repo: MessageRepository | None = None,
    ) -> None:
        self.db_session = db_session
        self.settings = settings or get_settings()
        self.repo = repo or MessageRepository(db_session)
        self._embedding_client = embedding_client
        self.last_report: BackfillReport | None = None

    @property
    def embedding_client(self) -> EmbeddingClient:
        """Get or create embedding client (lazy initialization)."""
        if self._embedding_client is None:
            self._embedding_client = EmbeddingClient(settings=self.settings)
        return self._embedding_client

    async def close(self) -> None:
        """Release the provider client if one was created."""
        if self._embedding_client is not None:
            await self._embedding_client.close()

    async def run_backfill(
        self,
        batch_size: int | None = None,
        limit: int | None = None,
    ) -> BackfillReport:
        """Embed and save every pending message (up to ``limit``).

        Args:
            batch_size: Texts per provider call. Defaults from settings and
                is capped at the configured maximum.
            limit: Maximum number of pending messages to consider

        Returns:
            BackfillReport for this run

        Raises:
            ValidationError: If batch_size or limit is below 1
            StorageError: If pending messages can't be selected
            ProviderError: If embedding generation fails
            BackfillValidationError: If the provider returns the wrong
                number of vectors
        """
        batch_size = self._resolve_batch_size(batch_size)
        if limit is not None and limit < 1:
            raise ValidationError(detail=f"limit must be at least 1, got {limit}")

        logger.info(
            "Backfill started",
            extra={"batch_size": batch_size, "limit": limit},
        )

        pending = await self.repo.select_pending_embeddings(limit=limit)
        eligible = [row for row in pending if row.content and row.content.strip()]

        report = BackfillReport(
            selected=len(pending),
            skipped_empty=len(pending) - len(eligible),
        )
        self.last_report = report

        if report.skipped_empty:
            logger.info(f"Skipping {report.skipped_empty} messages with blank content")

        if not eligible:
            logger.info(
                "Backfill found nothing to embed",
                extra={"selected": report.selected},
            )
            return report

        report.total_considered = len(eligible)

        vectors = await self.embedding_client.embed_batch(
            [row.content for row in eligible],
            batch_size=batch_size,
        )
        if len(vectors) != len(eligible):
            raise BackfillValidationError(
                f"Mismatch between messages and embeddings count: "
                f"{len(eligible)} messages, {len(vectors)} embeddings"
            )

        await self._save_vectors(eligible, vectors, report)

        logger.info(
            "Backfill completed",
            extra={
                "processed": report.processed,
                "errors": report.error_count,
                "total_considered": report.total_considered,
                "skipped_empty": report.skipped_empty,
            },
        )
        return report

    async def get_stats(self) -> BackfillStats:
        """Count pending and total messages."""
        without_embeddings = await self.repo.count_pending()
        total = await self.repo.count_total()
        return BackfillStats(without_embeddings=without_embeddings, total=total)

    async def _save_vectors(
        self,
        rows: list[PendingMessage],
        vectors: list[list[float]],
        report: BackfillReport,
    ) -> None:
        """Write each vector with its own update, isolating failures per row.

        The updates share the caller's transaction, which is rolled back if
        the run is cancelled. On cancellation every row that did not fail
        is therefore recorded in ``report.not_attempted`` and ``processed``
        is reset to zero before the cancellation propagates.
        """
        try:
            for row, vector in zip(rows, vectors, strict=True):
                try:
                    updated = await self.repo.update_embedding(row.id, vector)
                except StorageError as e:
                    report.errors.append(BackfillRowError(row_id=row.id, message=e.detail))
                    logger.warning(
                        f"Failed to save embedding for message {row.id}: {e.detail}",
                        extra={"message_id": str(row.id)},
                    )
                else:
                    if updated:
                        report.processed += 1
                    else:
                        report.errors.append(
                            BackfillRowError(row_id=row.id, message="Message not found")
                        )
                        logger.warning(
                            f"Message {row.id} disappeared before its embedding was saved",
                            extra={"message_id": str(row.id)},
                        )
        except asyncio.CancelledError:
            failed = {error.row_id for error in report.errors}
            report.not_attempted = [row.id for row in rows if row.id not in failed]
            report.processed = 0
            logger.warning(
                "Backfill cancelled while saving embeddings",
                extra={
                    "processed": report.processed,
                    "errors": report.error_count,
                    "not_attempted": [str(row_id) for row_id in report.not_attempted],
                },
            )
            raise

    def _resolve_batch_size(self, batch_size: int | None) -> int:
        if batch_size is None:
            return self.settings.backfill_default_batch_size
        if batch_size < 1:
            raise ValidationError(detail=f"batch_size must be at least 1, got {batch_size}")
        return min(batch_size, self.settings.backfill_max_batch_size)
