"""Repository for message operations."""

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chat_backend.core.exceptions import StorageError
from chat_backend.models.db.message import Message


@dataclass(frozen=True)
class PendingMessage:
    """The columns the backfill needs from a message without an embedding."""

    id: uuid.UUID
    content: str
    created_at: datetime


class MessageRepository:
    """Repository for message database operations.

    Every SQLAlchemy failure is re-raised as ``StorageError``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, message: Message) -> Message:
        """Insert a new message, with or without an embedding.

        Args:
            message: The message to create

        Returns:
            The created message with server defaults loaded
        """
        try:
            self.session.add(message)
            await self.session.flush()
            await self.session.refresh(message)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create message: {e}", operation="insert") from e
        return message

    async def get_by_id(self, message_id: uuid.UUID) -> Message | None:
        """Get a message by ID."""
        try:
            result = await self.session.execute(
                select(Message).where(Message.id == message_id)
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load message: {e}", operation="select") from e
        return result.scalar_one_or_none()

    async def list_messages(
        self,
        conversation_id: uuid.UUID | None = None,
        author_id: uuid.UUID | None = None,
    ) -> list[Message]:
        """List messages, newest first, optionally filtered.

        Args:
            conversation_id: Only messages in this conversation
            author_id: Only messages written by this user

        Returns:
            Matching messages ordered by created_at descending
        """
        query = select(Message)
        if conversation_id is not None:
            query = query.where(Message.conversation_id == conversation_id)
        if author_id is not None:
            query = query.where(Message.author_id == author_id)
        query = query.order_by(Message.created_at.desc())

        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list messages: {e}", operation="select") from e
        return list(result.scalars().all())

    async def delete(self, message_id: uuid.UUID) -> bool:
        """Delete a message.

        Returns:
            True if a row was deleted, False if not found
        """
        try:
            cursor_result = await self.session.execute(
                delete(Message).where(Message.id == message_id)
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete message: {e}", operation="delete") from e
        rowcount = getattr(cursor_result, "rowcount", 0)
        return bool(rowcount)

    async def select_pending_embeddings(
        self, limit: int | None = None
    ) -> list[PendingMessage]:
        """Get messages that don't have an embedding yet.

        Args:
            limit: Maximum number of rows to return

        Returns:
            Pending messages, oldest first
        """
        query = (
            select(Message.id, Message.content, Message.created_at)
            .where(Message.embedding.is_(None))
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        if limit is not None:
            query = query.limit(limit)

        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to select messages without embeddings: {e}",
                operation="select_pending",
            ) from e

        return [
            PendingMessage(id=row.id, content=row.content, created_at=row.created_at)
            for row in result.all()
        ]

    async def count_pending(self) -> int:
        """Count messages without an embedding."""
        return await self._count(Message.embedding.is_(None))

    async def count_total(self) -> int:
        """Count all messages."""
        return await self._count()

    async def update_embedding(
        self,
        message_id: uuid.UUID,
        embedding: list[float],
    ) -> bool:
        """Store the embedding for a single message.

        The write runs in a savepoint so that a failure leaves the
        enclosing transaction usable for the next row.

        Args:
            message_id: The message ID
            embedding: The full embedding vector

        Returns:
            True if updated, False if not found

        Raises:
            StorageError: If the write fails
        """
        try:
            async with self.session.begin_nested():
                cursor_result = await self.session.execute(
                    update(Message)
                    .where(Message.id == message_id)
                    .values(embedding=embedding)
                )
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to update embedding: {e}", operation="update_embedding"
            ) from e

        rowcount = getattr(cursor_result, "rowcount", 0)
        return bool(rowcount)

    async def _count(self, *criteria: object) -> int:
        query = select(func.count()).select_from(Message)
        for criterion in criteria:
            query = query.where(criterion)  # type: ignore[arg-type]
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count messages: {e}", operation="count") from e
        return int(result.scalar_one())
