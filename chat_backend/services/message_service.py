"""Service for creating and reading chat messages."""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from chat_backend.core.config import Settings, get_settings
from chat_backend.core.exceptions import NotFoundError
from chat_backend.models.db.message import Message
from chat_backend.models.domain.message import (
    MessageCreate,
    MessageList,
    MessageRead,
    dump_attachment,
)
from chat_backend.repositories.message_repo import MessageRepository
from chat_backend.services.embedding_client import EmbeddingClient, ProviderError

logger = logging.getLogger(__name__)


class MessageService:
    """Service for chat messages.

    New messages get an embedding inline when the provider cooperates.
    Embedding is an enrichment: if the provider fails, the message is stored
    without one and the backfill picks it up later.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        settings: Settings | None = None,
        embedding_client: EmbeddingClient | None = None,
    ) -> None:
        self.db_session = db_session
        self.settings = settings or get_settings()
        self.repo = MessageRepository(db_session)
        self._embedding_client = embedding_client

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

    async def create_message(self, data: MessageCreate) -> MessageRead:
        """Create a message, attaching an embedding when one can be generated.

        Args:
            data: Validated message fields

        Returns:
            The created message

        Raises:
            StorageError: If the insert fails
        """
        message_id = uuid.uuid4()
        embedding = await self._attach_embedding(message_id, data.content)

        message = Message(
            id=message_id,
            conversation_id=data.conversation_id,
            author_id=data.author_id,
            content=data.content,
            is_ai=data.is_ai,
            task_proposal=dump_attachment(data.task_proposal),
            search_result=dump_attachment(data.search_result),
            embedding=embedding,
        )
        created = await self.repo.create(message)

        logger.info(
            "Message created",
            extra={
                "message_id": str(created.id),
                "conversation_id": str(created.conversation_id),
                "has_embedding": embedding is not None,
            },
        )
        return MessageRead.model_validate(created)

    async def _attach_embedding(
        self, message_id: uuid.UUID, content: str
    ) -> list[float] | None:
        """Request one embedding for new content; None if it can't be had.

        Provider failures are logged and swallowed. There is no retry here:
        a message stored without an embedding is a backfill candidate.
        """
        if not self.settings.embed_on_ingest:
            return None

        try:
            return await self.embedding_client.embed_one(content)
        except ProviderError as e:
            logger.warning(
                f"Failed to generate embedding for message {message_id}; "
                f"storing without one: {e}",
                extra={
                    "message_id": str(message_id),
                    "retryable": e.is_retryable,
                },
            )
            return None

    async def get_message(self, message_id: uuid.UUID) -> MessageRead:
        """Get a message by ID.

        Raises:
            NotFoundError: If the message doesn't exist
        """
        message = await self.repo.get_by_id(message_id)
        if message is None:
            raise NotFoundError(resource="Message", resource_id=str(message_id))
        return MessageRead.model_validate(message)

    async def list_messages(
        self,
        conversation_id: uuid.UUID | None = None,
        author_id: uuid.UUID | None = None,
    ) -> MessageList:
        """List messages, newest first."""
        messages = await self.repo.list_messages(
            conversation_id=conversation_id,
            author_id=author_id,
        )
        data = [MessageRead.model_validate(m) for m in messages]
        return MessageList(data=data, count=len(data))

    async def delete_message(self, message_id: uuid.UUID) -> None:
        """Delete a message.

        Raises:
            NotFoundError: If the message doesn't exist
        """
        deleted = await self.repo.delete(message_id)
        if not deleted:
            raise NotFoundError(resource="Message", resource_id=str(message_id))
        logger.info("Message deleted", extra={"message_id": str(message_id)})
