"""Chat message database model with an optional embedding vector."""

import uuid
from typing import Any

from pgvector.sqlalchemy import Vector
from sqlalchemy import Boolean, Index, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from chat_backend.models.db.base import Base, TimestampMixin

# OpenAI text-embedding-3-small produces 1536-dimensional vectors
EMBEDDING_DIMENSION = 1536


class Message(Base, TimestampMixin):
    """A chat message.

    ``embedding`` is NULL until a vector has been generated for the row,
    either inline at creation time or later by the backfill. Once set it is
    never cleared.
    """

    __tablename__ = "messages"

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
    )
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    is_ai: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )
    task_proposal: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True,
    )
    search_result: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True,
    )
    embedding: Mapped[list[float] | None] = mapped_column(
        Vector(EMBEDDING_DIMENSION),  # type: ignore[no-untyped-call]
        nullable=True,
    )

    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
        # Backfill scans pending rows oldest first
        Index(
            "ix_messages_pending_created",
            "created_at",
            postgresql_where=text("embedding IS NULL"),
        ),
        Index(
            "ix_messages_embedding_cosine",
            embedding,
            postgresql_using="hnsw",
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )

    @property
    def has_embedding(self) -> bool:
        """Whether a vector has been stored for this message."""
        return self.embedding is not None
