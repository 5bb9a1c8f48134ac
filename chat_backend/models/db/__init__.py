"""Database models package."""

from chat_backend.models.db.base import Base, TimestampMixin
from chat_backend.models.db.message import EMBEDDING_DIMENSION, Message

__all__ = [
    "EMBEDDING_DIMENSION",
    "Base",
    "Message",
    "TimestampMixin",
]
