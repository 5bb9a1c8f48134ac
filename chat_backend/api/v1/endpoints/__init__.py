"""API v1 endpoints package."""

from chat_backend.api.v1.endpoints import messages

__all__ = ["messages"]
