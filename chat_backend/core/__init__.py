"""Core module containing configuration and shared utilities."""

from chat_backend.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
