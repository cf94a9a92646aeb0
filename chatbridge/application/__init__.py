"""Application layer - services orchestrating domain sessions."""

from .chat_service import ChatService

__all__ = ["ChatService"]
