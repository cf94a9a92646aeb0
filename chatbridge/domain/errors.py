"""
Domain errors - typed failures surfaced to callers of a chat session.
"""

from __future__ import annotations
from typing import Optional


class ChatBridgeError(Exception):
    """Base class for every error raised by chatbridge."""


class InvalidState(ChatBridgeError):
    """Malformed caller input (empty message, bad transcript record, bad bound)."""


class ConfigurationError(ChatBridgeError):
    """Missing credentials or an unknown backend selector."""


class SessionNotFound(ChatBridgeError):
    """No session or stored transcript exists for the given id."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class BackendError(ChatBridgeError):
    """Failure talking to a remote completion backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BackendOverloaded(BackendError):
    """Transient backend failure (rate limit, timeout, 5xx). Safe to retry."""


class BackendUnavailable(BackendError):
    """Backend call failed for good: retries exhausted or a non-retryable error."""


class SessionExists(InvalidState):
    """A live session is already registered under the given id."""

    def __init__(self, session_id: str):
        super().__init__(f"Session already exists: {session_id}")
        self.session_id = session_id
