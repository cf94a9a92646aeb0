"""Domain layer - Pure business logic with no vendor dependencies."""

from .errors import (
    ChatBridgeError,
    InvalidState,
    ConfigurationError,
    SessionNotFound,
    SessionExists,
    BackendError,
    BackendOverloaded,
    BackendUnavailable,
)
from .models.conversation import (
    Role,
    BackendKind,
    Turn,
    Transcript,
    Usage,
    CompletionResult,
    StreamChunk,
)

__all__ = [
    "ChatBridgeError",
    "InvalidState",
    "ConfigurationError",
    "SessionNotFound",
    "SessionExists",
    "BackendError",
    "BackendOverloaded",
    "BackendUnavailable",
    "Role",
    "BackendKind",
    "Turn",
    "Transcript",
    "Usage",
    "CompletionResult",
    "StreamChunk",
]
