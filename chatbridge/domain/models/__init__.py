"""Domain models package."""

from .conversation import (
    Role,
    BackendKind,
    Turn,
    Transcript,
    Usage,
    CompletionResult,
    StreamChunk,
)

__all__ = [
    "Role",
    "BackendKind",
    "Turn",
    "Transcript",
    "Usage",
    "CompletionResult",
    "StreamChunk",
]
