"""
Completion backend protocol interface.
Defines the contract every remote backend strategy must satisfy.
"""

from __future__ import annotations
from typing import Protocol, Sequence, Iterator, Dict, Any

from ..models.conversation import BackendKind, CompletionResult, StreamChunk, Turn


class CompletionBackend(Protocol):
    """Protocol for remote completion backends.

    Implementations receive the full transcript (oldest first) and the system
    instruction separately, and decide how the vendor wants them shaped.
    """

    kind: BackendKind
    model: str

    def complete(self, turns: Sequence[Turn], system: str) -> CompletionResult:
        """Send the conversation and return the assistant reply."""
        ...

    def stream(self, turns: Sequence[Turn], system: str) -> Iterator[StreamChunk]:
        """Send the conversation and yield the reply as it arrives."""
        ...

    def get_model_info(self) -> Dict[str, Any]:
        """Get information about the configured model."""
        ...


class RetryPolicy(Protocol):
    """Protocol for retry policies."""

    def should_retry(self, attempt: int, error: Exception) -> bool:
        """Determine if operation should be retried."""
        ...

    def get_delay(self, attempt: int) -> float:
        """Get delay before retry attempt."""
        ...

    def get_max_attempts(self) -> int:
        """Get maximum attempts, first call included."""
        ...
