"""Domain interfaces package - Protocols for ports."""

from .llm_client import CompletionBackend, RetryPolicy
from .transcript_store import TranscriptStore

__all__ = [
    "CompletionBackend",
    "RetryPolicy",
    "TranscriptStore",
]
