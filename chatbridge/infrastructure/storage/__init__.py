"""Transcript storage package."""

from .json_store import JsonFileTranscriptStore
from .memory_store import InMemoryTranscriptStore

__all__ = ["JsonFileTranscriptStore", "InMemoryTranscriptStore"]
