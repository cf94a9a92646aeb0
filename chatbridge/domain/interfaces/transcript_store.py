"""
Transcript store protocol interface.
Conversation persistence is an injected collaborator; the core only asks it
to save and load a transcript as ordered `{role, text}` records.
"""

from __future__ import annotations
from typing import Protocol, List

from ..models.conversation import Transcript


class TranscriptStore(Protocol):
    """Protocol for transcript persistence implementations."""

    def save(self, session_id: str, transcript: Transcript) -> None:
        """Persist the transcript under `session_id`, replacing any previous copy."""
        ...

    def load(self, session_id: str) -> Transcript:
        """Load a transcript. Raises SessionNotFound when nothing is stored."""
        ...

    def delete(self, session_id: str) -> bool:
        """Remove a stored transcript. Returns False when nothing was stored."""
        ...

    def list_ids(self) -> List[str]:
        """List stored session ids."""
        ...

    def validate_id(self, session_id: str) -> None:
        """Raise InvalidState if `session_id` cannot be stored."""
        ...
