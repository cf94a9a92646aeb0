"""
In-memory transcript store. Useful for tests and single-process servers.
"""

from __future__ import annotations
import threading
from typing import Dict, List

from ...domain.errors import InvalidState, SessionNotFound
from ...domain.interfaces.transcript_store import TranscriptStore
from ...domain.models.conversation import Transcript


class InMemoryTranscriptStore(TranscriptStore):
    def __init__(self):
        self._lock = threading.RLock()
        self._records: Dict[str, List[Dict[str, str]]] = {}

    def save(self, session_id: str, transcript: Transcript) -> None:
        with self._lock:
            self._records[session_id] = transcript.to_records()

    def load(self, session_id: str) -> Transcript:
        with self._lock:
            records = self._records.get(session_id)
        if records is None:
            raise SessionNotFound(session_id)
        return Transcript.from_records(records)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._records.pop(session_id, None) is not None

    def list_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._records)

    def validate_id(self, session_id: str) -> None:
        if not isinstance(session_id, str) or not session_id:
            raise InvalidState(f"Invalid session id: {session_id!r}")
