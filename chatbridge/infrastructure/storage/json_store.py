"""
JSON file transcript store.
Each session is one `<session_id>.json` file holding the ordered list of
`{role, text}` records.
"""

from __future__ import annotations
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from ...domain.errors import InvalidState, SessionNotFound
from ...domain.interfaces.transcript_store import TranscriptStore
from ...domain.models.conversation import Transcript

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonFileTranscriptStore(TranscriptStore):
    """Stores transcripts as JSON files under one directory."""

    def __init__(self, directory: Union[str, Path], logger: Optional[logging.Logger] = None):
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)
        self._logger = logger or logging.getLogger(__name__)

    @property
    def directory(self) -> Path:
        return self._directory

    def validate_id(self, session_id: str) -> None:
        # Ids become file names; reject anything that could escape the directory
        if not session_id or not _SAFE_ID.match(session_id) or session_id in {".", ".."}:
            raise InvalidState(f"Invalid session id for file storage: {session_id!r}")

    def _path(self, session_id: str) -> Path:
        self.validate_id(session_id)
        return self._directory / f"{session_id}.json"

    def save(self, session_id: str, transcript: Transcript) -> None:
        path = self._path(session_id)
        payload = json.dumps(transcript.to_records(), ensure_ascii=False, indent=2)
        # Temp file + rename
        fd, tmp = tempfile.mkstemp(dir=self._directory, prefix=f".{session_id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        self._logger.debug(f"Saved transcript {session_id} to {path}")

    def load(self, session_id: str) -> Transcript:
        path = self._path(session_id)
        if not path.exists():
            raise SessionNotFound(session_id)
        try:
            records = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise InvalidState(f"Corrupt transcript file {path}: {e}") from e
        if not isinstance(records, list):
            raise InvalidState(f"Transcript file {path} must hold a list of records")
        return Transcript.from_records(records)

    def delete(self, session_id: str) -> bool:
        path = self._path(session_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def list_ids(self) -> List[str]:
        return sorted(p.stem for p in self._directory.glob("*.json"))
