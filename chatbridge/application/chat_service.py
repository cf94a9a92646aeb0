"""
Chat service - Application service managing chat sessions by id.
Creates sessions from settings, serializes access to each session and
optionally persists transcripts after every exchange.
"""

from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..domain.errors import ConfigurationError, SessionExists, SessionNotFound
from ..domain.interfaces.llm_client import CompletionBackend
from ..domain.interfaces.transcript_store import TranscriptStore
from ..domain.models.conversation import BackendKind
from ..domain.services.session import ChatSession
from ..infrastructure.backends import create_backend
from ..infrastructure.config.settings import AppSettings, get_settings

BackendFactory = Callable[..., CompletionBackend]


class ChatService:
    """Registry of chat sessions with one lock per session."""

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        store: Optional[TranscriptStore] = None,
        backend_factory: Optional[BackendFactory] = None,
        autosave: bool = True,
        logger: Optional[logging.Logger] = None,
    ):
        self._settings = settings or get_settings()
        self._store = store
        self._backend_factory = backend_factory or create_backend
        self._autosave = autosave and store is not None
        self._logger = logger or logging.getLogger(__name__)
        self._sessions: Dict[str, ChatSession] = {}
        # Plain Locks: a streaming reply may release on another worker thread
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @property
    def store(self) -> Optional[TranscriptStore]:
        return self._store

    def create_session(
        self,
        backend: Optional[Any] = None,
        model: Optional[str] = None,
        system_prompt: Optional[str] = None,
        max_turns: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> ChatSession:
        """Create and register a session. Unset options fall back to settings.

        Raises SessionExists when `session_id` is already registered, and
        InvalidState when the configured store cannot hold that id.
        """
        defaults = self._settings.session
        kind = BackendKind.parse(backend) if backend is not None else defaults.backend_kind
        if session_id is not None:
            self._check_new_id(session_id)
        session = ChatSession(
            backend=self._backend_factory(kind, self._settings, model=model, logger=self._logger),
            system_prompt=defaults.system_prompt if system_prompt is None else system_prompt,
            retry_policy=self._settings.retry.build_policy(),
            max_turns=defaults.max_turns if max_turns is None else max_turns,
            keep_failed_turns=defaults.keep_failed_turns,
            session_id=session_id,
            logger=self._logger,
        )
        with self._registry_lock:
            if session.session_id in self._sessions:
                raise SessionExists(session.session_id)
            self._sessions[session.session_id] = session
            self._locks[session.session_id] = threading.Lock()
        self._logger.info(
            f"Created session {session.session_id} ({kind.value}, model={session.model})"
        )
        return session

    def get_session(self, session_id: str) -> ChatSession:
        with self._registry_lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def list_sessions(self) -> List[Dict[str, Any]]:
        with self._registry_lock:
            sessions = list(self._sessions.values())
        return [self.describe(s) for s in sessions]

    def delete_session(self, session_id: str, purge: bool = False) -> None:
        """Forget a session; with `purge` also remove its stored transcript."""
        with self._registry_lock:
            if self._sessions.pop(session_id, None) is None:
                raise SessionNotFound(session_id)
            self._locks.pop(session_id, None)
        if purge and self._store is not None:
            self._store.delete(session_id)
        self._logger.debug(f"Deleted session {session_id}")

    def send(self, session_id: str, message: str) -> str:
        session = self.get_session(session_id)
        with self._lock_for(session_id):
            reply = session.send(message)
            self._maybe_save(session)
        return reply

    def stream(self, session_id: str, message: str) -> Iterator[str]:
        """Stream a reply. The session stays locked until the iterator ends or is closed."""
        session = self.get_session(session_id)
        ChatSession.validate_message(message)
        lock = self._lock_for(session_id)

        def _generate() -> Iterator[str]:
            with lock:
                with session.stream(message) as turn_stream:
                    for fragment in turn_stream:
                        yield fragment
                if turn_stream.committed:
                    self._maybe_save(session)

        return _generate()

    def trim(self, session_id: str, max_turns: int) -> int:
        session = self.get_session(session_id)
        with self._lock_for(session_id):
            removed = session.trim(max_turns)
            self._maybe_save(session)
        return removed

    def clear(self, session_id: str) -> None:
        session = self.get_session(session_id)
        with self._lock_for(session_id):
            session.clear()
            self._maybe_save(session)

    def save_session(self, session_id: str) -> None:
        session = self.get_session(session_id)
        with self._lock_for(session_id):
            session.save(self._require_store())

    def load_session(
        self,
        session_id: str,
        backend: Optional[Any] = None,
        model: Optional[str] = None,
        system_prompt: Optional[str] = None,
        max_turns: Optional[int] = None,
    ) -> ChatSession:
        """Register a session whose transcript comes from the store.

        Raises SessionExists when the id is already live in this service.
        """
        store = self._require_store()
        transcript = store.load(session_id)
        session = self.create_session(
            backend=backend, model=model, system_prompt=system_prompt,
            max_turns=max_turns, session_id=session_id,
        )
        with self._lock_for(session_id):
            session.restore(store)
        self._logger.info(f"Loaded session {session_id} with {len(transcript)} turns")
        return session

    @staticmethod
    def describe(session: ChatSession) -> Dict[str, Any]:
        return {
            "session_id": session.session_id,
            "backend": session.kind.value,
            "model": session.model,
            "system_prompt": session.system_prompt,
            "max_turns": session.max_turns,
            "turns": len(session),
            "usage": session.usage.to_dict(),
        }

    def _check_new_id(self, session_id: str) -> None:
        with self._registry_lock:
            if session_id in self._sessions:
                raise SessionExists(session_id)
        # Autosave runs after the backend call; reject ids the store would refuse
        if self._store is not None:
            self._store.validate_id(session_id)

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(session_id)
        if lock is None:
            raise SessionNotFound(session_id)
        return lock

    def _require_store(self) -> TranscriptStore:
        if self._store is None:
            raise ConfigurationError("No transcript store configured (set CHAT_STORE_DIR)")
        return self._store

    def _maybe_save(self, session: ChatSession) -> None:
        if self._autosave:
            session.save(self._store)
