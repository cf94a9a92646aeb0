"""
Chat session - the provider-agnostic conversational session wrapper.

A session owns one transcript, one system instruction and one backend. It
offers a single `send(text) -> reply` operation whatever backend is bound, a
streaming variant, and an explicit trim. Sessions are not thread-safe;
callers serialize access (see ChatService).
"""

from __future__ import annotations
import logging
import uuid
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from ..errors import BackendError, BackendUnavailable, InvalidState
from ..interfaces.llm_client import CompletionBackend, RetryPolicy
from ..interfaces.transcript_store import TranscriptStore
from ..models.conversation import BackendKind, StreamChunk, Transcript, Turn, Role, Usage
from .retry import ExponentialBackoffPolicy, call_with_retry


class ChatSession:
    """One conversation bound to one remote completion backend."""

    def __init__(
        self,
        backend: CompletionBackend,
        system_prompt: str = "",
        retry_policy: Optional[RetryPolicy] = None,
        max_turns: Optional[int] = None,
        keep_failed_turns: bool = False,
        session_id: Optional[str] = None,
        transcript: Optional[Transcript] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if max_turns is not None and max_turns < 0:
            raise InvalidState(f"max_turns must be >= 0, got {max_turns}")
        self._backend = backend
        self._system_prompt = system_prompt or ""
        self._retry_policy = retry_policy or ExponentialBackoffPolicy()
        self._max_turns = max_turns
        self._keep_failed_turns = keep_failed_turns
        self._session_id = session_id or str(uuid.uuid4())
        self._transcript = transcript.copy() if transcript is not None else Transcript()
        self._usage = Usage()
        self._last_usage: Optional[Usage] = None
        self._logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------ state
    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def backend(self) -> CompletionBackend:
        return self._backend

    @property
    def kind(self) -> BackendKind:
        return self._backend.kind

    @property
    def model(self) -> str:
        return self._backend.model

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    @property
    def max_turns(self) -> Optional[int]:
        return self._max_turns

    @property
    def transcript(self) -> Transcript:
        """A copy of the transcript; mutate the session through its methods."""
        return self._transcript.copy()

    @property
    def usage(self) -> Usage:
        """Running token total across every completed exchange."""
        return self._usage

    @property
    def last_usage(self) -> Optional[Usage]:
        return self._last_usage

    def __len__(self) -> int:
        return len(self._transcript)

    def history(self) -> List[Dict[str, str]]:
        return self._transcript.to_records()

    # ------------------------------------------------------------- operations
    def send(self, user_text: str) -> str:
        """Send one user message and return the assistant reply.

        The transcript is only extended once the backend has answered; on
        failure it is left as it was (unless `keep_failed_turns` is set, in
        which case the user turn is kept).
        """
        self.validate_message(user_text)
        turns = self._pending_turns(user_text)
        try:
            result = call_with_retry(
                lambda: self._backend.complete(turns, self._system_prompt),
                self._retry_policy,
                logger=self._logger,
            )
        except BackendError:
            self._record_failure(user_text)
            raise

        self._commit_exchange(user_text, result.text, result.usage)
        return result.text

    def stream(self, user_text: str) -> TurnStream:
        """Send one user message and return its reply as a lazy fragment stream.

        Nothing is requested until the stream is iterated. The exchange is
        committed to the transcript once the stream is exhausted, or earlier
        through `TurnStream.commit()`.
        """
        self.validate_message(user_text)
        turns = self._pending_turns(user_text)
        return TurnStream(
            open_stream=lambda: self._backend.stream(turns, self._system_prompt),
            retry_policy=self._retry_policy,
            on_commit=lambda text, usage: self._commit_exchange(user_text, text, usage),
            on_failure=lambda: self._record_failure(user_text),
            name=f"session {self._session_id}",
            logger=self._logger,
        )

    def trim(self, max_turns: int) -> int:
        """Remove oldest turns until at most `max_turns` remain."""
        removed = self._transcript.trim(max_turns)
        if removed:
            self._logger.debug(f"Trimmed {removed} turn(s) from session {self._session_id}")
        return removed

    def clear(self) -> None:
        self._transcript.clear()
        self._logger.debug(f"Cleared session {self._session_id}")

    def save(self, store: TranscriptStore) -> None:
        store.save(self._session_id, self._transcript)
        self._logger.debug(f"Saved session {self._session_id} ({len(self._transcript)} turns)")

    def restore(self, store: TranscriptStore) -> None:
        """Replace the transcript with the copy held by `store`."""
        self._transcript = store.load(self._session_id).copy()
        self._logger.debug(f"Restored session {self._session_id} ({len(self._transcript)} turns)")

    @staticmethod
    def validate_message(user_text: str) -> None:
        """Raise InvalidState unless `user_text` is a non-empty string."""
        if not isinstance(user_text, str) or not user_text.strip():
            raise InvalidState("Message must be a non-empty string")

    # -------------------------------------------------------------- internals
    def _pending_turns(self, user_text: str) -> List[Turn]:
        return list(self._transcript) + [Turn(role=Role.USER, text=user_text)]

    def _record_failure(self, user_text: str) -> None:
        if self._keep_failed_turns:
            self._transcript.add_user_turn(user_text)

    def _commit_exchange(self, user_text: str, reply: str, usage: Optional[Usage]) -> None:
        self._transcript.add_user_turn(user_text)
        self._transcript.add_assistant_turn(reply)
        self._last_usage = usage or Usage()
        self._usage = self._usage + self._last_usage
        if self._max_turns is not None:
            self.trim(self._max_turns)
        self._logger.debug(
            f"Session {self._session_id} exchange committed via {self.kind.value} "
            f"(turns={len(self._transcript)}, tokens={self._last_usage.total_tokens})"
        )


class TurnStream:
    """Lazy, finite, non-restartable stream of reply fragments for one exchange.

    Iterating to the end commits the exchange through `on_commit`. `close()`
    drops it; `commit()` keeps whatever text has arrived so far. A failure
    calls `on_failure` and leaves the exchange uncommitted.
    """

    def __init__(
        self,
        open_stream: Callable[[], Iterable[StreamChunk]],
        retry_policy: RetryPolicy,
        on_commit: Callable[[str, Usage], None],
        on_failure: Callable[[], None],
        name: str = "stream",
        logger: Optional[logging.Logger] = None,
    ):
        self._open_stream = open_stream
        self._retry_policy = retry_policy
        self._on_commit = on_commit
        self._on_failure = on_failure
        self._name = name
        self._logger = logger or logging.getLogger(__name__)
        self._chunks: Optional[Iterator[StreamChunk]] = None
        self._parts: List[str] = []
        self._usage = Usage()
        self._finished = False
        self._committed = False

    @property
    def text(self) -> str:
        """Text received so far."""
        return "".join(self._parts)

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def committed(self) -> bool:
        return self._committed

    def __iter__(self) -> TurnStream:
        return self

    def __next__(self) -> str:
        while not self._finished:
            chunk = self._next_chunk()
            if chunk is None:
                self._finish(commit=True)
                break
            if chunk.usage is not None:
                self._usage = self._usage + chunk.usage
            if chunk.text:
                self._parts.append(chunk.text)
                return chunk.text
        raise StopIteration

    def close(self) -> None:
        """Stop the stream and discard the partial reply."""
        if not self._finished:
            self._logger.debug(f"Stream for {self._name} discarded")
            self._finish(commit=False)

    def commit(self) -> str:
        """Stop the stream and keep the text received so far as the reply."""
        if not self._finished:
            self._finish(commit=True)
        return self.text

    def __enter__(self) -> TurnStream:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _open(self) -> Optional[StreamChunk]:
        # Opening plus the first chunk is the only retryable part: nothing
        # has reached the caller yet.
        self._close_chunks()
        self._chunks = iter(self._open_stream())
        return next(self._chunks, None)

    def _next_chunk(self) -> Optional[StreamChunk]:
        try:
            if self._chunks is None:
                return call_with_retry(self._open, self._retry_policy, logger=self._logger)
            return next(self._chunks, None)
        except BackendUnavailable:
            self._abort()
            raise
        except BackendError as e:
            self._abort()
            raise BackendUnavailable(f"Stream interrupted: {e}", status_code=e.status_code) from e
        except Exception:
            self._abort()
            raise

    def _close_chunks(self) -> None:
        close = getattr(self._chunks, "close", None)
        if close is not None:
            close()

    def _abort(self) -> None:
        self._finish(commit=False)
        self._on_failure()

    def _finish(self, commit: bool) -> None:
        self._finished = True
        self._close_chunks()
        if commit:
            self._committed = True
            self._on_commit(self.text, self._usage)
