from typing import List, Optional

import pytest

from chatbridge.domain.errors import BackendOverloaded
from chatbridge.domain.models.conversation import (
    BackendKind, CompletionResult, StreamChunk, Usage
)

_ENV_VARS = (
    'OPENAI_API_KEY', 'OPENAI_MODEL', 'OPENAI_BASE_URL', 'OPENAI_MAX_TOKENS',
    'ANTHROPIC_API_KEY', 'ANTHROPIC_MODEL', 'ANTHROPIC_BASE_URL', 'ANTHROPIC_MAX_TOKENS',
    'CHAT_BACKEND', 'CHAT_SYSTEM_PROMPT', 'CHAT_MAX_TURNS', 'CHAT_STORE_DIR',
    'CHAT_KEEP_FAILED_TURNS', 'CHAT_REQUEST_TIMEOUT_S',
    'CHAT_RETRY_MAX_RETRIES', 'CHAT_RETRY_BACKOFF_BASE', 'CHAT_RETRY_MAX_DELAY',
    'CHAT_RETRY_JITTER_MAX', 'LOG_LEVEL', 'LOG_FORMAT', 'API_KEY', 'API_ENABLED',
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep the developer's real credentials and overrides out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr('chatbridge.infrastructure.config.settings._settings', None)
    yield


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    """Record retry delays instead of sleeping."""
    recorded: List[float] = []
    monkeypatch.setattr('chatbridge.domain.services.retry.time.sleep', recorded.append)
    return recorded


class StubBackend:
    """Scripted backend: fails `failures` times with BackendOverloaded, then replies."""

    def __init__(
        self,
        kind: BackendKind = BackendKind.OPENAI,
        model: str = 'stub-model',
        replies: Optional[List[str]] = None,
        failures: int = 0,
        fail_mid_stream: bool = False,
        chunk_size: int = 3,
    ):
        self.kind = kind
        self.model = model
        self.replies = list(replies or ['ok'])
        self.failures_left = failures
        self.fail_mid_stream = fail_mid_stream
        self.chunk_size = chunk_size
        self.calls = []

    def _next_reply(self) -> str:
        return self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]

    def _maybe_fail(self) -> None:
        if self.failures_left > 0:
            self.failures_left -= 1
            raise BackendOverloaded('stub overloaded', status_code=529)

    def complete(self, turns, system):
        self.calls.append(('complete', list(turns), system))
        self._maybe_fail()
        text = self._next_reply()
        return CompletionResult(
            text=text,
            usage=Usage(input_tokens=len(turns), output_tokens=len(text)),
            model=self.model,
            stop_reason='stop',
        )

    def stream(self, turns, system):
        self.calls.append(('stream', list(turns), system))
        self._maybe_fail()
        text = self._next_reply()
        for i in range(0, len(text), self.chunk_size):
            if self.fail_mid_stream and i > 0:
                raise BackendOverloaded('connection dropped', status_code=503)
            yield StreamChunk(text=text[i:i + self.chunk_size])
        yield StreamChunk(usage=Usage(input_tokens=len(turns), output_tokens=len(text)))

    def get_model_info(self):
        return {'model': self.model, 'provider': self.kind.value}


@pytest.fixture
def make_backend():
    return StubBackend
