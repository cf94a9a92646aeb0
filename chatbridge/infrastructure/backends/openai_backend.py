"""
OpenAI backend - Chat Completions strategy for a chat session.
The system instruction is sent as a synthetic leading `system` message.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

import httpx
import openai
from openai import OpenAI

from ...domain.models.conversation import (
    BackendKind, CompletionResult, StreamChunk, Turn, Usage
)
from .errors import translate_sdk_error

# Raw httpx transport errors can escape the SDK while a stream is being read
_SDK_ERRORS = (openai.APIError, httpx.TransportError)
_TRANSIENT_ERRORS = (openai.APIConnectionError, openai.APITimeoutError, httpx.TransportError)


class OpenAIBackend:
    """Completion backend over the OpenAI Chat Completions API."""

    kind = BackendKind.OPENAI

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: float = 60.0,
        client: Optional[Any] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.model = model
        self._max_tokens = max_tokens
        self._logger = logger or logging.getLogger(__name__)
        # SDK retries are disabled; the session's retry policy owns backoff
        self._client = client or OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        self._logger.info(f"OpenAI backend initialized - Model: {model}")

    def build_messages(self, turns: Sequence[Turn], system: str) -> List[Dict[str, str]]:
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend({"role": t.role.value, "content": t.text} for t in turns)
        return messages

    def _request_kwargs(self, turns: Sequence[Turn], system: str) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": self.build_messages(turns, system),
        }
        if self._max_tokens is not None:
            kwargs["max_tokens"] = self._max_tokens
        return kwargs

    def complete(self, turns: Sequence[Turn], system: str) -> CompletionResult:
        kwargs = self._request_kwargs(turns, system)
        self._logger.debug(f"OpenAI request: model={self.model}, messages={len(kwargs['messages'])}")
        try:
            response = self._client.chat.completions.create(**kwargs)
        except _SDK_ERRORS as e:
            raise translate_sdk_error(e, "OpenAI", _TRANSIENT_ERRORS) from e

        choice = response.choices[0]
        return CompletionResult(
            text=choice.message.content or "",
            usage=self._usage_from(getattr(response, "usage", None)),
            model=getattr(response, "model", self.model),
            stop_reason=getattr(choice, "finish_reason", None),
            metadata={"response_id": getattr(response, "id", None)},
        )

    def stream(self, turns: Sequence[Turn], system: str) -> Iterator[StreamChunk]:
        kwargs = self._request_kwargs(turns, system)
        kwargs["stream"] = True
        # Final chunk then carries usage with an empty choices list
        kwargs["stream_options"] = {"include_usage": True}
        self._logger.debug(f"OpenAI stream request: model={self.model}, messages={len(kwargs['messages'])}")
        try:
            stream = self._client.chat.completions.create(**kwargs)
            usage: Optional[Usage] = None
            for chunk in stream:
                if getattr(chunk, "usage", None) is not None:
                    usage = self._usage_from(chunk.usage)
                for choice in chunk.choices or []:
                    content = getattr(choice.delta, "content", None)
                    if content:
                        yield StreamChunk(text=content)
            if usage is not None:
                yield StreamChunk(usage=usage)
        except _SDK_ERRORS as e:
            raise translate_sdk_error(e, "OpenAI", _TRANSIENT_ERRORS) from e

    def get_model_info(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "provider": self.kind.value,
            "streaming_supported": True,
            "system_prompt_shape": "leading system message",
            "max_tokens": self._max_tokens,
        }

    @staticmethod
    def _usage_from(usage: Any) -> Usage:
        if usage is None:
            return Usage()
        return Usage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
