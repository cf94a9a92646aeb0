"""
Anthropic backend - Messages API strategy for a chat session.
The system instruction travels in the separate `system` field and
`max_tokens` is mandatory.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

import httpx
import anthropic
from anthropic import Anthropic

from ...domain.models.conversation import (
    BackendKind, CompletionResult, Role, StreamChunk, Turn, Usage
)
from .errors import translate_sdk_error

# Raw httpx transport errors can escape the SDK while a stream is being read
_SDK_ERRORS = (anthropic.APIError, httpx.TransportError)
_TRANSIENT_ERRORS = (anthropic.APIConnectionError, anthropic.APITimeoutError, httpx.TransportError)


class AnthropicBackend:
    """Completion backend over the Anthropic Messages API."""

    kind = BackendKind.ANTHROPIC

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "claude-3-5-haiku-latest",
        max_tokens: int = 1024,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[Any] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1 for the Messages API")
        self.model = model
        self._max_tokens = max_tokens
        self._logger = logger or logging.getLogger(__name__)
        self._client = client or Anthropic(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        self._logger.info(f"Anthropic backend initialized - Model: {model}, max_tokens: {max_tokens}")

    def build_messages(self, turns: Sequence[Turn], system: str) -> List[Dict[str, str]]:
        turns = list(turns)
        # The Messages API rejects a conversation that opens with the assistant,
        # which trimming can leave behind.
        start = 0
        while start < len(turns) and turns[start].role is Role.ASSISTANT:
            start += 1
        if start:
            self._logger.debug(f"Dropping {start} leading assistant turn(s) from Anthropic request")
        return [{"role": t.role.value, "content": t.text} for t in turns[start:]]

    def _request_kwargs(self, turns: Sequence[Turn], system: str) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self._max_tokens,
            "messages": self.build_messages(turns, system),
        }
        if system:
            kwargs["system"] = system
        return kwargs

    def complete(self, turns: Sequence[Turn], system: str) -> CompletionResult:
        kwargs = self._request_kwargs(turns, system)
        self._logger.debug(f"Anthropic request: model={self.model}, messages={len(kwargs['messages'])}")
        try:
            response = self._client.messages.create(**kwargs)
        except _SDK_ERRORS as e:
            raise translate_sdk_error(e, "Anthropic", _TRANSIENT_ERRORS) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = getattr(response, "usage", None)
        return CompletionResult(
            text=text,
            usage=Usage(
                input_tokens=getattr(usage, "input_tokens", 0) or 0,
                output_tokens=getattr(usage, "output_tokens", 0) or 0,
            ),
            model=getattr(response, "model", self.model),
            stop_reason=getattr(response, "stop_reason", None),
            metadata={"response_id": getattr(response, "id", None)},
        )

    def stream(self, turns: Sequence[Turn], system: str) -> Iterator[StreamChunk]:
        kwargs = self._request_kwargs(turns, system)
        kwargs["stream"] = True
        self._logger.debug(f"Anthropic stream request: model={self.model}, messages={len(kwargs['messages'])}")
        input_tokens = 0
        output_tokens = 0
        try:
            stream = self._client.messages.create(**kwargs)
            for event in stream:
                event_type = getattr(event, "type", None)
                if event_type == "message_start":
                    usage = getattr(event.message, "usage", None)
                    input_tokens = getattr(usage, "input_tokens", 0) or 0
                elif event_type == "content_block_delta":
                    delta = event.delta
                    if getattr(delta, "type", None) == "text_delta" and delta.text:
                        yield StreamChunk(text=delta.text)
                elif event_type == "message_delta":
                    # output_tokens is cumulative
                    output_tokens = getattr(event.usage, "output_tokens", output_tokens) or output_tokens
        except _SDK_ERRORS as e:
            raise translate_sdk_error(e, "Anthropic", _TRANSIENT_ERRORS) from e
        yield StreamChunk(usage=Usage(input_tokens=input_tokens, output_tokens=output_tokens))

    def get_model_info(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "provider": self.kind.value,
            "streaming_supported": True,
            "system_prompt_shape": "separate system field",
            "max_tokens": self._max_tokens,
        }
