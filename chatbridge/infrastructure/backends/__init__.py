"""Backend strategies package.

One strategy per vendor, chosen from BackendKind at construction time.
"""

from __future__ import annotations
import logging
from typing import Callable, Dict, Optional

from ...domain.errors import ConfigurationError, InvalidState
from ...domain.interfaces.llm_client import CompletionBackend
from ...domain.models.conversation import BackendKind
from ..config.settings import AppSettings, get_settings
from .anthropic_backend import AnthropicBackend
from .openai_backend import OpenAIBackend


def _build_openai(settings: AppSettings, model: Optional[str], logger: Optional[logging.Logger]) -> CompletionBackend:
    cfg = settings.openai
    return OpenAIBackend(
        api_key=cfg.api_key,
        model=model or cfg.model,
        base_url=cfg.base_url,
        max_tokens=cfg.max_tokens,
        timeout=settings.session.request_timeout_s,
        logger=logger,
    )


def _build_anthropic(settings: AppSettings, model: Optional[str], logger: Optional[logging.Logger]) -> CompletionBackend:
    cfg = settings.anthropic
    try:
        return AnthropicBackend(
            api_key=cfg.api_key,
            model=model or cfg.model,
            max_tokens=cfg.max_tokens,
            base_url=cfg.base_url,
            timeout=settings.session.request_timeout_s,
            logger=logger,
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid Anthropic settings: {e}") from e


_BUILDERS: Dict[BackendKind, Callable[..., CompletionBackend]] = {
    BackendKind.OPENAI: _build_openai,
    BackendKind.ANTHROPIC: _build_anthropic,
}


def create_backend(
    kind: BackendKind,
    settings: Optional[AppSettings] = None,
    model: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> CompletionBackend:
    """Build the backend strategy for `kind` from settings."""
    settings = settings or get_settings()
    try:
        kind = BackendKind.parse(kind)
    except InvalidState as e:
        raise ConfigurationError(str(e)) from e
    missing = settings.validate_required_settings(kind)
    if missing:
        raise ConfigurationError(f"Missing required settings for {kind.value}: {', '.join(missing)}")
    return _BUILDERS[kind](settings, model, logger)


__all__ = [
    "AnthropicBackend",
    "OpenAIBackend",
    "create_backend",
]
