"""Configuration package."""

from .settings import (
    AppSettings,
    OpenAISettings,
    AnthropicSettings,
    RetrySettings,
    SessionSettings,
    get_settings,
    reload_settings,
)

__all__ = [
    "AppSettings",
    "OpenAISettings",
    "AnthropicSettings",
    "RetrySettings",
    "SessionSettings",
    "get_settings",
    "reload_settings",
]
