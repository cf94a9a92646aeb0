"""
Configuration settings - Infrastructure component for managing application configuration.
Uses pydantic-settings for validation and environment variable loading.
"""

from __future__ import annotations
from typing import Optional, List, Dict, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ...domain.models.conversation import BackendKind
from ...domain.services.retry import RetryConfig, ExponentialBackoffPolicy


class OpenAISettings(BaseSettings):
    """OpenAI Chat Completions configuration."""

    model_config = SettingsConfigDict(
        env_prefix='OPENAI_', env_file='.env', extra='ignore', env_ignore_empty=True
    )

    api_key: Optional[str] = None
    model: str = 'gpt-4o-mini'
    base_url: Optional[str] = None
    # Chat Completions has no mandatory cap; None leaves the API default
    max_tokens: Optional[int] = None


class AnthropicSettings(BaseSettings):
    """Anthropic Messages configuration."""

    model_config = SettingsConfigDict(
        env_prefix='ANTHROPIC_', env_file='.env', extra='ignore', env_ignore_empty=True
    )

    api_key: Optional[str] = None
    model: str = 'claude-3-5-haiku-latest'
    base_url: Optional[str] = None
    max_tokens: int = 1024

    @field_validator('max_tokens')
    @classmethod
    def validate_max_tokens(cls, v: int) -> int:
        """The Messages API requires a positive response cap."""
        if v < 1:
            raise ValueError('ANTHROPIC_MAX_TOKENS must be >= 1')
        return v


class RetrySettings(BaseSettings):
    """Retry and resilience configuration."""

    model_config = SettingsConfigDict(
        env_prefix='CHAT_RETRY_', env_file='.env', extra='ignore', env_ignore_empty=True
    )

    max_retries: int = 3
    backoff_base: float = 1.0
    max_delay: float = 30.0
    jitter_max: float = 0.1

    @field_validator('max_retries')
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        return max(0, min(v, 10))

    def to_retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.max_retries,
            base_delay=self.backoff_base,
            max_delay=self.max_delay,
            jitter=self.jitter_max,
        )

    def build_policy(self) -> ExponentialBackoffPolicy:
        return ExponentialBackoffPolicy(self.to_retry_config())


class SessionSettings(BaseSettings):
    """Session defaults."""

    model_config = SettingsConfigDict(
        env_prefix='CHAT_', env_file='.env', extra='ignore', env_ignore_empty=True
    )

    backend: str = 'openai'
    system_prompt: str = 'You are a helpful assistant.'
    max_turns: Optional[int] = None
    keep_failed_turns: bool = False
    store_dir: Optional[str] = None
    request_timeout_s: float = 60.0

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Ensure the backend selector names a known backend."""
        v = v.strip().lower()
        valid = [k.value for k in BackendKind]
        if v not in valid:
            raise ValueError(f"CHAT_BACKEND must be one of {valid}")
        return v

    @field_validator('max_turns')
    @classmethod
    def validate_max_turns(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError('CHAT_MAX_TURNS must be >= 0')
        return v

    @property
    def backend_kind(self) -> BackendKind:
        return BackendKind(self.backend)


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(env_file='.env', extra='ignore', env_ignore_empty=True)

    # Sub-configurations
    openai: OpenAISettings = Field(default_factory=OpenAISettings)
    anthropic: AnthropicSettings = Field(default_factory=AnthropicSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    session: SessionSettings = Field(default_factory=SessionSettings)

    # Logging
    log_level: str = 'INFO'
    log_format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            return 'INFO'
        return v.upper()

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary with credentials masked."""
        data = self.model_dump()
        for section in ('openai', 'anthropic'):
            if data[section].get('api_key'):
                data[section]['api_key'] = '***'
        return data

    def api_key_for(self, kind: BackendKind) -> Optional[str]:
        if kind is BackendKind.OPENAI:
            return self.openai.api_key
        return self.anthropic.api_key

    def validate_required_settings(self, kind: Optional[BackendKind] = None) -> List[str]:
        """Validate required settings and return list of missing ones."""
        kind = kind or self.session.backend_kind
        missing = []
        if not self.api_key_for(kind):
            missing.append('OPENAI_API_KEY' if kind is BackendKind.OPENAI else 'ANTHROPIC_API_KEY')
        return missing


# Global settings instance
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    """Get global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reload_settings() -> AppSettings:
    """Reload settings from environment (for testing)."""
    global _settings
    _settings = AppSettings()
    return _settings
