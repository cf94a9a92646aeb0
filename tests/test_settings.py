import pytest
from pydantic import ValidationError

from chatbridge.domain.errors import ConfigurationError
from chatbridge.domain.models.conversation import BackendKind
from chatbridge.infrastructure.backends import AnthropicBackend, OpenAIBackend, create_backend
from chatbridge.infrastructure.config.settings import AppSettings, get_settings, reload_settings


def test_defaults():
    settings = reload_settings()
    assert settings.session.backend_kind is BackendKind.OPENAI
    assert settings.openai.model == 'gpt-4o-mini'
    assert settings.anthropic.max_tokens == 1024
    assert settings.retry.max_retries == 3
    assert settings.session.max_turns is None
    assert settings.log_level == 'INFO'
    assert get_settings() is settings


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv('CHAT_BACKEND', 'Anthropic')
    monkeypatch.setenv('ANTHROPIC_API_KEY', 'sk-ant-abcdefghijkl')
    monkeypatch.setenv('ANTHROPIC_MAX_TOKENS', '512')
    monkeypatch.setenv('CHAT_RETRY_MAX_RETRIES', '5')
    monkeypatch.setenv('CHAT_RETRY_BACKOFF_BASE', '0.25')
    monkeypatch.setenv('CHAT_MAX_TURNS', '12')
    monkeypatch.setenv('LOG_LEVEL', 'debug')

    settings = reload_settings()

    assert settings.session.backend_kind is BackendKind.ANTHROPIC
    assert settings.anthropic.max_tokens == 512
    assert settings.session.max_turns == 12
    assert settings.log_level == 'DEBUG'
    config = settings.retry.to_retry_config()
    assert config.max_retries == 5
    assert config.base_delay == 0.25
    assert settings.validate_required_settings() == []


def test_invalid_values_rejected(monkeypatch):
    monkeypatch.setenv('CHAT_BACKEND', 'gemini')
    with pytest.raises(ValidationError):
        reload_settings()

    monkeypatch.delenv('CHAT_BACKEND')
    monkeypatch.setenv('ANTHROPIC_MAX_TOKENS', '0')
    with pytest.raises(ValidationError):
        reload_settings()


def test_bogus_log_level_falls_back(monkeypatch):
    monkeypatch.setenv('LOG_LEVEL', 'chatty')
    assert reload_settings().log_level == 'INFO'


def test_missing_credentials_reported():
    settings = AppSettings()
    assert settings.validate_required_settings(BackendKind.OPENAI) == ['OPENAI_API_KEY']
    assert settings.validate_required_settings(BackendKind.ANTHROPIC) == ['ANTHROPIC_API_KEY']
    with pytest.raises(ConfigurationError):
        create_backend(BackendKind.OPENAI, settings)


def test_to_dict_masks_keys(monkeypatch):
    monkeypatch.setenv('OPENAI_API_KEY', 'sk-secret-value-123')
    data = reload_settings().to_dict()
    assert data['openai']['api_key'] == '***'
    assert data['anthropic']['api_key'] is None


def test_create_backend_selects_strategy(monkeypatch):
    monkeypatch.setenv('OPENAI_API_KEY', 'sk-test-openai-key')
    monkeypatch.setenv('ANTHROPIC_API_KEY', 'sk-ant-test-key')
    monkeypatch.setenv('ANTHROPIC_MAX_TOKENS', '2048')
    settings = reload_settings()

    openai_backend = create_backend(BackendKind.OPENAI, settings)
    anthropic_backend = create_backend('anthropic', settings, model='claude-3-opus-latest')

    assert isinstance(openai_backend, OpenAIBackend)
    assert openai_backend.model == 'gpt-4o-mini'
    assert isinstance(anthropic_backend, AnthropicBackend)
    assert anthropic_backend.model == 'claude-3-opus-latest'
    assert anthropic_backend.get_model_info()['max_tokens'] == 2048

    with pytest.raises(ConfigurationError):
        create_backend('gemini', settings)


def test_invalid_token_cap_assigned_after_load_is_a_configuration_error(monkeypatch):
    monkeypatch.setenv('ANTHROPIC_API_KEY', 'sk-ant-test-key')
    settings = reload_settings()
    settings.anthropic.max_tokens = 0

    with pytest.raises(ConfigurationError):
        create_backend(BackendKind.ANTHROPIC, settings)
