import pytest

from chatbridge.cli import main
from chatbridge.domain.models.conversation import BackendKind


@pytest.fixture
def built(monkeypatch, make_backend):
    """Swap the real vendor backends for scripted ones."""
    backends = []

    def _factory(kind, settings, model=None, logger=None):
        backend = make_backend(kind=kind, model=model or 'stub-model', replies=['Hi from the stub.'])
        backend.settings = settings
        backends.append(backend)
        return backend

    monkeypatch.setattr('chatbridge.application.chat_service.create_backend', _factory)
    monkeypatch.setenv('OPENAI_API_KEY', 'sk-test-openai-key')
    return backends


def test_single_message(built, capsys):
    assert main(['--message', 'hello', '--system', 'Be brief.']) == 0

    out = capsys.readouterr().out
    assert 'Assistant: Hi from the stub.' in out
    assert built[0].kind is BackendKind.OPENAI
    assert built[0].calls[0][2] == 'Be brief.'


def test_single_message_streaming(built, capsys):
    assert main(['--message', 'hello', '--stream', '--quiet']) == 0
    assert capsys.readouterr().out == 'Hi from the stub.\n'
    assert built[0].calls[0][0] == 'stream'


def test_missing_api_key(built, monkeypatch, capsys):
    monkeypatch.delenv('OPENAI_API_KEY')
    assert main(['--message', 'hello']) == 1
    assert 'OPENAI_API_KEY' in capsys.readouterr().err
    assert built == []


def test_anthropic_backend_and_token_cap(built, monkeypatch):
    monkeypatch.setenv('ANTHROPIC_API_KEY', 'sk-ant-test-key-123')
    assert main(['--backend', 'anthropic', '--message', 'hi', '--max-tokens', '64', '--model', 'claude-x']) == 0

    backend = built[0]
    assert backend.kind is BackendKind.ANTHROPIC
    assert backend.model == 'claude-x'
    assert backend.settings.anthropic.max_tokens == 64


def test_backend_failure_exit_code(monkeypatch, make_backend, capsys):
    failing = make_backend(failures=100)
    monkeypatch.setattr('chatbridge.application.chat_service.create_backend', lambda *a, **k: failing)
    monkeypatch.setenv('OPENAI_API_KEY', 'sk-test-openai-key')
    monkeypatch.setenv('CHAT_RETRY_MAX_RETRIES', '1')

    assert main(['--message', 'hello']) == 1
    assert 'Error:' in capsys.readouterr().out
    assert len(failing.calls) == 2


def test_session_resumed_from_store(built, monkeypatch, tmp_path):
    monkeypatch.setenv('CHAT_STORE_DIR', str(tmp_path))

    assert main(['--session-id', 'demo', '--message', 'first', '--quiet']) == 0
    assert (tmp_path / 'demo.json').exists()
    assert main(['--session-id', 'demo', '--message', 'second', '--quiet']) == 0

    turns_sent = built[1].calls[0][1]
    assert [t.text for t in turns_sent] == ['first', 'Hi from the stub.', 'second']


def test_interactive_commands(built, monkeypatch, capsys):
    script = iter(['', '/usage', 'hello', '/history', '/trim x', '/trim 1', '/nope', 'quit'])
    monkeypatch.setattr('builtins.input', lambda prompt='': next(script))

    assert main([]) == 0

    out = capsys.readouterr().out
    assert 'Tokens - input: 0, output: 0, total: 0' in out
    assert 'user: hello' in out
    assert 'assistant: Hi from the stub.' in out
    assert 'Usage: /trim N' in out
    assert 'Removed 1 turn(s)' in out
    assert 'Unknown command: /nope' in out
    assert out.rstrip().endswith('Goodbye!')


@pytest.mark.parametrize('value', ['0', '-5', 'many'])
def test_max_tokens_must_be_positive(built, monkeypatch, capsys, value):
    monkeypatch.setenv('ANTHROPIC_API_KEY', 'sk-ant-test-key-123')
    with pytest.raises(SystemExit) as excinfo:
        main(['--backend', 'anthropic', '--max-tokens', value, '--message', 'hi'])
    assert excinfo.value.code == 2
    assert '--max-tokens' in capsys.readouterr().err
    assert built == []


def test_empty_reply_is_still_success(monkeypatch, make_backend, capsys):
    silent = make_backend(replies=[''])
    monkeypatch.setattr('chatbridge.application.chat_service.create_backend', lambda *a, **k: silent)
    monkeypatch.setenv('OPENAI_API_KEY', 'sk-test-openai-key')

    assert main(['--message', 'hello', '--quiet']) == 0
    assert main(['--message', 'hello', '--quiet', '--stream']) == 0
    assert len(silent.calls) == 2
