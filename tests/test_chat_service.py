import pytest

from chatbridge.application.chat_service import ChatService
from chatbridge.domain.errors import (
    BackendUnavailable, ConfigurationError, InvalidState, SessionExists, SessionNotFound
)
from chatbridge.domain.models.conversation import BackendKind
from chatbridge.infrastructure.config.settings import AppSettings, RetrySettings, SessionSettings
from chatbridge.infrastructure.storage import InMemoryTranscriptStore, JsonFileTranscriptStore


@pytest.fixture
def settings():
    return AppSettings(
        session=SessionSettings(backend='anthropic', system_prompt='Be brief.'),
        retry=RetrySettings(max_retries=2, backoff_base=0.0, jitter_max=0.0),
    )


@pytest.fixture
def factory(make_backend):
    built = []

    def _factory(kind, settings, model=None, logger=None):
        backend = make_backend(kind=kind, model=model or f'{kind.value}-default', replies=['one', 'two', 'three'])
        built.append(backend)
        return backend

    _factory.built = built
    return _factory


def test_create_session_uses_settings_defaults(settings, factory):
    service = ChatService(settings=settings, backend_factory=factory)
    session = service.create_session()

    assert session.kind is BackendKind.ANTHROPIC
    assert session.model == 'anthropic-default'
    assert session.system_prompt == 'Be brief.'
    assert service.get_session(session.session_id) is session


def test_create_session_overrides(settings, factory):
    service = ChatService(settings=settings, backend_factory=factory)
    session = service.create_session(
        backend='openai', model='gpt-4o', system_prompt='', max_turns=2, session_id='mine'
    )
    assert session.session_id == 'mine'
    assert session.kind is BackendKind.OPENAI
    assert session.model == 'gpt-4o'
    assert session.system_prompt == ''
    assert session.max_turns == 2


def test_unknown_backend_rejected(settings, factory):
    service = ChatService(settings=settings, backend_factory=factory)
    with pytest.raises(InvalidState):
        service.create_session(backend='gemini')


def test_send_and_autosave(settings, factory):
    store = InMemoryTranscriptStore()
    service = ChatService(settings=settings, store=store, backend_factory=factory)
    session = service.create_session(session_id='s1')

    assert service.send('s1', 'hello') == 'one'
    assert store.load('s1').to_records() == session.history()


def test_stream_commits_and_releases_lock(settings, factory):
    store = InMemoryTranscriptStore()
    service = ChatService(settings=settings, store=store, backend_factory=factory)
    service.create_session(session_id='s1')

    assert ''.join(service.stream('s1', 'hello')) == 'one'
    assert len(store.load('s1')) == 2
    # Lock released: a follow-up send does not block
    assert service.send('s1', 'next') == 'two'


def test_closing_stream_discards_and_releases_lock(settings, factory):
    service = ChatService(settings=settings, backend_factory=factory)
    session = service.create_session(session_id='s1')

    fragments = service.stream('s1', 'hello')
    next(fragments)
    fragments.close()

    assert len(session) == 0
    assert service.send('s1', 'again') == 'two'


def test_stream_validates_eagerly(settings, factory):
    service = ChatService(settings=settings, backend_factory=factory)
    service.create_session(session_id='s1')
    with pytest.raises(InvalidState):
        service.stream('s1', '')
    with pytest.raises(SessionNotFound):
        service.stream('missing', 'hi')


def test_unknown_session_operations_raise(settings, factory):
    service = ChatService(settings=settings, backend_factory=factory)
    for call in (
        lambda: service.get_session('x'),
        lambda: service.send('x', 'hi'),
        lambda: service.trim('x', 1),
        lambda: service.clear('x'),
        lambda: service.delete_session('x'),
    ):
        with pytest.raises(SessionNotFound):
            call()


def test_trim_clear_and_describe(settings, factory):
    service = ChatService(settings=settings, backend_factory=factory)
    service.create_session(session_id='s1')
    service.send('s1', 'a')
    service.send('s1', 'b')

    assert service.trim('s1', 1) == 3
    info = service.list_sessions()[0]
    assert info['session_id'] == 's1'
    assert info['turns'] == 1
    assert info['backend'] == 'anthropic'
    assert info['usage']['total_tokens'] > 0

    service.clear('s1')
    assert len(service.get_session('s1')) == 0


def test_backend_failure_surfaces_after_retries(settings, make_backend):
    failing = make_backend(failures=100)
    service = ChatService(settings=settings, backend_factory=lambda *a, **k: failing)
    service.create_session(session_id='s1')

    with pytest.raises(BackendUnavailable):
        service.send('s1', 'hello')
    # max_retries=2 from settings
    assert len(failing.calls) == 3
    assert len(service.get_session('s1')) == 0


def test_save_and_load_session(settings, factory):
    store = InMemoryTranscriptStore()
    service = ChatService(settings=settings, store=store, backend_factory=factory, autosave=False)
    service.create_session(session_id='keep')
    service.send('keep', 'hello')
    with pytest.raises(SessionNotFound):
        store.load('keep')

    service.save_session('keep')
    service.delete_session('keep')

    restored = service.load_session('keep', backend='openai')
    assert restored.kind is BackendKind.OPENAI
    assert restored.history() == [
        {'role': 'user', 'text': 'hello'},
        {'role': 'assistant', 'text': 'one'},
    ]


def test_load_session_missing_in_store(settings, factory):
    service = ChatService(settings=settings, store=InMemoryTranscriptStore(), backend_factory=factory)
    with pytest.raises(SessionNotFound):
        service.load_session('ghost')
    assert service.list_sessions() == []


def test_persistence_requires_store(settings, factory):
    service = ChatService(settings=settings, backend_factory=factory)
    service.create_session(session_id='s1')
    with pytest.raises(ConfigurationError):
        service.save_session('s1')


def test_delete_with_purge(settings, factory):
    store = InMemoryTranscriptStore()
    service = ChatService(settings=settings, store=store, backend_factory=factory)
    service.create_session(session_id='s1')
    service.send('s1', 'hello')

    service.delete_session('s1', purge=True)
    assert store.list_ids() == []


def test_duplicate_session_id_keeps_live_session(settings, factory):
    service = ChatService(settings=settings, store=InMemoryTranscriptStore(), backend_factory=factory)
    original = service.create_session(session_id='conv')
    service.send('conv', 'hello')

    with pytest.raises(SessionExists) as excinfo:
        service.create_session(session_id='conv')
    assert excinfo.value.session_id == 'conv'
    with pytest.raises(SessionExists):
        service.load_session('conv')

    assert service.get_session('conv') is original
    assert len(original) == 2
    # Only the first session ever built a backend
    assert len(factory.built) == 1


def test_unstorable_session_id_rejected_before_any_call(settings, factory, tmp_path):
    service = ChatService(
        settings=settings, store=JsonFileTranscriptStore(tmp_path), backend_factory=factory
    )

    with pytest.raises(InvalidState):
        service.create_session(session_id='bad/id')

    assert factory.built == []
    assert service.list_sessions() == []
    assert list(tmp_path.iterdir()) == []
