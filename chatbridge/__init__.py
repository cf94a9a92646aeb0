"""
chatbridge - one chat session interface over the OpenAI and Anthropic APIs.
"""

__version__ = "0.1.0"

__all__ = [
    "ChatSession",
    "ChatService",
    "BackendKind",
    "create_backend",
]


# Lazy attribute access so importing the domain layer does not pull in vendor SDKs.
def __getattr__(name: str):  # pragma: no cover - simple lazy loader
    if name == "ChatSession":
        from .domain.services.session import ChatSession as _S
        return _S
    if name == "BackendKind":
        from .domain.models.conversation import BackendKind as _K
        return _K
    if name == "ChatService":
        from .application.chat_service import ChatService as _C
        return _C
    if name == "create_backend":
        from .infrastructure.backends import create_backend as _f
        return _f
    raise AttributeError(f"module 'chatbridge' has no attribute {name!r}")
