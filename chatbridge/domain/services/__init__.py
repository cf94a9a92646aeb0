"""Domain services package."""

from .retry import RetryConfig, ExponentialBackoffPolicy, NoRetryPolicy, call_with_retry
from .session import ChatSession, TurnStream

__all__ = [
    "RetryConfig",
    "ExponentialBackoffPolicy",
    "NoRetryPolicy",
    "call_with_retry",
    "ChatSession",
    "TurnStream",
]
