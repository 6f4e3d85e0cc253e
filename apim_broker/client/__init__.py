"""HTTP invocation layer for the remote API-management platform."""

from .invoker import ReplayableBody, ResilientInvoker
from .retry import RetryPolicy, calculate_backoff, is_error_response

__all__ = [
    "ReplayableBody",
    "ResilientInvoker",
    "RetryPolicy",
    "calculate_backoff",
    "is_error_response",
]
