from .fallback import execute_with_fallback, failure_reason, user_error_message
from .types import FailureReason, FallbackResult

__all__ = [
    "FailureReason",
    "FallbackResult",
    "execute_with_fallback",
    "failure_reason",
    "user_error_message",
]
