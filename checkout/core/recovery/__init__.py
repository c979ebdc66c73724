"""
Error Recovery Module

Result values, error classification and the fixed-delay retry strategy
used for fulfillment verification and balance refreshes.
"""

from .errors import ErrorContext, classify_error
from .result import Failure, Result
from .strategies import RetryConfig, RetryStrategy, with_retry

__all__ = [
    "ErrorContext",
    "classify_error",
    "Failure",
    "Result",
    "RetryConfig",
    "RetryStrategy",
    "with_retry",
]
