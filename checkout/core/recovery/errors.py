"""
Error Classification

Maps arbitrary exceptions onto an ErrorContext so the retry loop can turn
them into failed Results. Domain errors carry their own classification;
transport errors are retryable; everything else is matched on its message
and is only retried when the message names a transient condition.
"""

import asyncio
from dataclasses import dataclass

import httpx

from ..errors import CheckoutError, ErrorCategory


@dataclass
class ErrorContext:
    """Classification of an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = False


_RATE_LIMIT_PATTERNS = ("rate limit", "too many requests", "429", "throttl", "quota exceeded")
_NETWORK_PATTERNS = ("connection", "network", "unreachable", "refused", "dns", "socket", "ssl")
_TIMEOUT_PATTERNS = ("timeout", "timed out", "deadline")
_FUNDS_PATTERNS = ("insufficient", "not enough", "balance too low", "exceeds balance")


def classify_error(error: BaseException) -> ErrorContext:
    """
    Classify an exception and return its error context.

    Typed errors are classified by type; untyped ones by message. Anything
    unrecognised (a KeyError from a bad payload, a programming error) is not
    recoverable.
    """
    if isinstance(error, CheckoutError):
        return ErrorContext(category=error.category, recoverable=error.retryable)

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return ErrorContext(category=ErrorCategory.TIMEOUT, recoverable=True)

    if isinstance(error, httpx.TransportError):
        return ErrorContext(category=ErrorCategory.NETWORK, recoverable=True)

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429:
            return ErrorContext(category=ErrorCategory.RATE_LIMIT, recoverable=True)
        if status >= 500:
            return ErrorContext(category=ErrorCategory.NETWORK, recoverable=True)
        return ErrorContext(category=ErrorCategory.UNKNOWN, recoverable=False)

    message = str(error).lower()

    if any(p in message for p in _RATE_LIMIT_PATTERNS):
        return ErrorContext(category=ErrorCategory.RATE_LIMIT, recoverable=True)

    if any(p in message for p in _NETWORK_PATTERNS):
        return ErrorContext(category=ErrorCategory.NETWORK, recoverable=True)

    if any(p in message for p in _TIMEOUT_PATTERNS):
        return ErrorContext(category=ErrorCategory.TIMEOUT, recoverable=True)

    if any(p in message for p in _FUNDS_PATTERNS):
        return ErrorContext(category=ErrorCategory.INSUFFICIENT_FUNDS, recoverable=False)

    return ErrorContext(category=ErrorCategory.UNKNOWN, recoverable=False)
