"""
Checkout Errors

Error taxonomy for the purchase protocol. Every error knows its category
and whether repeating the failed step unchanged could succeed.
"""

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Categories of errors for retry and messaging decisions."""

    CONFIGURATION = "configuration"     # Missing credentials/keys
    PRECONDITION = "precondition"       # No signer, purchase already running
    CANCELLED = "cancelled"             # User declined
    NETWORK = "network"                 # Transport failures
    TIMEOUT = "timeout"                 # Call or phase timed out
    RATE_LIMIT = "rate_limit"           # Remote throttling
    NOT_PROPAGATED = "not_propagated"   # Tx not yet visible to the backend
    QUOTE = "quote"                     # No route / bad quote response
    BUILD = "build"                     # Swap transaction construction
    SIGNER = "signer"                   # Wallet signer failure
    INSUFFICIENT_FUNDS = "insufficient_funds"
    SOLD_OUT = "sold_out"
    DUPLICATE = "duplicate"
    INVALID_SIGNATURE = "invalid_signature"
    FULFILLMENT = "fulfillment"         # Other business errors from the backend
    INTERNAL = "internal"               # Programming errors
    UNKNOWN = "unknown"


class CheckoutError(Exception):
    """Base class for purchase protocol errors."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    retryable: bool = False
    funds_may_have_moved: bool = False
    suggested_action: Optional[str] = None

    def __init__(
        self,
        message: str,
        *,
        category: Optional[ErrorCategory] = None,
        suggested_action: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if category is not None:
            self.category = category
        if suggested_action is not None:
            self.suggested_action = suggested_action


class ConfigurationError(CheckoutError):
    """A required credential or endpoint is not configured."""

    category = ErrorCategory.CONFIGURATION
    suggested_action = "Check the checkout configuration"


class PreconditionError(CheckoutError):
    """The purchase cannot start in the current environment."""

    category = ErrorCategory.PRECONDITION


class SignerUnavailableError(PreconditionError):
    """No external wallet signer is available for this session."""

    suggested_action = "Connect a wallet that supports transaction signing"

    def __init__(self, message: str = "No wallet signer available"):
        super().__init__(message)


class PurchaseInProgressError(PreconditionError):
    """A purchase for this payer is already in flight."""

    suggested_action = "Wait for the current purchase to finish"

    def __init__(self, payer_address: str):
        super().__init__(f"A purchase is already in progress for {payer_address}")
        self.payer_address = payer_address


class UserRejectedError(CheckoutError):
    """The user declined in the wallet UI. A cancellation, not a failure."""

    category = ErrorCategory.CANCELLED

    def __init__(self, message: str = "Request declined in wallet"):
        super().__init__(message)


class QuoteUnavailableError(CheckoutError):
    """No usable quote could be obtained."""

    category = ErrorCategory.QUOTE
    suggested_action = "Try again in a moment"


class BuildFailedError(CheckoutError):
    """The swap transaction could not be built."""

    category = ErrorCategory.BUILD
    suggested_action = "Request a new quote and try again"


class SignerError(CheckoutError):
    """The wallet signer failed for a reason other than user rejection."""

    category = ErrorCategory.SIGNER


class UnreadableSignatureError(SignerError):
    """
    The wallet reported a broadcast but its signature could not be read.

    The payment may be on chain without a signature to track it by.
    """

    funds_may_have_moved = True
    suggested_action = "Check your wallet activity before paying again"


class FulfillmentError(CheckoutError):
    """
    Fulfillment did not succeed after the payment was broadcast.

    The transaction may still land, so callers must not re-purchase and
    must not tell the user that no funds moved.
    """

    category = ErrorCategory.FULFILLMENT
    funds_may_have_moved = True
    suggested_action = "Contact support with the transaction signature"

    def __init__(
        self,
        message: str,
        *,
        signature: str,
        category: Optional[ErrorCategory] = None,
        attempts: int = 0,
    ):
        super().__init__(message, category=category)
        self.signature = signature
        self.attempts = attempts


class InvalidTransitionError(CheckoutError):
    """A purchase attempt tried to move to a state it may not enter."""

    category = ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "CheckoutError",
    "ConfigurationError",
    "PreconditionError",
    "SignerUnavailableError",
    "PurchaseInProgressError",
    "UserRejectedError",
    "QuoteUnavailableError",
    "BuildFailedError",
    "SignerError",
    "UnreadableSignatureError",
    "FulfillmentError",
    "InvalidTransitionError",
]
