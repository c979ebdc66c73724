"""
Purchase protocol: quote, confirm, build, sign, settle, fulfill, reconcile.
"""

from .fulfillment import FulfillmentClient, classify_fulfillment_response
from .models import (
    FulfillmentResult,
    FulfillmentStatus,
    GrantedUnit,
    PurchaseIntent,
    PurchaseKind,
    PurchaseOutcome,
    PurchaseState,
    StateTransition,
)
from .orchestrator import PurchaseOrchestrator
from .settling import PropagationWaiter
from .state_machine import ALLOWED_TRANSITIONS, PurchaseAttempt

__all__ = [
    "ALLOWED_TRANSITIONS",
    "FulfillmentClient",
    "FulfillmentResult",
    "FulfillmentStatus",
    "GrantedUnit",
    "PropagationWaiter",
    "PurchaseAttempt",
    "PurchaseIntent",
    "PurchaseKind",
    "PurchaseOrchestrator",
    "PurchaseOutcome",
    "PurchaseState",
    "StateTransition",
    "classify_fulfillment_response",
]
