"""
Fulfillment client.

After the payment is broadcast, the backend verifies it on chain and grants
the purchased unit. One call here is one request; retries are the caller's
job. Responses are classified by `classify_fulfillment_response`, a pure
function of the response body.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Tuple

import httpx

from ...config import Settings, settings as default_settings
from ...providers.supabase import SupabaseProvider
from ..errors import ConfigurationError, ErrorCategory
from .models import FulfillmentResult, GrantedUnit, PurchaseIntent, PurchaseKind

logger = logging.getLogger(__name__)

# Backend messages meaning "the transaction is not visible to us yet".
# Business failures in _FATAL_CATEGORIES win over these.
RETRYABLE_ERROR_PATTERNS: Tuple[str, ...] = (
    "still confirming",
    "not yet confirmed",
    "not confirmed",
    "transaction not found",
    "tx not found",
    "not found on chain",
    "pending confirmation",
)

_FATAL_CATEGORIES: Tuple[Tuple[Tuple[str, ...], ErrorCategory], ...] = (
    (("insufficient", "not enough", "underpaid", "amount mismatch"), ErrorCategory.INSUFFICIENT_FUNDS),
    (("sold out", "out of stock", "supply exhausted"), ErrorCategory.SOLD_OUT),
    (("duplicate", "already used", "already processed", "already claimed"), ErrorCategory.DUPLICATE),
    (("invalid signature", "bad signature", "signature invalid", "transaction failed"), ErrorCategory.INVALID_SIGNATURE),
)

_GRANT_KEYS = ("unit", "item", "reward")


def _error_message(error: Any) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, Mapping):
        return str(error.get("message") or error.get("error") or error)
    return str(error)


def _fatal_category(message: str) -> Optional[ErrorCategory]:
    lowered = message.lower()
    for patterns, category in _FATAL_CATEGORIES:
        if any(p in lowered for p in patterns):
            return category
    return None


def _grant_payload(body: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    for key in _GRANT_KEYS:
        nested = body.get(key)
        if isinstance(nested, Mapping):
            return nested
    if body.get("unit_id") or body.get("id"):
        return body
    return None


def classify_fulfillment_response(body: Any) -> FulfillmentResult:
    """
    Classify a fulfillment response body.

    - `success: true` with a granted unit -> SUCCESS
    - a business failure (sold out, underpaid, ...) -> FATAL, whatever else
      the message says
    - an error matching "not yet on the ledger" semantics -> RETRYABLE
    - any other error, or `success: false` without detail -> FATAL
    """
    if not isinstance(body, Mapping):
        return FulfillmentResult.fatal("Malformed fulfillment response")

    error = body.get("error")

    if body.get("success") is True and not error:
        payload = _grant_payload(body)
        if payload is None:
            return FulfillmentResult.fatal("Fulfillment succeeded without a granted unit")
        try:
            unit = GrantedUnit.from_payload(payload)
        except ValueError as e:
            return FulfillmentResult.fatal(str(e))
        return FulfillmentResult.success(unit)

    if error:
        message = _error_message(error)
        category = _fatal_category(message)
        if category is not None:
            return FulfillmentResult.fatal(message, category)
        if any(p in message.lower() for p in RETRYABLE_ERROR_PATTERNS):
            return FulfillmentResult.retryable(message)
        return FulfillmentResult.fatal(message, ErrorCategory.FULFILLMENT)

    detail = body.get("message")
    if detail:
        return FulfillmentResult.fatal(str(detail), _fatal_category(str(detail)) or ErrorCategory.FULFILLMENT)
    return FulfillmentResult.fatal("Fulfillment failed without details")


class FulfillmentClient:
    """Calls the item-purchase or pack-open edge function for one intent."""

    def __init__(
        self,
        backend: SupabaseProvider,
        *,
        settings: Optional[Settings] = None,
    ) -> None:
        self._backend = backend
        self._settings = settings or default_settings

    async def ready(self) -> bool:
        return await self._backend.ready()

    def function_for(self, kind: PurchaseKind) -> str:
        if kind is PurchaseKind.PACK:
            return self._settings.fulfillment_pack_function
        return self._settings.fulfillment_item_function

    @staticmethod
    def build_payload(signature: str, payer_address: str, intent: PurchaseIntent) -> dict:
        id_key = "pack_id" if intent.kind is PurchaseKind.PACK else "item_id"
        return {
            "tx_signature": signature,
            "wallet_address": payer_address,
            id_key: intent.identifier,
            "expected_amount": float(intent.expected_price),
        }

    async def fulfill(
        self,
        signature: str,
        payer_address: str,
        intent: PurchaseIntent,
    ) -> FulfillmentResult:
        """Send exactly one fulfillment request and classify the response."""
        function_name = self.function_for(intent.kind)
        payload = self.build_payload(signature, payer_address, intent)

        try:
            response = await self._backend.invoke_function(function_name, payload)
        except ConfigurationError as e:
            return FulfillmentResult.fatal(e.message, ErrorCategory.CONFIGURATION)
        except httpx.TimeoutException as e:
            return FulfillmentResult.retryable(f"Fulfillment request timed out: {e}", ErrorCategory.TIMEOUT)
        except httpx.TransportError as e:
            return FulfillmentResult.retryable(f"Fulfillment request failed: {e}", ErrorCategory.NETWORK)

        try:
            body = response.json()
        except ValueError:
            if response.status_code >= 500 or response.status_code == 429:
                return FulfillmentResult.retryable(
                    f"Fulfillment backend unavailable ({response.status_code})",
                    ErrorCategory.NETWORK,
                )
            return FulfillmentResult.fatal(f"Unreadable fulfillment response ({response.status_code})")

        result = classify_fulfillment_response(body)
        logger.info(
            "Fulfillment %s for %s %s: %s%s",
            function_name,
            intent.kind.value,
            intent.identifier,
            result.status.value,
            f" ({result.reason})" if result.reason else "",
        )
        return result
