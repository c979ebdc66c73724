"""Typed models used by the purchase protocol."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from ...providers.jupiter import Quote
from ..constants import EXPLORER_TX_URL
from ..errors import CheckoutError, ErrorCategory
from ..recovery import Result


class PurchaseKind(str, Enum):
    ITEM = "item"
    PACK = "pack"


class PurchaseState(str, Enum):
    """States of one purchase attempt."""

    IDLE = "idle"
    QUOTE_REQUESTED = "quote_requested"
    AWAITING_USER_CONFIRMATION = "awaiting_user_confirmation"
    BUILDING_TRANSACTION = "building_transaction"
    AWAITING_SIGNATURE = "awaiting_signature"
    SETTLING = "settling"
    VERIFYING_FULFILLMENT = "verifying_fulfillment"
    RECONCILING = "reconciling"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: FrozenSet[PurchaseState] = frozenset(
    {PurchaseState.COMPLETED, PurchaseState.CANCELLED, PurchaseState.FAILED}
)


@dataclass(frozen=True)
class PurchaseIntent:
    """What the buyer wants and what they expect to pay, for one attempt."""

    kind: PurchaseKind
    identifier: str                 # item id or pack id
    expected_price: Decimal         # in settlement currency (USD)
    payer_address: str
    intent_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if not self.identifier:
            raise ValueError("Purchase identifier is required")
        if not self.payer_address:
            raise ValueError("Payer address is required")
        try:
            price = Decimal(str(self.expected_price))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid price {self.expected_price!r}") from exc
        if price <= 0:
            raise ValueError("Expected price must be greater than zero")
        object.__setattr__(self, "expected_price", price)
        object.__setattr__(self, "kind", PurchaseKind(self.kind))

    @classmethod
    def item(cls, item_id: str, price: Any, payer_address: str) -> "PurchaseIntent":
        return cls(PurchaseKind.ITEM, item_id, price, payer_address)

    @classmethod
    def pack(cls, pack_id: str, price: Any, payer_address: str) -> "PurchaseIntent":
        return cls(PurchaseKind.PACK, pack_id, price, payer_address)


@dataclass(frozen=True)
class GrantedUnit:
    """One serialized instance of a cosmetic item granted to the buyer."""

    unit_id: str
    serial_number: Optional[int] = None
    max_supply: Optional[int] = None
    item_id: Optional[str] = None
    name: Optional[str] = None
    rarity: Optional[str] = None
    image_url: Optional[str] = None
    skin_type_id: Optional[str] = None

    @property
    def serial_label(self) -> Optional[str]:
        if self.serial_number is None:
            return None
        if self.max_supply:
            return f"{self.serial_number} of {self.max_supply}"
        return f"#{self.serial_number}"

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "GrantedUnit":
        unit_id = data.get("unit_id") or data.get("id")
        if not unit_id:
            raise ValueError("Granted unit payload has no unit id")
        return cls(
            unit_id=str(unit_id),
            serial_number=_optional_int(data.get("serial_number")),
            max_supply=_optional_int(data.get("max_supply")),
            item_id=data.get("item_id") or data.get("skin_type_id"),
            name=data.get("name"),
            rarity=data.get("rarity"),
            image_url=data.get("image_url"),
            skin_type_id=data.get("skin_type_id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "serial_number": self.serial_number,
            "max_supply": self.max_supply,
            "item_id": self.item_id,
            "name": self.name,
            "rarity": self.rarity,
            "image_url": self.image_url,
            "skin_type_id": self.skin_type_id,
        }


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class FulfillmentStatus(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class FulfillmentResult:
    """Classified outcome of one fulfillment call."""

    status: FulfillmentStatus
    unit: Optional[GrantedUnit] = None
    reason: Optional[str] = None
    category: ErrorCategory = ErrorCategory.UNKNOWN

    @classmethod
    def success(cls, unit: GrantedUnit) -> "FulfillmentResult":
        return cls(FulfillmentStatus.SUCCESS, unit=unit)

    @classmethod
    def retryable(
        cls,
        reason: str,
        category: ErrorCategory = ErrorCategory.NOT_PROPAGATED,
    ) -> "FulfillmentResult":
        return cls(FulfillmentStatus.RETRYABLE, reason=reason, category=category)

    @classmethod
    def fatal(
        cls,
        reason: str,
        category: ErrorCategory = ErrorCategory.FULFILLMENT,
    ) -> "FulfillmentResult":
        return cls(FulfillmentStatus.FATAL, reason=reason, category=category)

    @property
    def is_success(self) -> bool:
        return self.status is FulfillmentStatus.SUCCESS

    def to_result(self) -> Result[GrantedUnit]:
        if self.status is FulfillmentStatus.SUCCESS and self.unit is not None:
            return Result.succeeded(self.unit)
        return Result.failed(
            self.reason or "Fulfillment failed",
            retryable=self.status is FulfillmentStatus.RETRYABLE,
            category=self.category,
        )


@dataclass(frozen=True)
class StateTransition:
    from_state: PurchaseState
    to_state: PurchaseState
    at: float
    detail: Optional[str] = None


@dataclass(frozen=True)
class PurchaseOutcome:
    """Final result of one purchase attempt, handed back to the UI."""

    intent: PurchaseIntent
    state: PurchaseState
    history: Tuple[StateTransition, ...] = ()
    quote: Optional[Quote] = None
    signature: Optional[str] = None
    unit: Optional[GrantedUnit] = None
    error: Optional[CheckoutError] = None
    fulfillment_attempts: int = 0

    @property
    def completed(self) -> bool:
        return self.state is PurchaseState.COMPLETED

    @property
    def cancelled(self) -> bool:
        return self.state is PurchaseState.CANCELLED

    @property
    def failed(self) -> bool:
        return self.state is PurchaseState.FAILED

    @property
    def funds_may_have_moved(self) -> bool:
        """True once the wallet may have broadcast the payment."""
        if self.signature is not None:
            return True
        return self.error is not None and self.error.funds_may_have_moved

    @property
    def explorer_url(self) -> Optional[str]:
        if not self.signature:
            return None
        return EXPLORER_TX_URL.format(signature=self.signature)

    @property
    def user_message(self) -> str:
        if self.completed:
            label = (self.unit.name if self.unit and self.unit.name else None) or self.intent.identifier
            serial = self.unit.serial_label if self.unit else None
            suffix = f" ({serial})" if serial else ""
            return f"{label} has been added to your inventory{suffix}."
        if self.cancelled:
            return "Purchase cancelled."
        reason = self.error.message if self.error else "unknown error"
        if self.funds_may_have_moved:
            where = f"check transaction {self.explorer_url}" if self.explorer_url else "check your wallet activity"
            return (
                "Your payment was submitted but delivery could not be confirmed yet "
                f"({reason}). Do not pay again; {where}."
            )
        return f"Purchase failed: {reason}. No payment was sent."
