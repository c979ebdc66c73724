"""
Purchase state machine.

One PurchaseAttempt walks the states of a single purchase. Every state is
entered at most once; terminal states have no exits.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, FrozenSet, List, Optional, Set, Tuple

from ..errors import InvalidTransitionError
from .models import PurchaseIntent, PurchaseState, StateTransition

logger = logging.getLogger(__name__)

S = PurchaseState

ALLOWED_TRANSITIONS: Dict[PurchaseState, FrozenSet[PurchaseState]] = {
    S.IDLE: frozenset({S.QUOTE_REQUESTED, S.FAILED}),
    S.QUOTE_REQUESTED: frozenset({S.AWAITING_USER_CONFIRMATION, S.FAILED}),
    S.AWAITING_USER_CONFIRMATION: frozenset({S.BUILDING_TRANSACTION, S.CANCELLED, S.FAILED}),
    S.BUILDING_TRANSACTION: frozenset({S.AWAITING_SIGNATURE, S.FAILED}),
    # Declining in the wallet is a cancellation
    S.AWAITING_SIGNATURE: frozenset({S.SETTLING, S.CANCELLED, S.FAILED}),
    S.SETTLING: frozenset({S.VERIFYING_FULFILLMENT, S.FAILED}),
    S.VERIFYING_FULFILLMENT: frozenset({S.RECONCILING, S.FAILED}),
    S.RECONCILING: frozenset({S.COMPLETED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.FAILED: frozenset(),
}

TransitionObserver = Callable[["PurchaseAttempt"], None]


class PurchaseAttempt:
    """Tracks the state of one purchase attempt."""

    def __init__(
        self,
        intent: PurchaseIntent,
        on_transition: Optional[TransitionObserver] = None,
    ) -> None:
        self.intent = intent
        self._state = PurchaseState.IDLE
        self._visited: Set[PurchaseState] = {PurchaseState.IDLE}
        self._history: List[StateTransition] = []
        self._on_transition = on_transition

    @property
    def state(self) -> PurchaseState:
        return self._state

    @property
    def history(self) -> Tuple[StateTransition, ...]:
        return tuple(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._state.is_terminal

    def can_advance(self, new_state: PurchaseState) -> bool:
        return new_state in ALLOWED_TRANSITIONS[self._state] and new_state not in self._visited

    def advance(self, new_state: PurchaseState, detail: Optional[str] = None) -> None:
        if not self.can_advance(new_state):
            raise InvalidTransitionError(
                f"Purchase {self.intent.intent_id} cannot move from "
                f"{self._state.value} to {new_state.value}"
            )

        transition = StateTransition(
            from_state=self._state,
            to_state=new_state,
            at=time.time(),
            detail=detail,
        )
        self._history.append(transition)
        self._visited.add(new_state)
        self._state = new_state

        if detail:
            logger.info("Purchase %s -> %s (%s)", self.intent.intent_id, new_state.value, detail)
        else:
            logger.info("Purchase %s -> %s", self.intent.intent_id, new_state.value)

        if self._on_transition is not None:
            try:
                self._on_transition(self)
            except Exception:
                logger.exception("Transition observer failed for purchase %s", self.intent.intent_id)
