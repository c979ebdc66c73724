"""PurchaseOrchestrator sequences on-chain item purchases and pack openings."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Set

import structlog

from ...config import Settings, settings as default_settings
from ...providers.jupiter import JupiterQuoteProvider, JupiterTransactionBuilder, Quote
from ..constants import TRENCH_MINT, USDC_MINT
from ..errors import (
    CheckoutError,
    ConfigurationError,
    ErrorCategory,
    FulfillmentError,
    PurchaseInProgressError,
    UserRejectedError,
)
from ..recovery import RetryConfig, RetryStrategy
from ..wallet.signer import SignerBridge
from .fulfillment import FulfillmentClient
from .models import GrantedUnit, PurchaseIntent, PurchaseOutcome, PurchaseState
from .settling import PropagationWaiter
from .state_machine import PurchaseAttempt, TransitionObserver

if TYPE_CHECKING:
    from ..player_state import PlayerStateStore

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[Quote, PurchaseIntent], Awaitable[bool]]


class PurchaseOrchestrator:
    """
    Runs one purchase attempt end to end:

    quote -> user confirmation -> build -> wallet sign/broadcast -> settle ->
    fulfillment (retried) -> local reconcile.

    Attempts are serialized per payer address. Nothing is retried before
    the broadcast; after it, the payment is never re-submitted.
    """

    def __init__(
        self,
        *,
        quotes: JupiterQuoteProvider,
        builder: JupiterTransactionBuilder,
        signer: SignerBridge,
        fulfillment: FulfillmentClient,
        waiter: Optional[PropagationWaiter] = None,
        store: Optional["PlayerStateStore"] = None,
        settings: Optional[Settings] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        input_mint: str = USDC_MINT,
        output_mint: str = TRENCH_MINT,
    ) -> None:
        cfg = settings or default_settings
        self._settings = cfg
        self._quotes = quotes
        self._builder = builder
        self._signer = signer
        self._fulfillment = fulfillment
        self._waiter = waiter or PropagationWaiter(cfg, sleep=sleep)
        self._store = store
        self._input_mint = input_mint
        self._output_mint = output_mint
        self._retry = RetryStrategy(
            RetryConfig(
                max_attempts=cfg.fulfillment_max_attempts,
                delay_seconds=cfg.fulfillment_retry_delay_seconds,
            ),
            sleep=sleep,
            logger=logger,
        )
        self._in_flight: Set[str] = set()

    def is_in_flight(self, payer_address: str) -> bool:
        return payer_address in self._in_flight

    async def buy_item(
        self,
        item_id: str,
        price_usd: Decimal,
        payer_address: str,
        confirm: ConfirmCallback,
        *,
        on_transition: Optional[TransitionObserver] = None,
    ) -> PurchaseOutcome:
        intent = PurchaseIntent.item(item_id, price_usd, payer_address)
        return await self.purchase(intent, confirm, on_transition=on_transition)

    async def open_pack(
        self,
        pack_id: str,
        payer_address: str,
        confirm: ConfirmCallback,
        *,
        price_usd: Optional[Decimal] = None,
        on_transition: Optional[TransitionObserver] = None,
    ) -> PurchaseOutcome:
        price = price_usd if price_usd is not None else self._settings.default_pack_price_usd
        intent = PurchaseIntent.pack(pack_id, price, payer_address)
        return await self.purchase(intent, confirm, on_transition=on_transition)

    async def purchase(
        self,
        intent: PurchaseIntent,
        confirm: ConfirmCallback,
        *,
        on_transition: Optional[TransitionObserver] = None,
    ) -> PurchaseOutcome:
        """
        Run one purchase attempt for `intent`.

        Raises PurchaseInProgressError if the payer already has an attempt
        in flight; every other problem is reported in the outcome.
        """
        payer = intent.payer_address
        if payer in self._in_flight:
            raise PurchaseInProgressError(payer)

        self._in_flight.add(payer)
        try:
            with structlog.contextvars.bound_contextvars(
                intent_id=intent.intent_id,
                kind=intent.kind.value,
                payer=payer,
            ):
                return await self._run(PurchaseAttempt(intent, on_transition), confirm)
        finally:
            self._in_flight.discard(payer)

    async def _run(self, attempt: PurchaseAttempt, confirm: ConfirmCallback) -> PurchaseOutcome:
        run = _AttemptContext(attempt)
        try:
            return await self._sequence(run, confirm)
        except CheckoutError as e:
            return run.fail(e)
        except Exception as e:
            logger.exception("Unexpected error during purchase %s", attempt.intent.intent_id)
            return run.fail(CheckoutError(f"Unexpected error: {e}", category=ErrorCategory.INTERNAL))

    async def _sequence(self, run: "_AttemptContext", confirm: ConfirmCallback) -> PurchaseOutcome:
        attempt = run.attempt
        intent = attempt.intent

        await self._check_preconditions()

        # Quote
        attempt.advance(PurchaseState.QUOTE_REQUESTED)
        quote = await self._quotes.get_quote(intent.expected_price, self._input_mint, self._output_mint)
        run.quote = quote
        attempt.advance(
            PurchaseState.AWAITING_USER_CONFIRMATION,
            f"{quote.in_amount} -> {quote.out_amount} via {quote.route_description}",
        )

        # Confirmation is the only point where the user can back out
        if not await confirm(quote, intent):
            attempt.advance(PurchaseState.CANCELLED, "declined at confirmation")
            return run.outcome()

        attempt.advance(PurchaseState.BUILDING_TRANSACTION)
        tx = await self._builder.build_transaction(quote, intent.payer_address)

        attempt.advance(PurchaseState.AWAITING_SIGNATURE)
        try:
            signature = await self._signer.sign_and_submit(tx)
        except UserRejectedError as e:
            run.error = e
            attempt.advance(PurchaseState.CANCELLED, "declined in wallet")
            return run.outcome()
        run.signature = signature

        # From here on the payment may have landed
        attempt.advance(PurchaseState.SETTLING, signature)
        await self._waiter.await_settling()

        attempt.advance(PurchaseState.VERIFYING_FULFILLMENT)
        unit = await self._verify(run, signature)

        attempt.advance(PurchaseState.RECONCILING, unit.unit_id)
        run.unit = unit
        if self._store is not None:
            await self._store.reconcile(intent, unit)

        attempt.advance(PurchaseState.COMPLETED, unit.serial_label)
        return run.outcome()

    async def _check_preconditions(self) -> None:
        await self._signer.ensure_available()
        if not await self._quotes.ready():
            raise ConfigurationError("Price quoting is not configured (missing Jupiter API key)")
        if not await self._fulfillment.ready():
            raise ConfigurationError("Fulfillment backend is not configured")

    async def _verify(self, run: "_AttemptContext", signature: str) -> GrantedUnit:
        intent = run.attempt.intent

        async def attempt_fulfillment():
            result = await self._fulfillment.fulfill(signature, intent.payer_address, intent)
            return result.to_result()

        ceiling = self._settings.fulfillment_ceiling_seconds
        try:
            result = await asyncio.wait_for(
                self._retry.execute(attempt_fulfillment, operation_name="fulfillment"),
                timeout=ceiling,
            )
        except asyncio.TimeoutError as e:
            raise FulfillmentError(
                f"Fulfillment not confirmed within {ceiling:.0f}s",
                signature=signature,
                category=ErrorCategory.TIMEOUT,
            ) from e

        run.fulfillment_attempts = result.attempts
        failure = result.failure
        if failure is not None:
            raise FulfillmentError(
                failure.message,
                signature=signature,
                category=failure.category,
                attempts=result.attempts,
            )
        return result.unwrap()


class _AttemptContext:
    """Mutable scratch space for one run; frozen into a PurchaseOutcome at the end."""

    def __init__(self, attempt: PurchaseAttempt) -> None:
        self.attempt = attempt
        self.quote: Optional[Quote] = None
        self.signature: Optional[str] = None
        self.unit: Optional[GrantedUnit] = None
        self.error: Optional[CheckoutError] = None
        self.fulfillment_attempts = 0

    def fail(self, error: CheckoutError) -> PurchaseOutcome:
        self.error = error
        if self.signature is not None:
            logger.error(
                "Purchase %s failed after broadcast (signature %s): %s",
                self.attempt.intent.intent_id,
                self.signature,
                error.message,
            )
        else:
            logger.error("Purchase %s failed: %s", self.attempt.intent.intent_id, error.message)

        if not self.attempt.is_terminal:
            self.attempt.advance(PurchaseState.FAILED, error.category.value)
        return self.outcome()

    def outcome(self) -> PurchaseOutcome:
        return PurchaseOutcome(
            intent=self.attempt.intent,
            state=self.attempt.state,
            history=self.attempt.history,
            quote=self.quote,
            signature=self.signature,
            unit=self.unit,
            error=self.error,
            fulfillment_attempts=self.fulfillment_attempts,
        )
