"""Fixed wait between broadcast and the first fulfillment call."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ...config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class PropagationWaiter:
    """
    Waits a fixed delay after the wallet hands control back.

    Covers the app's network stack resuming after the wallet round-trip and
    the backend's RPC catching up with the ledger.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        cfg = settings or default_settings
        self.delay_seconds = cfg.settle_delay_seconds
        self._sleep = sleep or asyncio.sleep

    async def await_settling(self) -> None:
        if self.delay_seconds <= 0:
            return
        logger.debug("Waiting %.1fs for transaction propagation", self.delay_seconds)
        await self._sleep(self.delay_seconds)
