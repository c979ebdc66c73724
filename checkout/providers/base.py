from abc import ABC, abstractmethod
from typing import Any, Dict

from ..core.errors import ConfigurationError


class Provider(ABC):
    """Base interface for remote services used by the checkout flow"""

    name: str
    timeout_s: float = 10

    @abstractmethod
    async def ready(self) -> bool:
        """True when credentials and endpoints are configured"""

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""

    async def require_ready(self) -> None:
        """Raise ConfigurationError before any request is attempted."""
        if not await self.ready():
            raise ConfigurationError(f"{self.name} is not configured")
