from __future__ import annotations

import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class AuthorizationProvider(Protocol):
    """Capability deciding whether the image backend may be called."""

    async def has_authorization(self) -> bool: ...

    async def request_authorization(self) -> bool: ...


class DefaultAuthorization:
    """Fallback used when the host offers no authorization selection."""

    async def has_authorization(self) -> bool:
        return True

    async def request_authorization(self) -> bool:
        return True


class ApiKeyAuthorization:
    """Treat a configured image API key as the selected authorization."""

    def __init__(self, api_key: Optional[str]) -> None:
        self.api_key = api_key

    async def has_authorization(self) -> bool:
        return bool(self.api_key)

    async def request_authorization(self) -> bool:
        if not self.api_key:
            logger.warning("No image API key configured; set PIG_GEMINI_API_KEY and restart the service")
            return False
        return True
