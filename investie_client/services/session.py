"""Authenticated identity and bearer credential with periodic refresh"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from investie_client.config import settings
from investie_client.domain.exceptions import AuthError
from investie_client.domain.models import Identity

logger = logging.getLogger(__name__)

# Called with force_refresh; returns a bearer token from the identity provider
TokenProvider = Callable[[bool], Awaitable[str]]


class TokenSession:
    """
    Holds the signed-in identity and its bearer token.

    The token is obtained from an injected provider (the identity-provider SDK in
    production) and refreshed on a fixed interval once ``start()`` is called.
    A failed refresh keeps the previous token; the platform answers 401 once it
    really expires, which surfaces as AuthError.
    """

    def __init__(self, token_provider: TokenProvider, refresh_interval: Optional[float] = None):
        self.token_provider = token_provider
        self.refresh_interval = refresh_interval or settings.token_refresh_interval_seconds
        self.identity: Optional[Identity] = None
        self._token: Optional[str] = None
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None and self._token is not None

    async def sign_in(self, identity: Identity) -> None:
        """Bind the session to an identity and fetch its first token"""
        token = await self.token_provider(False)
        if not token:
            raise AuthError("Identity provider returned no token")
        self.identity = identity
        self._token = token
        logger.info("Session started", extra={"user_id": identity.user_id, "is_admin": identity.is_admin})

    async def refresh(self) -> bool:
        """Force a token refresh; returns False when the provider failed"""
        if self.identity is None:
            return False
        try:
            token = await self.token_provider(True)
        except Exception as e:
            logger.warning(f"Token refresh failed: {e}", extra={"user_id": self.identity.user_id})
            return False
        if token:
            self._token = token
        return bool(token)

    def start(self) -> None:
        """Begin periodic token refresh (requires a running event loop)"""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            await self.refresh()

    def auth_header(self) -> Dict[str, str]:
        """
        Authorization header for platform calls.

        Raises:
            AuthError: If no one is signed in
        """
        if not self.is_authenticated:
            raise AuthError("Not signed in")
        return {"Authorization": f"Bearer {self._token}"}

    def require_identity(self) -> Identity:
        if not self.is_authenticated:
            raise AuthError("Not signed in")
        return self.identity

    async def sign_out(self) -> None:
        await self.close()
        if self.identity is not None:
            logger.info("Session ended", extra={"user_id": self.identity.user_id})
        self.identity = None
        self._token = None

    async def close(self) -> None:
        """Cancel the refresh timer"""
        task, self._refresh_task = self._refresh_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
