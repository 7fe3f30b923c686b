from typing import Awaitable, Callable, Optional, Protocol

from loguru import logger

from smsledger.errors import AuthError


class SessionProvider(Protocol):
    """
    Owner of the bearer token. The core only reads the current token and
    asks for a refresh; it never writes the token itself.
    """

    def current_token(self) -> Optional[str]:
        ...

    async def refresh(self) -> str:
        ...


Refresher = Callable[[], Awaitable[str]]


class StaticSessionProvider:
    """
    Token handed in by the host application (e.g. LEDGER_TOKEN), with an
    optional refresher coroutine supplied by the credential store.
    """

    def __init__(self, token: Optional[str] = None, refresher: Optional[Refresher] = None) -> None:
        self._token = token or None
        self._refresher = refresher

    def current_token(self) -> Optional[str]:
        return self._token

    async def refresh(self) -> str:
        if self._refresher is None:
            raise AuthError("No refresh operation configured")
        try:
            token = await self._refresher()
        except AuthError:
            raise
        except Exception as e:
            logger.warning("Token refresh failed err={}", str(e))
            raise AuthError(str(e)) from e
        if not token:
            raise AuthError("Refresh returned an empty token")
        self._token = token
        logger.info("Bearer token refreshed")
        return token
