import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx

from ..errors import ConnectionEstablishError
from .auth import Authenticator

logger = logging.getLogger(__name__)

# The remote side expires admin sessions after an hour; recycle well before.
HANDLE_MAX_AGE = timedelta(minutes=45)
RENEW_BACKOFF_SECONDS = 10


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionHandle:
    """Authenticated channel to the admin API.

    Wraps an httpx ``AsyncClient`` carrying the bearer token. Only the
    ConnectionSupervisor creates or closes handles.
    """

    def __init__(self, client: httpx.AsyncClient, created_at: datetime):
        self._client = client
        self.created_at = created_at

    @property
    def is_open(self) -> bool:
        return not self._client.is_closed

    async def get_json(self, path: str, params: dict | None = None) -> Any:
        resp = await self._client.get(path, params=params)
        resp.raise_for_status()
        return resp.json()

    async def close(self):
        await self._client.aclose()


class ConnectionSupervisor:
    """Owns the single session handle and recycles it.

    Renewal happens proactively, once the handle is ``HANDLE_MAX_AGE`` old,
    and reactively, after a query marks it broken or asks for
    ``force_renew()``. Establishing a handle is never retried here: a
    failure raises ``ConnectionEstablishError`` and ends the run.
    """

    def __init__(
        self,
        settings,
        authenticator: Authenticator | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        sleep=asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.authenticator = authenticator or Authenticator(settings, transport=transport)
        self.transport = transport
        self._clock = clock
        self._sleep = sleep
        self._handle: SessionHandle | None = None
        self._broken = False
        self.handles_opened = 0

    @property
    def handle_age(self) -> timedelta | None:
        if self._handle is None:
            return None
        return self._clock() - self._handle.created_at

    def _renew_reason(self) -> str | None:
        if self._handle is None:
            return "no handle"
        if self._broken:
            return "handle marked broken"
        if not self._handle.is_open:
            return "handle closed"
        if self.handle_age >= HANDLE_MAX_AGE:
            return f"handle age {self.handle_age} exceeds {HANDLE_MAX_AGE}"
        return None

    async def ensure_live(self) -> SessionHandle:
        reason = self._renew_reason()
        if reason:
            await self._renew(reason)
        return self._handle

    async def force_renew(self) -> SessionHandle:
        logger.warning("Renewing session handle in %ds after a failed query", RENEW_BACKOFF_SECONDS)
        await self._sleep(RENEW_BACKOFF_SECONDS)
        await self._renew("forced after query failure")
        return self._handle

    def mark_broken(self):
        self._broken = True

    async def _renew(self, reason: str):
        if self._handle is not None:
            logger.info("Recycling session handle: %s", reason)
            await self._teardown()
        else:
            logger.info("Opening session handle to %s", self.settings.api_base_url)

        try:
            token = await self.authenticator.acquire_token()
        except ConnectionEstablishError:
            raise
        except Exception as e:
            raise ConnectionEstablishError(f"could not establish session: {e}", phase="connect") from e

        client = httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            timeout=self.settings.request_timeout,
            transport=self.transport,
        )
        self._handle = SessionHandle(client, created_at=self._clock())
        self._broken = False
        self.handles_opened += 1

    async def _teardown(self):
        handle, self._handle = self._handle, None
        try:
            await handle.close()
        except Exception as e:
            logger.warning("Error closing session handle: %s", e)

    async def close(self):
        if self._handle is not None:
            await self._teardown()
            logger.info("Session handle released")
