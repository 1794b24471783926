import asyncio
import logging

import httpx

from ..errors import ConnectionEstablishError

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"


class Authenticator:
    """Obtains a bearer token for the admin API.

    Three modes, first match wins:
      pre-issued token  – ``access_token`` is returned as-is
      credential        – OAuth2 password grant with ``username``/``password``
      interactive       – OAuth2 device-code flow; the user completes sign-in
                          (including MFA) in a browser while we poll

    A refresh token returned by either grant is kept and used for later
    renewals, so an interactive sign-in happens once per run.
    """

    def __init__(self, settings, transport: httpx.AsyncBaseTransport | None = None, sleep=asyncio.sleep):
        self.settings = settings
        self.transport = transport
        self._sleep = sleep
        self._refresh_token: str | None = None

    async def acquire_token(self) -> str:
        if self.settings.access_token:
            return self.settings.access_token

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout, transport=self.transport
            ) as client:
                if self._refresh_token:
                    token = await self._refresh_grant(client)
                    if token:
                        return token
                if self.settings.has_credential:
                    logger.info("Authenticating as %s", self.settings.username)
                    return await self._password_grant(client)
                return await self._device_code_flow(client)
        except httpx.HTTPError as e:
            raise ConnectionEstablishError(f"authentication request failed: {e}", phase="authenticate") from e

    async def _password_grant(self, client: httpx.AsyncClient) -> str:
        resp = await client.post(
            self.settings.get_token_url(),
            data={
                "grant_type": "password",
                "client_id": self.settings.client_id,
                "scope": self.settings.scope,
                "username": self.settings.username,
                "password": self.settings.password,
            },
        )
        payload = _json_or_empty(resp)
        if resp.status_code >= 400 or "access_token" not in payload:
            detail = payload.get("error_description") or payload.get("error") or f"HTTP {resp.status_code}"
            raise ConnectionEstablishError(f"credential rejected: {detail}", phase="authenticate")
        return self._keep(payload)

    async def _device_code_flow(self, client: httpx.AsyncClient) -> str:
        resp = await client.post(
            self.settings.get_device_code_url(),
            data={"client_id": self.settings.client_id, "scope": self.settings.scope},
        )
        resp.raise_for_status()
        grant = resp.json()

        message = grant.get("message") or (
            f"To sign in, open {grant.get('verification_uri')} and enter code {grant.get('user_code')}"
        )
        logger.warning(message)

        interval = int(grant.get("interval", 5))
        remaining = int(grant.get("expires_in", 900))
        while remaining > 0:
            await self._sleep(interval)
            remaining -= interval

            resp = await client.post(
                self.settings.get_token_url(),
                data={
                    "grant_type": DEVICE_CODE_GRANT,
                    "client_id": self.settings.client_id,
                    "device_code": grant.get("device_code"),
                },
            )
            payload = _json_or_empty(resp)
            if resp.status_code < 400 and "access_token" in payload:
                logger.info("Interactive sign-in completed")
                return self._keep(payload)

            error = payload.get("error")
            if error == "authorization_pending":
                continue
            if error == "slow_down":
                interval += 5
                continue
            raise ConnectionEstablishError(
                f"interactive sign-in failed: {payload.get('error_description') or error or resp.status_code}",
                phase="authenticate",
            )

        raise ConnectionEstablishError("interactive sign-in timed out", phase="authenticate")

    async def _refresh_grant(self, client: httpx.AsyncClient) -> str | None:
        """Trade the cached refresh token for a new access token, or None if it was refused."""
        resp = await client.post(
            self.settings.get_token_url(),
            data={
                "grant_type": "refresh_token",
                "client_id": self.settings.client_id,
                "scope": self.settings.scope,
                "refresh_token": self._refresh_token,
            },
        )
        payload = _json_or_empty(resp)
        if resp.status_code < 400 and "access_token" in payload:
            logger.info("Access token renewed from refresh token")
            return self._keep(payload)

        logger.warning(
            "Refresh token refused (%s); signing in again",
            payload.get("error") or f"HTTP {resp.status_code}",
        )
        self._refresh_token = None
        return None

    def _keep(self, payload: dict) -> str:
        if payload.get("refresh_token"):
            self._refresh_token = payload["refresh_token"]
        return payload["access_token"]


def _json_or_empty(resp: httpx.Response) -> dict:
    try:
        payload = resp.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}
