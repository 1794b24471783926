"""Tests for token acquisition."""

import json
from unittest.mock import AsyncMock
from urllib.parse import parse_qs

import httpx
import pytest

from conftest import _make_settings
from session_report.errors import ConnectionEstablishError
from session_report.remote.auth import DEVICE_CODE_GRANT, Authenticator


pytestmark = pytest.mark.asyncio


def _form(request: httpx.Request) -> dict:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


async def test_pre_issued_token_used_as_is():
    auth = Authenticator(_make_settings(access_token="abc"))
    assert await auth.acquire_token() == "abc"


async def test_password_grant():
    seen = []

    def handler(request):
        seen.append((str(request.url), _form(request)))
        return httpx.Response(200, json={"access_token": "from-password", "expires_in": 3600})

    settings = _make_settings(access_token=None, username="admin@example.com", password="secret")
    auth = Authenticator(settings, transport=httpx.MockTransport(handler))

    assert await auth.acquire_token() == "from-password"
    url, form = seen[0]
    assert url == "http://remote.test/oauth2/token"
    assert form["grant_type"] == "password"
    assert form["username"] == "admin@example.com"


async def test_rejected_credential_is_fatal():
    def handler(request):
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "bad password"})

    settings = _make_settings(access_token=None, username="admin@example.com", password="wrong")
    auth = Authenticator(settings, transport=httpx.MockTransport(handler))

    with pytest.raises(ConnectionEstablishError) as exc_info:
        await auth.acquire_token()
    assert "bad password" in str(exc_info.value)


async def test_device_code_flow_polls_until_signed_in():
    polls = []

    def handler(request):
        if request.url.path.endswith("/devicecode"):
            return httpx.Response(200, json={
                "device_code": "dev-1",
                "user_code": "ABCD-EFGH",
                "verification_uri": "https://login.example.com/device",
                "interval": 2,
                "expires_in": 60,
            })
        form = _form(request)
        polls.append(form)
        if len(polls) < 3:
            return httpx.Response(400, json={"error": "authorization_pending"})
        return httpx.Response(200, json={"access_token": "interactive"})

    sleep = AsyncMock()
    auth = Authenticator(_make_settings(access_token=None), transport=httpx.MockTransport(handler), sleep=sleep)

    assert await auth.acquire_token() == "interactive"
    assert len(polls) == 3
    assert all(p["grant_type"] == DEVICE_CODE_GRANT and p["device_code"] == "dev-1" for p in polls)
    sleep.assert_awaited_with(2)


async def test_device_code_flow_declined():
    def handler(request):
        if request.url.path.endswith("/devicecode"):
            return httpx.Response(200, content=json.dumps({"device_code": "d", "interval": 1, "expires_in": 10}))
        return httpx.Response(400, json={"error": "authorization_declined"})

    auth = Authenticator(_make_settings(access_token=None), transport=httpx.MockTransport(handler), sleep=AsyncMock())

    with pytest.raises(ConnectionEstablishError):
        await auth.acquire_token()


async def test_device_code_flow_times_out():
    def handler(request):
        if request.url.path.endswith("/devicecode"):
            return httpx.Response(200, json={"device_code": "d", "interval": 5, "expires_in": 10})
        return httpx.Response(400, json={"error": "authorization_pending"})

    auth = Authenticator(_make_settings(access_token=None), transport=httpx.MockTransport(handler), sleep=AsyncMock())

    with pytest.raises(ConnectionEstablishError) as exc_info:
        await auth.acquire_token()
    assert "timed out" in str(exc_info.value)


async def test_transport_failure_is_fatal():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    settings = _make_settings(access_token=None, username="u", password="p")
    auth = Authenticator(settings, transport=httpx.MockTransport(handler))

    with pytest.raises(ConnectionEstablishError):
        await auth.acquire_token()


async def test_renewal_uses_refresh_token_instead_of_signing_in_again():
    requests = []

    def handler(request):
        requests.append(request.url.path)
        if request.url.path.endswith("/devicecode"):
            return httpx.Response(200, json={"device_code": "dev-1", "user_code": "ABCD", "interval": 1})
        form = _form(request)
        if form["grant_type"] == "refresh_token":
            assert form["refresh_token"] == "refresh-1"
            return httpx.Response(200, json={"access_token": "renewed", "refresh_token": "refresh-2"})
        return httpx.Response(200, json={"access_token": "interactive", "refresh_token": "refresh-1"})

    auth = Authenticator(_make_settings(access_token=None), transport=httpx.MockTransport(handler), sleep=AsyncMock())

    assert await auth.acquire_token() == "interactive"
    assert await auth.acquire_token() == "renewed"
    assert requests.count("/oauth2/devicecode") == 1
    assert auth._refresh_token == "refresh-2"


async def test_refused_refresh_token_falls_back_to_credential():
    grants = []

    def handler(request):
        form = _form(request)
        grants.append(form["grant_type"])
        if form["grant_type"] == "refresh_token":
            return httpx.Response(400, json={"error": "invalid_grant"})
        return httpx.Response(200, json={"access_token": f"token-{len(grants)}", "refresh_token": "r"})

    settings = _make_settings(access_token=None, username="u", password="p")
    auth = Authenticator(settings, transport=httpx.MockTransport(handler))

    await auth.acquire_token()
    assert await auth.acquire_token() == "token-3"
    assert grants == ["password", "refresh_token", "password"]
