"""Test configuration and shared fixtures for session-report tests.

The remote admin API is replaced by a small FastAPI app driven through
``httpx.ASGITransport``, or by scripted fakes for unit tests.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI

from session_report.config import ReportSettings
from session_report.dates import format_timestamp, parse_timestamp
from session_report.errors import TransientQueryError
from session_report.models import FilterCriteria, RunCounters, Subject, TimeWindow


END = datetime(2026, 3, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_settings(**overrides) -> ReportSettings:
    defaults = {
        "api_base_url": "http://remote.test",
        "access_token": "test-token",
        "days_to_search": 30,
        "session_category": "All",
        "output_mode": "viewer",
        "end_instant": END,
    }
    defaults.update(overrides)
    return ReportSettings(**defaults)


def make_row(i: int, end_time: datetime | None, *, media: str = "Audio", **fields) -> dict:
    """One raw session row as the remote API returns it."""
    start_time = (end_time or END) - timedelta(minutes=5)
    row = {
        "sessionId": f"s-{i}",
        "startTime": format_timestamp(start_time),
        "endTime": format_timestamp(end_time) if end_time else None,
        "fromUri": "sip:caller@example.com",
        "toUri": f"sip:callee{i}@example.com",
        "fromClientVersion": "UCCAPI/16.0",
        "toClientVersion": "UCCAPI/15.0",
        "mediaTypesDescription": media,
    }
    row.update(fields)
    return row


def make_history(count: int, base: datetime, **fields) -> list[dict]:
    """``count`` rows ending one minute apart, starting at ``base``."""
    return [make_row(i, base + timedelta(minutes=i), **fields) for i in range(count)]


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeSupervisor:
    def __init__(self):
        self.ensure_calls = 0
        self.renew_calls = 0
        self.broken = False

    async def ensure_live(self):
        self.ensure_calls += 1
        return "handle"

    async def force_renew(self):
        self.renew_calls += 1
        self.broken = False
        return "renewed-handle"

    def mark_broken(self):
        self.broken = True


class ScriptedQueryClient:
    """Replays a fixed list of responses; exceptions in the list are raised."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def query(self, handle, subject_uri, start, end):
        self.calls.append({"handle": handle, "subject": subject_uri, "start": start, "end": end})
        response = self.responses.pop(0) if self.responses else []
        if isinstance(response, Exception):
            raise response
        return response


class HistoryQueryClient:
    """Behaves like the remote API over an in-memory history.

    Returns rows whose end time is in ``[start, end)``, oldest first,
    truncated to ``page_cap``.
    """

    def __init__(self, rows: list[dict], page_cap: int = 1000):
        self.rows = rows
        self.page_cap = page_cap
        self.calls = []

    async def query(self, handle, subject_uri, start, end):
        self.calls.append({"handle": handle, "subject": subject_uri, "start": start, "end": end})
        matching = [
            r for r in self.rows
            if start <= parse_timestamp(r["endTime"]) < end
        ]
        matching.sort(key=lambda r: parse_timestamp(r["endTime"]))
        return matching[: self.page_cap]


class FakeDirectory:
    def __init__(self, subjects: list[Subject]):
        self.subjects = subjects
        self.lookups = []

    async def find_enabled(self, address):
        self.lookups.append(address)
        for s in self.subjects:
            if s.enabled and s.address.lower() == address.lower():
                return s
        return None

    async def list_enabled(self):
        return [s for s in self.subjects if s.enabled]


def make_remote_app(users: list[dict], sessions: dict[str, list[dict]], page_cap: int = 1000) -> FastAPI:
    """FastAPI stand-in for the hosted admin API."""
    app = FastAPI()
    app.state.session_calls = []
    app.state.user_calls = []

    @app.get("/users")
    async def list_users(enabled: str = "true", address: str | None = None):
        app.state.user_calls.append(address)
        rows = [u for u in users if u.get("enabled", True) or enabled != "true"]
        if address:
            rows = [u for u in rows if u["sipAddress"].lower() == address.lower()]
        return {"value": rows}

    @app.get("/sessions")
    async def list_sessions(user: str, startTime: str, endTime: str):
        start, end = parse_timestamp(startTime), parse_timestamp(endTime)
        app.state.session_calls.append({"user": user, "start": start, "end": end})
        rows = [
            r for r in sessions.get(user, [])
            if start <= parse_timestamp(r["endTime"]) < end
        ]
        rows.sort(key=lambda r: parse_timestamp(r["endTime"]))
        return {"value": rows[:page_cap]}

    return app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    return _make_settings()


@pytest.fixture
def window():
    return TimeWindow.ending_at(END, 30)


@pytest.fixture
def subject():
    return Subject(address="sip:alice@example.com", display_name="Alice")


@pytest.fixture
def counters():
    return RunCounters()


@pytest.fixture
def criteria_all():
    return FilterCriteria(category="All", include_incomplete=True)


@pytest.fixture
def fake_supervisor():
    return FakeSupervisor()


@pytest.fixture
def mock_authenticator():
    auth = AsyncMock()
    auth.acquire_token = AsyncMock(return_value="token-1")
    return auth


@pytest.fixture
def transient_error():
    return TransientQueryError("ReadTimeout querying sessions", subject="sip:alice@example.com", phase="query")
