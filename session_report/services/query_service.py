import logging
from datetime import datetime
from typing import Any

import httpx

from ..dates import format_timestamp
from ..errors import TransientQueryError
from ..remote.connection import SessionHandle

logger = logging.getLogger(__name__)


def infer_items(payload: Any) -> list[dict]:
    """Pull the row list out of a response envelope."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("value", "items", "sessions"):
            if isinstance(payload.get(key), list):
                return payload[key]
    return []


class SessionQueryClient:
    """Issues one bounded session-history query for one subject.

    The remote API returns at most 1000 rows per call, oldest first, and
    carries no continuation token.
    """

    async def query(self, handle: SessionHandle, subject_uri: str, start: datetime, end: datetime) -> list[dict]:
        params = {
            "user": subject_uri,
            "startTime": format_timestamp(start),
            "endTime": format_timestamp(end),
        }
        try:
            payload = await handle.get_json("/sessions", params=params)
        except httpx.HTTPStatusError as e:
            raise TransientQueryError(
                f"HTTP {e.response.status_code} querying sessions from {params['startTime']}",
                subject=subject_uri, phase="query",
            ) from e
        except httpx.HTTPError as e:
            raise TransientQueryError(
                f"{type(e).__name__} querying sessions from {params['startTime']}: {e}",
                subject=subject_uri, phase="query",
            ) from e
        except ValueError as e:
            raise TransientQueryError(
                f"malformed response body: {e}", subject=subject_uri, phase="query",
            ) from e

        rows = infer_items(payload)
        logger.debug("%s: %d rows for %s .. %s", subject_uri, len(rows), params["startTime"], params["endTime"])
        return rows
