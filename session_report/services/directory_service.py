import logging

import httpx

from ..errors import ReportError
from ..models.subjects import Subject

logger = logging.getLogger(__name__)


class DirectoryService:
    def __init__(self, supervisor):
        self.supervisor = supervisor

    async def find_enabled(self, address: str) -> Subject | None:
        """Look up one enabled principal by exact address."""
        subjects = await self._list({"enabled": "true", "address": address})
        for subject in subjects:
            if subject.address.lower() == address.lower():
                return subject
        return None

    async def list_enabled(self) -> list[Subject]:
        """Enumerate every enabled principal in the directory."""
        return await self._list({"enabled": "true"})

    async def _list(self, params: dict) -> list[Subject]:
        handle = await self.supervisor.ensure_live()
        subjects: list[Subject] = []
        path, query = "/users", params
        try:
            while path:
                payload = await handle.get_json(path, params=query)
                rows = payload.get("value", []) if isinstance(payload, dict) else payload
                for row in rows:
                    subject = Subject.from_api(row)
                    if subject.address and subject.enabled:
                        subjects.append(subject)
                # nextLink already carries the query string
                path = payload.get("nextLink") if isinstance(payload, dict) else None
                query = None
        except (httpx.HTTPError, ValueError) as e:
            raise ReportError(f"directory lookup failed: {e}", phase="directory") from e
        return subjects
