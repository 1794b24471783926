import logging
from datetime import datetime

from ..errors import QueryFailedError, TransientQueryError
from ..models.run import FilterCriteria, PaginationResult, RunCounters, TimeWindow
from ..models.sessions import SessionRecord
from ..models.subjects import Subject
from .filters import apply_filters

logger = logging.getLogger(__name__)

# Fixed by the remote API; a batch this size means "truncated, ask again".
PAGE_CAP = 1000
MAX_PASSES = 100


def sort_by_end_time(batch: list[SessionRecord], window_start: datetime) -> list[SessionRecord]:
    """Stable ascending sort by end time.

    Records without an end time sort as if they ended at the window start.
    """
    return sorted(batch, key=lambda r: r.end_time or window_start)


def next_cursor(sorted_batch: list[SessionRecord]) -> datetime | None:
    """Greatest known end time in an end-time-sorted batch, if any."""
    for record in reversed(sorted_batch):
        if record.end_time is not None:
            return record.end_time
    return None


class PaginationEngine:
    """Reconstructs a subject's full history from a truncating query API.

    Each pass queries ``[cursor, window.end)``. When a batch comes back
    full, the greatest end time in it becomes the next cursor. A record
    ending exactly on the cursor can be delivered twice; the repeat is
    dropped by session id.
    """

    def __init__(
        self,
        supervisor,
        query_client,
        criteria: FilterCriteria,
        counters: RunCounters,
        *,
        full_detail: bool = False,
        page_cap: int = PAGE_CAP,
        max_passes: int = MAX_PASSES,
    ):
        self.supervisor = supervisor
        self.query_client = query_client
        self.criteria = criteria
        self.counters = counters
        self.full_detail = full_detail
        self.page_cap = page_cap
        self.max_passes = max_passes

    async def fetch_all_for_subject(self, subject: Subject, window: TimeWindow) -> PaginationResult:
        cursor = window.start
        accumulated: list[SessionRecord] = []
        boundary_ids: set[str] = set()
        passes = 0

        while True:
            if passes >= self.max_passes:
                return self._degenerate(
                    subject, accumulated, passes,
                    f"stopped after {passes} pagination passes at cursor {cursor.isoformat()}",
                )
            passes += 1

            rows = await self._query(subject, cursor, window.end)
            batch = [SessionRecord.from_api(row, subject, self.full_detail) for row in rows]
            self.counters.total_sessions += len(batch)
            self._report_unparsed(subject, batch)

            for record in apply_filters(batch, self.criteria):
                if record.session_id and record.session_id in boundary_ids:
                    self.counters.boundary_duplicates += 1
                    continue
                accumulated.append(record)

            logger.debug(
                "%s: pass %d from %s returned %d rows (%d kept so far)",
                subject.address, passes, cursor.isoformat(), len(batch), len(accumulated),
            )

            if len(batch) < self.page_cap:
                return PaginationResult(records=accumulated, passes=passes)

            new_cursor = next_cursor(sort_by_end_time(batch, window.start))
            if new_cursor is None:
                return self._degenerate(
                    subject, accumulated, passes,
                    f"full batch of {len(batch)} sessions has no end times; cannot advance past {cursor.isoformat()}",
                )
            if new_cursor <= cursor:
                return self._degenerate(
                    subject, accumulated, passes,
                    f"full batch of {len(batch)} sessions does not advance past {cursor.isoformat()}",
                )
            boundary_ids = {r.session_id for r in batch if r.end_time == new_cursor and r.session_id}
            cursor = new_cursor

    async def _query(self, subject: Subject, start: datetime, end: datetime) -> list[dict]:
        """Query once; on failure renew the handle and retry exactly once."""
        handle = await self.supervisor.ensure_live()
        self.counters.queries += 1
        try:
            return await self.query_client.query(handle, subject.address, start, end)
        except TransientQueryError as e:
            logger.warning("%s; renewing handle and retrying once", e)
            self.supervisor.mark_broken()

        handle = await self.supervisor.force_renew()
        self.counters.queries += 1
        self.counters.retries += 1
        try:
            return await self.query_client.query(handle, subject.address, start, end)
        except TransientQueryError as e:
            raise QueryFailedError(
                f"query failed after handle renewal: {e.message}",
                subject=subject.address, phase="query",
            ) from e

    def _report_unparsed(self, subject: Subject, batch: list[SessionRecord]) -> None:
        for record in batch:
            for field, raw in record.unparsed.items():
                self.counters.unparseable_timestamps += 1
                logger.warning(
                    "%s: session %s has an unparseable %s %r",
                    subject.address, record.session_id or "<no id>", field, raw,
                )

    def _degenerate(self, subject: Subject, records, passes: int, warning: str) -> PaginationResult:
        logger.warning("%s: %s; keeping %d sessions collected so far", subject.address, warning, len(records))
        self.counters.degenerate_subjects += 1
        return PaginationResult(records=records, passes=passes, degenerate=True, warning=warning)
