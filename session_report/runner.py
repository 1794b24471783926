import asyncio
import logging
from datetime import datetime

import httpx
from pydantic import BaseModel, Field

from .export.csv_export import check_writable, write_report
from .models.run import FilterCriteria, RunCounters, TimeWindow
from .models.sessions import SessionRecord
from .models.subjects import Subject
from .remote.auth import Authenticator
from .remote.connection import ConnectionSupervisor, utc_now
from .services.directory_service import DirectoryService
from .services.pagination import PAGE_CAP, PaginationEngine
from .services.query_service import SessionQueryClient
from .services.subject_resolver import SubjectResolver
from .viewer import serve

logger = logging.getLogger(__name__)


class RunContext:
    """Per-run state handed to every component.

    The supervisor is the only writer of the session handle; the pagination
    engine and the runner are the only writers of the counters.
    """

    def __init__(self, settings, window: TimeWindow, supervisor: ConnectionSupervisor):
        self.settings = settings
        self.window = window
        self.supervisor = supervisor
        self.criteria = FilterCriteria.from_settings(settings)
        self.counters = RunCounters()


class Report(BaseModel):
    window: TimeWindow
    criteria: FilterCriteria
    counters: RunCounters
    subjects: list[Subject] = Field(default_factory=list)
    records: list[SessionRecord] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    full_detail: bool = False


def resolve_window(settings, now: datetime) -> TimeWindow:
    """Fix the window end once per run so every subject shares it."""
    end = settings.end_instant or now
    return TimeWindow.ending_at(end, settings.days_to_search)


class ReportRunner:
    def __init__(self, context: RunContext, query_client: SessionQueryClient | None = None, page_cap: int = PAGE_CAP):
        self.context = context
        self.engine = PaginationEngine(
            context.supervisor,
            query_client or SessionQueryClient(),
            context.criteria,
            context.counters,
            full_detail=context.settings.full_detail,
            page_cap=page_cap,
        )
        self.warnings: list[str] = []

    async def run(self, subjects: list[Subject]) -> list[SessionRecord]:
        """Paginate every subject in address order and merge the matches."""
        counters = self.context.counters
        ordered = sorted(subjects, key=lambda s: s.sort_key)
        counters.subjects_total = len(ordered)

        merged: list[SessionRecord] = []
        for i, subject in enumerate(ordered, start=1):
            before = counters.total_sessions
            result = await self.engine.fetch_all_for_subject(subject, self.context.window)
            if result.degenerate:
                self.warnings.append(f"{subject.address}: {result.warning}")

            merged.extend(result.records)
            counters.matching_sessions += len(result.records)
            counters.subjects_scanned += 1
            logger.info(
                "[%d/%d] %s: %d sessions, %d matching (%d passes)",
                i, len(ordered), subject.address,
                counters.total_sessions - before, len(result.records), result.passes,
            )
        return merged


async def run_report(
    settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    clock=utc_now,
    sleep=asyncio.sleep,
    page_cap: int = PAGE_CAP,
    serve_viewer: bool = True,
) -> Report:
    """Preflight, scan every subject, then hand the result to the sink.

    The session handle is released before returning or raising, whatever
    the outcome.
    """
    window = resolve_window(settings, clock())
    if settings.output_mode == "file":
        check_writable(settings.output_path)

    supervisor = ConnectionSupervisor(
        settings,
        Authenticator(settings, transport=transport, sleep=sleep),
        clock=clock,
        sleep=sleep,
        transport=transport,
    )
    try:
        await supervisor.ensure_live()
        subjects = await SubjectResolver(DirectoryService(supervisor)).resolve(settings)

        context = RunContext(settings, window, supervisor)
        logger.info(
            "Searching %d subjects for %s sessions in %s",
            len(subjects), settings.session_category, window.describe(),
        )
        runner = ReportRunner(context, page_cap=page_cap)
        records = await runner.run(subjects)

        context.counters.handles_opened = supervisor.handles_opened
        report = Report(
            window=window,
            criteria=context.criteria,
            counters=context.counters,
            subjects=subjects,
            records=records,
            warnings=runner.warnings,
            full_detail=settings.full_detail,
        )

        if settings.output_mode == "file":
            write_report(settings.output_path, records, settings.full_detail)
    finally:
        await supervisor.close()

    logger.info("Done: %s", report.counters.summary())
    for warning in report.warnings:
        logger.warning("Incomplete pagination for %s", warning)

    if settings.output_mode == "viewer" and serve_viewer:
        await serve(report, settings)
    return report
