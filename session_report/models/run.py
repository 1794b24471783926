from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from ..dates import format_timestamp, to_utc
from .sessions import SessionRecord


class TimeWindow(BaseModel):
    """Half-open ``[start, end)`` search window in UTC.

    ``end`` is fixed once per run and shared by every subject.
    """

    start: datetime
    end: datetime

    @classmethod
    def ending_at(cls, end: datetime, days: int) -> "TimeWindow":
        end = to_utc(end)
        return cls(start=end - timedelta(days=days), end=end)

    def describe(self) -> str:
        return f"{format_timestamp(self.start)} .. {format_timestamp(self.end)}"


class FilterCriteria(BaseModel):
    category: str = "All"
    uri_filter: Optional[str] = None
    client_version_filter: Optional[str] = None
    include_incomplete: bool = False

    @classmethod
    def from_settings(cls, settings) -> "FilterCriteria":
        return cls(
            category=settings.session_category,
            uri_filter=settings.uri_filter or None,
            client_version_filter=settings.client_version_filter or None,
            include_incomplete=settings.include_incomplete,
        )


class RunCounters(BaseModel):
    total_sessions: int = 0
    matching_sessions: int = 0
    subjects_total: int = 0
    subjects_scanned: int = 0
    queries: int = 0
    retries: int = 0
    handles_opened: int = 0
    boundary_duplicates: int = 0
    degenerate_subjects: int = 0
    unparseable_timestamps: int = 0

    def summary(self) -> str:
        text = (
            f"{self.subjects_scanned}/{self.subjects_total} subjects scanned, "
            f"{self.total_sessions} sessions retrieved, "
            f"{self.matching_sessions} matching, "
            f"{self.queries} queries ({self.retries} retried), "
            f"{self.handles_opened} session handles opened"
        )
        if self.unparseable_timestamps:
            text += f", {self.unparseable_timestamps} unparseable timestamps"
        return text


class PaginationResult(BaseModel):
    records: list[SessionRecord] = Field(default_factory=list)
    passes: int = 0
    degenerate: bool = False
    warning: Optional[str] = None
