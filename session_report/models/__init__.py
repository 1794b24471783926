from .sessions import SessionRecord, REPORT_COLUMNS
from .subjects import Subject, normalize_address
from .run import TimeWindow, FilterCriteria, RunCounters, PaginationResult

__all__ = [
    "SessionRecord",
    "REPORT_COLUMNS",
    "Subject",
    "normalize_address",
    "TimeWindow",
    "FilterCriteria",
    "RunCounters",
    "PaginationResult",
]
