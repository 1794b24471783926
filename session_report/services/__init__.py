from .directory_service import DirectoryService
from .pagination import PaginationEngine, PAGE_CAP
from .query_service import SessionQueryClient
from .subject_resolver import SubjectResolver

__all__ = [
    "DirectoryService",
    "PaginationEngine",
    "PAGE_CAP",
    "SessionQueryClient",
    "SubjectResolver",
]
