from typing import Optional


class ReportError(Exception):
    """Base error for a report run.

    Carries the subject address and run phase so a failure can be diagnosed
    from the message alone.
    """

    def __init__(self, message: str, subject: Optional[str] = None, phase: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.subject = subject
        self.phase = phase

    def __str__(self) -> str:
        parts = []
        if self.phase:
            parts.append(f"[{self.phase}]")
        if self.subject:
            parts.append(f"{self.subject}:")
        parts.append(self.message)
        return " ".join(parts)


class PreflightError(ReportError):
    """Raised before any scanning starts (bad output path, unreadable input)."""


class SubjectNotFoundError(ReportError):
    pass


class EmptyDirectoryError(ReportError):
    pass


class ConnectionEstablishError(ReportError):
    """Authentication or handle creation failed. Never retried."""


class TransientQueryError(ReportError):
    """A single query attempt failed (timeout, transport or HTTP error)."""


class QueryFailedError(ReportError):
    """A query failed again after the handle was renewed."""


class ExportError(ReportError):
    pass
