import json
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..dates import format_timestamp, parse_timestamp
from .subjects import Subject

REPORT_COLUMNS = [
    "subject_display_name",
    "subject_uri",
    "session_id",
    "start_time",
    "end_time",
    "from_uri",
    "to_uri",
    "from_number",
    "to_number",
    "referred_by",
    "from_client_version",
    "to_client_version",
    "media_types",
]

# Wire field -> model field. Anything else is kept in ``extra`` in full detail mode.
_WIRE_FIELDS = {
    "sessionId": "session_id",
    "startTime": "start_time",
    "endTime": "end_time",
    "fromUri": "from_uri",
    "toUri": "to_uri",
    "fromNumber": "from_number",
    "toNumber": "to_number",
    "referredBy": "referred_by",
    "fromClientVersion": "from_client_version",
    "toClientVersion": "to_client_version",
    "mediaTypesDescription": "media_types",
}
_IGNORED_WIRE_FIELDS = {"id", "userUri", "userDisplayName"}


class SessionRecord(BaseModel):
    session_id: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    from_uri: str = ""
    to_uri: str = ""
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    referred_by: Optional[str] = None
    from_client_version: str = ""
    to_client_version: str = ""
    media_types: str = ""
    subject_uri: str
    subject_display_name: str = ""
    extra: dict[str, Any] = Field(default_factory=dict)
    # Timestamps the source reported but that could not be parsed, keyed by field.
    unparsed: dict[str, str] = Field(default_factory=dict, exclude=True)

    @property
    def is_complete(self) -> bool:
        """A session the source reported no end time for never finished."""
        return self.end_time is not None or "end_time" in self.unparsed

    @classmethod
    def from_api(cls, row: dict, subject: Subject, full_detail: bool = False) -> "SessionRecord":
        """Build a record from one raw query row, stamped with its subject."""
        session_id = row.get("sessionId", row.get("id"))

        media = row.get("mediaTypesDescription", "")
        if isinstance(media, list):
            media = ", ".join(str(m) for m in media)

        extra = {}
        if full_detail:
            extra = {
                k: v for k, v in row.items()
                if k not in _WIRE_FIELDS and k not in _IGNORED_WIRE_FIELDS
            }

        timestamps, unparsed = {}, {}
        for wire_name in ("startTime", "endTime"):
            field = _WIRE_FIELDS[wire_name]
            try:
                timestamps[field] = parse_timestamp(row.get(wire_name))
            except ValueError:
                timestamps[field] = None
                unparsed[field] = str(row[wire_name])

        return cls(
            session_id=str(session_id) if session_id is not None else "",
            start_time=timestamps["start_time"],
            end_time=timestamps["end_time"],
            from_uri=row.get("fromUri") or "",
            to_uri=row.get("toUri") or "",
            from_number=row.get("fromNumber"),
            to_number=row.get("toNumber"),
            referred_by=row.get("referredBy"),
            from_client_version=row.get("fromClientVersion") or "",
            to_client_version=row.get("toClientVersion") or "",
            media_types=media or "",
            subject_uri=subject.address,
            subject_display_name=subject.display_name,
            extra=extra,
            unparsed=unparsed,
        )

    def to_row(self, full_detail: bool = False) -> dict[str, Any]:
        """Flatten to a report row; nested diagnostic payloads become JSON."""
        row: dict[str, Any] = {}
        for column in REPORT_COLUMNS:
            value = getattr(self, column)
            if isinstance(value, datetime):
                value = format_timestamp(value)
            elif value is None and column in self.unparsed:
                value = self.unparsed[column]
            row[column] = "" if value is None else value

        if full_detail:
            for k, v in self.extra.items():
                if isinstance(v, (list, dict)):
                    v = json.dumps(v, ensure_ascii=False)
                row[k] = "" if v is None else v
        return row
