"""UTC timestamp parsing and wire formatting."""
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# "/Date(1771581600000)/" or "/Date(1771581600000+0100)/"; the offset is display only.
_DOTNET_DATE = re.compile(r"^/Date\((-?\d+)(?:[+-]\d{4})?\)/$")

# Naive fallbacks seen in exported admin data, read as UTC.
_FALLBACK_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M",
)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an API timestamp into an aware UTC datetime.

    Absent or blank values yield None. A value that is present but not a
    recognised timestamp raises ValueError so the caller can report it.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if not isinstance(value, str):
        raise ValueError(f"unsupported timestamp value {value!r}")

    token = value.strip()
    match = _DOTNET_DATE.match(token)
    if match:
        return EPOCH + timedelta(milliseconds=int(match.group(1)))

    try:
        return to_utc(datetime.fromisoformat(token.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return to_utc(datetime.strptime(token, fmt))
        except ValueError:
            continue
    raise ValueError(f"unrecognised timestamp {value!r}")


def format_timestamp(value: datetime) -> str:
    """Render as ISO-8601 with milliseconds and a Z suffix."""
    return to_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
