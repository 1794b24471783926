import csv
import logging
import os
from pathlib import Path

from ..errors import ExportError, PreflightError
from ..models.sessions import REPORT_COLUMNS, SessionRecord

logger = logging.getLogger(__name__)


def check_writable(output_path: str):
    """Fail before scanning if the report file could not be written."""
    path = Path(output_path)
    if path.is_dir():
        raise PreflightError(f"output path {output_path} is a directory", phase="preflight")
    parent = path.parent
    if not parent.is_dir():
        raise PreflightError(f"output directory {parent} does not exist", phase="preflight")
    if path.exists():
        writable = os.access(path, os.W_OK)
    else:
        writable = os.access(parent, os.W_OK)
    if not writable:
        raise PreflightError(f"output path {output_path} is not writable", phase="preflight")


def report_columns(records: list[SessionRecord], full_detail: bool) -> list[str]:
    if not full_detail:
        return list(REPORT_COLUMNS)
    extra = sorted({k for r in records for k in r.extra if k not in REPORT_COLUMNS})
    return REPORT_COLUMNS + extra


def write_report(output_path: str, records: list[SessionRecord], full_detail: bool = False) -> int:
    """Write one CSV row per record; returns the number of rows written."""
    fieldnames = report_columns(records, full_detail)
    try:
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(
                f,
                fieldnames=fieldnames,
                extrasaction="ignore",
                restval="",
                quoting=csv.QUOTE_MINIMAL,
            )
            writer.writeheader()
            for record in records:
                writer.writerow(record.to_row(full_detail))
    except (OSError, csv.Error) as e:
        raise ExportError(f"failed to write report {output_path}: {e}", phase="export") from e

    logger.info("Wrote %d sessions to %s", len(records), output_path)
    return len(records)
