import csv
import logging
from pathlib import Path

from ..errors import PreflightError

logger = logging.getLogger(__name__)

USER_COLUMN = "User"


class SubjectListImporter:
    """Reads subject addresses from a CSV file with a ``User`` column."""

    def __init__(self):
        self._status = {
            "state": "idle",
            "rows_total": 0,
            "rows_resolved": 0,
            "skipped": [],
        }

    @property
    def status(self) -> dict:
        return dict(self._status)

    def read(self, list_path: str) -> list[str]:
        self._status["state"] = "running"
        path = Path(list_path)
        if not path.exists():
            self._status["state"] = "error"
            raise PreflightError(f"subject list not found: {list_path}", phase="import")

        try:
            with open(path, "r", encoding="utf-8-sig", newline="") as f:
                reader = csv.DictReader(f)
                if not reader.fieldnames or USER_COLUMN not in reader.fieldnames:
                    self._status["state"] = "error"
                    raise PreflightError(
                        f"subject list {list_path} has no '{USER_COLUMN}' column", phase="import",
                    )
                addresses = []
                for line_num, row in enumerate(reader, start=2):
                    value = (row.get(USER_COLUMN) or "").strip()
                    if not value:
                        logger.debug("Skipping blank row %d in %s", line_num, path)
                        continue
                    addresses.append(value)
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            self._status["state"] = "error"
            raise PreflightError(f"failed to read subject list {list_path}: {e}", phase="import") from e

        self._status["rows_total"] = len(addresses)
        return addresses

    def mark_resolved(self):
        self._status["rows_resolved"] += 1

    def mark_skipped(self, address: str, reason: str):
        logger.warning("Skipping %s from subject list: %s", address, reason)
        self._status["skipped"].append(address)

    def finish(self):
        self._status["state"] = "completed"
