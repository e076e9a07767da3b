"""Event names and backup slot layouts shared by the flows."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Tuple

# Must match the remote sheet's column headers exactly.
EVENT_HEADERS: Tuple[str, ...] = (
    "Event 1: Meet & Greet",
    "Event 2: Speaker Series",
    "Event 3: Facility Tour",
    "Event 4: Social Mixer",
    "Event 5: Professional Workshop",
)

ID_NUMBER_LENGTH = 10

CHECKIN_BACKUP_KEY = "checkInCsvBackup"
CHECKIN_BACKUP_HEADERS: Tuple[str, ...] = ("timestamp", "eventType", "studentId")

INGEST_BACKUP_KEY = "ingestCsvBackup"
INGEST_BACKUP_HEADERS: Tuple[str, ...] = (
    "timestamp",
    "pnmName",
    "wiscEmail",
    "studentId",
    "photoFileName",
    "photoFileSize",
)


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
