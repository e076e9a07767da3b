"""Append-only local CSV backups.

Each logical log (check-ins, ingest submissions) lives in one storage slot as a
JSON object ``{"version": int, "headers": [str], "rows": [str]}``. Rows are
pre-rendered CSV lines and are only ever appended.

An append reads the whole slot, adds one row and writes the whole slot back.
Two processes appending to the same slot at the same moment can therefore lose
one of the rows (last writer wins). Nothing here coordinates across processes.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from .csv_format import render_row
from .errors import StorageUnavailable
from .logger import get_logger
from .storage import KeyValueStorage

LOGGER = get_logger("backup")

BACKUP_VERSION = 1


class AppendResult(str, enum.Enum):
    APPENDED = "appended"
    RECOVERED = "recovered"  # previous slot content was unreadable and was discarded
    SKIPPED = "skipped"  # no usable storage


@dataclass
class CsvBackup:
    version: int
    headers: List[str]
    rows: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls, headers: Sequence[str]) -> "CsvBackup":
        return cls(version=BACKUP_VERSION, headers=list(headers), rows=[])

    def to_json(self) -> str:
        # ASCII output keeps lone surrogates from scanner input encodable.
        return json.dumps({"version": self.version, "headers": self.headers, "rows": self.rows})


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _decode_version(payload: dict) -> Optional[int]:
    if "version" not in payload or payload["version"] is None:
        # Unversioned payloads predate the version field; same layout as v1.
        return BACKUP_VERSION
    version = payload["version"]
    if isinstance(version, bool) or not isinstance(version, int) or version < 0:
        return None
    return max(version, BACKUP_VERSION)


def decode_backup(raw: Optional[str], headers: Sequence[str]) -> Tuple[CsvBackup, bool]:
    """Decode a stored slot value.

    Returns the backup and whether an unreadable value had to be discarded.
    Persisted headers win over ``headers`` so historical column order survives.
    """
    if raw is None:
        return CsvBackup.empty(headers), False
    try:
        payload = json.loads(raw)
    except (ValueError, TypeError, RecursionError):
        # ValueError covers JSONDecodeError and oversized integer literals.
        return CsvBackup.empty(headers), True
    if not isinstance(payload, dict):
        return CsvBackup.empty(headers), True
    stored_headers = payload.get("headers")
    stored_rows = payload.get("rows")
    if not _is_string_list(stored_headers) or not _is_string_list(stored_rows):
        return CsvBackup.empty(headers), True
    version = _decode_version(payload)
    if version is None:
        return CsvBackup.empty(headers), True
    return (
        CsvBackup(
            version=version,
            headers=list(stored_headers) if stored_headers else list(headers),
            rows=list(stored_rows),
        ),
        False,
    )


def read_backup(storage: Optional[KeyValueStorage], key: str, headers: Sequence[str]) -> CsvBackup:
    """Load a backup for inspection. Unreadable or missing slots read as empty."""
    if storage is None:
        return CsvBackup.empty(headers)
    try:
        raw = storage.get_item(key)
    except StorageUnavailable as exc:
        LOGGER.warning("Could not read backup '%s': %s", key, exc)
        return CsvBackup.empty(headers)
    backup, recovered = decode_backup(raw, headers)
    if recovered:
        LOGGER.warning("Backup '%s' is unreadable; showing it as empty", key)
    return backup


def append_row(
    storage: Optional[KeyValueStorage],
    key: str,
    headers: Sequence[str],
    values: Sequence[Any],
) -> AppendResult:
    """Render ``values`` as one CSV row and append it to the backup at ``key``.

    Never raises for storage problems: a missing or failing store is reported
    as SKIPPED so the caller's submission path carries on.
    """
    if storage is None:
        LOGGER.debug("No local storage; skipping backup for '%s'", key)
        return AppendResult.SKIPPED

    row = render_row(values)
    try:
        existing = storage.get_item(key)
        backup, recovered = decode_backup(existing, headers)
        if recovered:
            LOGGER.warning("Unable to parse CSV backup '%s', resetting", key)
        backup.rows.append(row)
        storage.set_item(key, backup.to_json())
    except StorageUnavailable as exc:
        LOGGER.warning("Skipping local backup for '%s': %s", key, exc)
        return AppendResult.SKIPPED

    return AppendResult.RECOVERED if recovered else AppendResult.APPENDED
