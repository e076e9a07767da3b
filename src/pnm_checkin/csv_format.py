"""CSV rendering for backup rows.

Every field is wrapped in double quotes and embedded quotes are doubled.
Newlines are left inside the quoted field untouched.
"""

from __future__ import annotations

from typing import Any, Iterable, TYPE_CHECKING

if TYPE_CHECKING:
    from .backup import CsvBackup


def quote(value: Any) -> str:
    safe = str(value).replace('"', '""')
    return f'"{safe}"'


def render_row(values: Iterable[Any]) -> str:
    return ",".join(quote(value) for value in values)


def render_csv(backup: "CsvBackup") -> str:
    """Render the header line followed by every stored row."""
    lines = [render_row(backup.headers), *backup.rows]
    return "\n".join(lines) + "\n"
