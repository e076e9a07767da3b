"""Local-first check-in and ingest for recruitment events."""

from .backup import AppendResult, CsvBackup, append_row, decode_backup, read_backup
from .checkin import CheckInFlow, CheckInOutcome, CheckInStatus, CheckInStep
from .credentials import CredentialStore, login, logout
from .csv_format import quote, render_csv, render_row
from .gateway import HttpGateway, SubmissionResult
from .ingest import IngestFlow, IngestOutcome, IngestStatus, IngestStep, PhotoUpload
from .storage import FileStorage, MemoryStorage, open_storage

__all__ = [
    "AppendResult",
    "CsvBackup",
    "append_row",
    "decode_backup",
    "read_backup",
    "CheckInFlow",
    "CheckInOutcome",
    "CheckInStatus",
    "CheckInStep",
    "CredentialStore",
    "login",
    "logout",
    "quote",
    "render_csv",
    "render_row",
    "HttpGateway",
    "SubmissionResult",
    "IngestFlow",
    "IngestOutcome",
    "IngestStatus",
    "IngestStep",
    "PhotoUpload",
    "FileStorage",
    "MemoryStorage",
    "open_storage",
]
