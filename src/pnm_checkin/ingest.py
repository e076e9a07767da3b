"""New-PNM ingest flow.

The form is validated first; nothing is logged or sent for an incomplete
submission. A valid submission is written to the local backup (photo metadata
only) before the photo is normalized and the record is sent.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .backup import AppendResult, append_row
from .credentials import CredentialStore
from .errors import FlowStateError, PhotoNormalizationError
from .events import ID_NUMBER_LENGTH, INGEST_BACKUP_HEADERS, INGEST_BACKUP_KEY, utc_timestamp
from .gateway import CONNECTION_ERROR_MESSAGE, SubmissionGateway
from .logger import get_logger
from .photos import prepare_photo
from .storage import KeyValueStorage

LOGGER = get_logger("ingest")

MISSING_PHOTO_MESSAGE = "Please upload or take a headshot photo"
BAD_ID_MESSAGE = "ID numbers must be exactly 10 digits"
PHOTO_ERROR_MESSAGE = "Failed to process photo. Please try again."


class IngestStep(str, enum.Enum):
    EDITING = "editing"
    VALIDATING = "validating"
    SUBMITTING = "submitting"


class IngestStatus(str, enum.Enum):
    SUCCESS = "success"
    INVALID = "invalid"
    FAILED = "failed"
    LOGIN_REQUIRED = "login-required"


@dataclass(frozen=True)
class PhotoUpload:
    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Path | str) -> "PhotoUpload":
        path = Path(path)
        return cls(filename=path.name, content=path.read_bytes())


@dataclass
class IngestForm:
    full_name: str = ""
    email: str = ""
    id_number: str = ""
    photo: Optional[PhotoUpload] = field(default=None, repr=False)


@dataclass(frozen=True)
class IngestOutcome:
    status: IngestStatus
    message: Optional[str] = None
    backup: Optional[AppendResult] = None


def validate_form(form: IngestForm) -> Optional[str]:
    """Return the first validation error, or None when the form can be sent."""
    if form.photo is None:
        return MISSING_PHOTO_MESSAGE
    id_number = form.id_number
    if len(id_number) != ID_NUMBER_LENGTH or not (id_number.isascii() and id_number.isdigit()):
        return BAD_ID_MESSAGE
    return None


class IngestFlow:
    """State machine behind the add-PNM form."""

    def __init__(
        self,
        gateway: SubmissionGateway,
        credentials: CredentialStore,
        storage: Optional[KeyValueStorage],
        *,
        photo_encoder: Callable[[bytes], str] = prepare_photo,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self._gateway = gateway
        self._credentials = credentials
        self._storage = storage
        self._photo_encoder = photo_encoder
        self._clock = clock
        self.step = IngestStep.EDITING
        self.form = IngestForm()
        self.error: Optional[str] = None

    @property
    def input_enabled(self) -> bool:
        return self.step is IngestStep.EDITING

    def update(
        self,
        *,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        id_number: Optional[str] = None,
    ) -> None:
        self._require_editing()
        if full_name is not None:
            self.form.full_name = full_name
        if email is not None:
            self.form.email = email
        if id_number is not None:
            self.form.id_number = id_number

    def attach_photo(self, photo: Optional[PhotoUpload]) -> None:
        self._require_editing()
        self.form.photo = photo

    def reset(self) -> None:
        self._require_editing()
        self.form = IngestForm()
        self.error = None

    async def submit(self) -> IngestOutcome:
        self._require_editing()
        self.step = IngestStep.VALIDATING
        try:
            form = self.form
            photo = form.photo
            problem = validate_form(form)
            if problem or photo is None:
                return self._fail(IngestOutcome(IngestStatus.INVALID, message=problem or MISSING_PHOTO_MESSAGE))

            backup = append_row(
                self._storage,
                INGEST_BACKUP_KEY,
                INGEST_BACKUP_HEADERS,
                [self._clock(), form.full_name, form.email, form.id_number, photo.filename, photo.size],
            )
            self.step = IngestStep.SUBMITTING

            password = self._credentials.get()
            if not password:
                return self._fail(
                    IngestOutcome(IngestStatus.LOGIN_REQUIRED, message="Please log in first", backup=backup)
                )

            try:
                image = await asyncio.to_thread(self._photo_encoder, photo.content)
            except PhotoNormalizationError as exc:
                LOGGER.warning("Photo %s could not be processed: %s", photo.filename, exc)
                return self._fail(IngestOutcome(IngestStatus.FAILED, message=PHOTO_ERROR_MESSAGE, backup=backup))

            try:
                result = await self._gateway.submit(
                    "ingest",
                    {
                        "fullName": form.full_name,
                        "email": form.email,
                        "idNumber": form.id_number,
                        "image": image,
                        "password": password,
                    },
                )
            except Exception:
                LOGGER.exception("Submit error for %s", form.id_number)
                return self._fail(
                    IngestOutcome(IngestStatus.FAILED, message=CONNECTION_ERROR_MESSAGE, backup=backup)
                )

            if not result.ok:
                return self._fail(
                    IngestOutcome(IngestStatus.FAILED, message=result.error or "Failed to add PNM", backup=backup)
                )

            LOGGER.info("Added %s (%s)", form.full_name, form.id_number)
            self.form = IngestForm()
            self.error = None
            return IngestOutcome(IngestStatus.SUCCESS, message="PNM added successfully!", backup=backup)
        finally:
            self.step = IngestStep.EDITING

    def _fail(self, outcome: IngestOutcome) -> IngestOutcome:
        self.error = outcome.message
        if outcome.status is not IngestStatus.INVALID:
            LOGGER.warning("Ingest not completed: %s", outcome.message)
        return outcome

    def _require_editing(self) -> None:
        if self.step is not IngestStep.EDITING:
            raise FlowStateError(f"Form is busy ({self.step.value})")
