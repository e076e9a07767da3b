"""Kiosk check-in flow.

Steps: EVENT_SELECTION -> SCANNING -> SUBMITTING -> SUCCESS -> SCANNING.
A failed submission drops back to SCANNING with an inline error. Every scan is
written to the local backup before the credential check and the network call.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .backup import AppendResult, append_row
from .credentials import CredentialStore
from .errors import FlowStateError
from .events import (
    CHECKIN_BACKUP_HEADERS,
    CHECKIN_BACKUP_KEY,
    EVENT_HEADERS,
    ID_NUMBER_LENGTH,
    utc_timestamp,
)
from .gateway import CONNECTION_ERROR_MESSAGE, SubmissionGateway
from .logger import get_logger
from .storage import KeyValueStorage

LOGGER = get_logger("checkin")

AUTO_RETURN_SECONDS = 2.0


class CheckInStep(str, enum.Enum):
    EVENT_SELECTION = "event-selection"
    SCANNING = "scanning"
    SUBMITTING = "submitting"
    SUCCESS = "success-display"


class CheckInStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    LOGIN_REQUIRED = "login-required"
    REJECTED = "rejected"


@dataclass(frozen=True)
class CheckInOutcome:
    status: CheckInStatus
    id_number: str = ""
    event: Optional[str] = None
    name: Optional[str] = None
    message: Optional[str] = None
    backup: Optional[AppendResult] = None


def truncate_id_number(raw: str) -> str:
    """Trim and keep only the first ten characters of a scanned ID."""
    return raw.strip()[:ID_NUMBER_LENGTH]


class CheckInFlow:
    """State machine behind one check-in kiosk."""

    def __init__(
        self,
        gateway: SubmissionGateway,
        credentials: CredentialStore,
        storage: Optional[KeyValueStorage],
        *,
        events: Sequence[str] = EVENT_HEADERS,
        auto_return_delay: float = AUTO_RETURN_SECONDS,
        clock: Callable[[], str] = utc_timestamp,
        on_ready: Optional[Callable[[], None]] = None,
    ) -> None:
        if not events:
            raise ValueError("At least one event is required")
        self._gateway = gateway
        self._credentials = credentials
        self._storage = storage
        self.events = tuple(events)
        self.auto_return_delay = auto_return_delay
        self._clock = clock
        self._on_ready = on_ready
        self._auto_return: Optional[asyncio.Task[None]] = None

        self.step = CheckInStep.EVENT_SELECTION
        self.selected_event: str = self.events[0]
        self.active_event: Optional[str] = None
        self.error: Optional[str] = None
        self.last_outcome: Optional[CheckInOutcome] = None

    @property
    def input_enabled(self) -> bool:
        return self.step in (CheckInStep.SCANNING, CheckInStep.SUCCESS)

    # -- event selection -------------------------------------------------

    def select_event(self, event: str) -> None:
        if self.step is not CheckInStep.EVENT_SELECTION:
            raise FlowStateError("Reset the kiosk before choosing another event")
        if event not in self.events:
            raise ValueError(f"Unknown event: {event}")
        self.selected_event = event

    def confirm(self) -> None:
        if self.step is not CheckInStep.EVENT_SELECTION:
            raise FlowStateError("An event is already active")
        self.active_event = self.selected_event
        self.error = None
        self._enter(CheckInStep.SCANNING)
        LOGGER.info("Checking in for %s", self.active_event)

    def reset(self) -> None:
        """Return to event selection. Not allowed while a submission is in flight."""
        if self.step is CheckInStep.SUBMITTING:
            raise FlowStateError("Wait for the current check-in to finish")
        self.active_event = None
        self.error = None
        self._enter(CheckInStep.EVENT_SELECTION)

    async def close(self) -> None:
        """Cancel a pending auto-return, e.g. when the kiosk view goes away."""
        task = self._cancel_auto_return()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    # -- scanning --------------------------------------------------------

    async def submit(self, raw_id: str) -> CheckInOutcome:
        if not self.input_enabled or self.active_event is None:
            raise FlowStateError(f"Cannot check in while in {self.step.value}")
        if self.step is CheckInStep.SUCCESS:
            self._enter(CheckInStep.SCANNING)

        id_number = truncate_id_number(raw_id)
        event = self.active_event
        if not id_number:
            return self._finish(
                CheckInOutcome(CheckInStatus.REJECTED, event=event, message="Please enter an ID number")
            )

        self.error = None
        backup = append_row(
            self._storage,
            CHECKIN_BACKUP_KEY,
            CHECKIN_BACKUP_HEADERS,
            [self._clock(), event, id_number],
        )
        self._enter(CheckInStep.SUBMITTING)
        try:
            password = self._credentials.get()
            if not password:
                return self._finish(
                    CheckInOutcome(
                        CheckInStatus.LOGIN_REQUIRED,
                        id_number=id_number,
                        event=event,
                        message="Please log in first",
                        backup=backup,
                    )
                )
            try:
                result = await self._gateway.submit(
                    "check-in",
                    {"idNumber": id_number, "eventType": event, "password": password},
                )
            except Exception:
                LOGGER.exception("Check-in error for %s", id_number)
                return self._finish(
                    CheckInOutcome(
                        CheckInStatus.FAILED,
                        id_number=id_number,
                        event=event,
                        message=CONNECTION_ERROR_MESSAGE,
                        backup=backup,
                    )
                )
            if not result.ok:
                return self._finish(
                    CheckInOutcome(
                        CheckInStatus.FAILED,
                        id_number=id_number,
                        event=event,
                        message=result.error or "Failed to check in",
                        backup=backup,
                    )
                )
            return self._finish(
                CheckInOutcome(
                    CheckInStatus.SUCCESS,
                    id_number=id_number,
                    event=event,
                    name=result.name,
                    message="Check-in successful!",
                    backup=backup,
                )
            )
        finally:
            if self.step is CheckInStep.SUBMITTING:
                # Only reached if something above raised before _finish.
                self._enter(CheckInStep.SCANNING)

    # -- internals -------------------------------------------------------

    def _finish(self, outcome: CheckInOutcome) -> CheckInOutcome:
        self.last_outcome = outcome
        if outcome.status is CheckInStatus.SUCCESS:
            self.error = None
            self._enter(CheckInStep.SUCCESS)
            self._auto_return = asyncio.get_running_loop().create_task(self._return_to_scanning())
            LOGGER.info("Checked in %s (%s) for %s", outcome.name or "PNM", outcome.id_number, outcome.event)
        else:
            self.error = outcome.message
            self._enter(CheckInStep.SCANNING)
            if outcome.status is not CheckInStatus.REJECTED:
                LOGGER.warning("Check-in for %s not completed: %s", outcome.id_number, outcome.message)
        return outcome

    def _enter(self, step: CheckInStep) -> None:
        if step is not CheckInStep.SUCCESS:
            self._cancel_auto_return()
        self.step = step

    def _cancel_auto_return(self) -> Optional[asyncio.Task[None]]:
        task, self._auto_return = self._auto_return, None
        if task is not None and not task.done():
            task.cancel()
            return task
        return None

    async def _return_to_scanning(self) -> None:
        await asyncio.sleep(self.auto_return_delay)
        if self.step is CheckInStep.SUCCESS:
            self._auto_return = None
            self.step = CheckInStep.SCANNING
            if self._on_ready is not None:
                self._on_ready()
