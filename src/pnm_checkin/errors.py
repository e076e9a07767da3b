"""Exception hierarchy for the check-in kiosk."""

from __future__ import annotations


class PnmCheckinError(Exception):
    """Base class for errors raised by this package."""


class ConfigError(PnmCheckinError):
    """Raised when required configuration is missing or malformed."""


class StorageUnavailable(PnmCheckinError):
    """Raised by a storage backend that cannot be read or written right now."""

    def __init__(self, operation: str, key: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.key = key
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Storage {operation} failed for '{key}'{detail}")


class FlowStateError(PnmCheckinError):
    """Raised when a flow operation is invoked from a step that does not accept it."""


class PhotoNormalizationError(PnmCheckinError):
    """Raised when an uploaded photo cannot be decoded or re-encoded."""
