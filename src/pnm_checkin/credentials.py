"""Session credential held between operator sessions on the same device."""

from __future__ import annotations

from typing import Optional

from .errors import StorageUnavailable
from .gateway import SubmissionGateway, SubmissionResult
from .logger import get_logger
from .storage import KeyValueStorage

LOGGER = get_logger("credentials")

CREDENTIAL_KEY = "password"


class CredentialStore:
    """Keep the shared event password in storage (or memory when there is none)."""

    def __init__(self, storage: Optional[KeyValueStorage] = None, key: str = CREDENTIAL_KEY) -> None:
        self._storage = storage
        self._key = key
        self._cached: Optional[str] = None

    def get(self) -> Optional[str]:
        if self._storage is None:
            return self._cached
        try:
            value = self._storage.get_item(self._key)
        except StorageUnavailable as exc:
            LOGGER.warning("Could not read stored credential: %s", exc)
            return self._cached
        return value or self._cached

    def set(self, password: str) -> None:
        self._cached = password
        if self._storage is None:
            return
        try:
            self._storage.set_item(self._key, password)
        except StorageUnavailable as exc:
            LOGGER.warning("Credential kept for this session only: %s", exc)

    def clear(self) -> None:
        self._cached = None
        if self._storage is None:
            return
        try:
            self._storage.remove_item(self._key)
        except StorageUnavailable as exc:
            LOGGER.warning("Could not remove stored credential: %s", exc)


async def login(gateway: SubmissionGateway, credentials: CredentialStore, password: str) -> SubmissionResult:
    """Check ``password`` with the remote store and remember it on success."""
    if not password:
        return SubmissionResult.failure("Please enter a password")
    result = await gateway.submit("checkPassword", {"password": password})
    if result.ok:
        credentials.set(password)
    return result


def logout(credentials: CredentialStore) -> None:
    credentials.clear()
