import asyncio
import pathlib
import sys
from typing import Any, Dict, List, Optional, Tuple

import pytest

SYS_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = SYS_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from pnm_checkin.credentials import CredentialStore
from pnm_checkin.gateway import SubmissionResult
from pnm_checkin.storage import MemoryStorage

FIXED_TIMESTAMP = "2026-02-03T18:30:00.000Z"


class FakeGateway:
    """Records calls and replays a scripted result or exception."""

    def __init__(self, result: Optional[SubmissionResult] = None, error: Optional[BaseException] = None):
        self.result = result or SubmissionResult(ok=True, data={"ok": True})
        self.error = error
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.release: Optional[asyncio.Event] = None
        self.entered: Optional[asyncio.Event] = None

    def hold(self) -> None:
        """Make the next submit wait until ``release`` is set."""
        self.release = asyncio.Event()
        self.entered = asyncio.Event()

    async def submit(self, action: str, payload: Dict[str, Any]) -> SubmissionResult:
        self.calls.append((action, dict(payload)))
        if self.release is not None:
            assert self.entered is not None
            self.entered.set()
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def credentials(storage: MemoryStorage) -> CredentialStore:
    store = CredentialStore(storage)
    store.set("rush-2026")
    return store


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
