"""String-keyed persistent slots backing the local backups and the session credential."""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

from .errors import StorageUnavailable
from .logger import get_logger

LOGGER = get_logger("storage")

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStorage(Protocol):
    """Whole-value get/replace store keyed by string."""

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""

    def set_item(self, key: str, value: str) -> None:
        """Replace the stored value in one step."""

    def remove_item(self, key: str) -> None:
        """Delete the key if present."""


def _check_key(key: str) -> str:
    if not key or not _KEY_PATTERN.match(key) or key.startswith("."):
        raise ValueError(f"Invalid storage key: {key!r}")
    return key


class MemoryStorage:
    """Process-local storage, lost when the process exits."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(_check_key(key))

    def set_item(self, key: str, value: str) -> None:
        self._items[_check_key(key)] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(_check_key(key), None)


class FileStorage:
    """One UTF-8 file per key under a directory.

    Writes go to a temp file in the same directory and are moved into place
    with ``os.replace``, so readers see either the old value or the new one.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{_check_key(key)}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageUnavailable("read", key, exc) from exc

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            fd, temp_path = tempfile.mkstemp(dir=self.root, prefix=".tmp_", suffix=".json")
        except OSError as exc:
            raise StorageUnavailable("write", key, exc) from exc
        replaced = False
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, path)
            replaced = True
        except (OSError, UnicodeError) as exc:
            raise StorageUnavailable("write", key, exc) from exc
        finally:
            if not replaced:
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageUnavailable("remove", key, exc) from exc


def open_storage(path: Path | str) -> Optional[FileStorage]:
    """Return file storage rooted at ``path``, or None if it cannot be used."""
    root = Path(path)
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Local backup storage unavailable at %s: %s", root, exc)
        return None
    if not os.access(root, os.W_OK):
        LOGGER.warning("Local backup storage at %s is not writable", root)
        return None
    return FileStorage(root)
