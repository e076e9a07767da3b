"""
Structured logging helpers for the PNM check-in kiosk.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import os
import sys
from typing import Any, Dict, Optional

__all__ = [
    "logger",
    "step",
    "success",
    "get_logger",
    "spinner",
    "set_log_profile",
    "apply_env_settings",
]

ROOT_LOGGER_NAME = "pnm_checkin"

# ---------------------------------------------------------------------------
# Palette and helpers

_PALETTE: Dict[str, str] = {
    "reset": "\033[0m",
    "dim": "\033[2m",
    "bold": "\033[1m",
    "blue": "\033[34m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "red": "\033[31m",
    "cyan": "\033[36m",
    "magenta": "\033[35m",
}

LOG_PROFILE = (os.getenv("LOG_PROFILE") or "user").lower()
LOG_FILE = os.getenv("LOG_FILE")
NO_COLOR = os.getenv("NO_COLOR") is not None
LOG_LEVEL_OVERRIDE = os.getenv("LOG_LEVEL")


def _apply_color(text: str, *styles: str) -> str:
    if NO_COLOR or not styles:
        return text
    colors = "".join(_PALETTE.get(style, "") for style in styles)
    return f"{colors}{text}{_PALETTE['reset']}"


# ---------------------------------------------------------------------------
# Formatter and adapter


class LayeredFormatter(logging.Formatter):
    """Formatter that decorates output based on the record.layer attribute."""

    LAYER_MAPPINGS: Dict[str, Dict[str, Any]] = {
        "step": {"icon": "▶", "style": ("blue", "bold")},
        "success": {"icon": "✓", "style": ("green", "bold")},
        "warning": {"icon": "!", "style": ("yellow", "bold")},
        "error": {"icon": "✗", "style": ("red", "bold")},
        "debug": {"icon": "·", "style": ("magenta",)},
        "user": {"icon": "•", "style": ()},
    }

    def format(self, record: logging.LogRecord) -> str:
        layer = getattr(record, "layer", "user")
        mapping = self.LAYER_MAPPINGS.get(layer, self.LAYER_MAPPINGS["user"])
        message = super().format(record)
        if layer == "debug":
            return f"{_apply_color('[debug]', 'dim')} {message}"
        prefix = _apply_color(mapping["icon"], *mapping["style"])
        return f"{prefix} {message}"


class LayeredAdapter(logging.LoggerAdapter):
    """Logger adapter that injects a 'layer' extra value."""

    def __init__(self, logger: logging.Logger, default_layer: str = "user"):
        super().__init__(logger, {"layer": default_layer})

    def log(self, level: int, msg: Any, *args, layer: Optional[str] = None, **kwargs) -> None:
        if not self.isEnabledFor(level):
            return
        extra = kwargs.setdefault("extra", {})
        extra.setdefault("layer", layer or self.extra.get("layer", "user"))
        self.logger.log(level, msg, *args, **kwargs)

    def warning(self, msg: Any, *args, **kwargs) -> None:  # type: ignore[override]
        kwargs.setdefault("layer", "warning")
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: Any, *args, **kwargs) -> None:  # type: ignore[override]
        kwargs.setdefault("layer", "error")
        self.log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: Any, *args, **kwargs) -> None:  # type: ignore[override]
        kwargs.setdefault("layer", "error")
        kwargs.setdefault("exc_info", True)
        self.log(logging.ERROR, msg, *args, **kwargs)


# ---------------------------------------------------------------------------
# Configuration


def _console_level(profile: str, override: Optional[str] = None) -> int:
    if override:
        level = getattr(logging, override.upper(), None)
        if isinstance(level, int):
            return level
    level_map = {
        "quiet": logging.WARNING,
        "debug": logging.DEBUG,
        "verbose": logging.DEBUG,
        "user": logging.INFO,
    }
    return level_map.get(profile, logging.INFO)


def _set_console_level(base_logger: logging.Logger, level: int) -> None:
    for handler in base_logger.handlers:
        if type(handler) is logging.StreamHandler:
            handler.setLevel(level)


def _add_file_handler(base_logger: logging.Logger, path: str) -> None:
    try:
        file_handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        base_logger.warning("Failed to configure logfile '%s': %s", path, exc)
        return
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    file_handler.setLevel(logging.DEBUG)
    base_logger.addHandler(file_handler)


def _configure_base_logger() -> LayeredAdapter:
    base_logger = logging.getLogger(ROOT_LOGGER_NAME)
    if base_logger.handlers:
        return LayeredAdapter(base_logger)

    base_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(_console_level(LOG_PROFILE, LOG_LEVEL_OVERRIDE))
    console_handler.setFormatter(LayeredFormatter("%(message)s"))
    base_logger.addHandler(console_handler)

    if LOG_FILE:
        _add_file_handler(base_logger, LOG_FILE)

    return LayeredAdapter(base_logger)


logger = _configure_base_logger()


# ---------------------------------------------------------------------------
# Public helpers


def step(message: str) -> None:
    """Log a major step in the workflow."""
    logger.log(logging.INFO, message, layer="step")


def success(message: str) -> None:
    """Log successful completion of an action."""
    logger.log(logging.INFO, message, layer="success")


def get_logger(name: str, *, layer: str = "user") -> LayeredAdapter:
    """Return a child logger using the layered formatting."""
    child = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return LayeredAdapter(child, default_layer=layer)


# ---------------------------------------------------------------------------
# Spinner support


class _Spinner:
    FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]

    def __init__(self, message: str):
        self.message = message
        self._task: Optional[asyncio.Task[None]] = None
        self._running = False
        self._failed = False

    async def __aenter__(self) -> "_Spinner":
        self._running = sys.stdout.isatty()
        if self._running:
            self._task = asyncio.create_task(self._animate())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self._running = False
        if self._task:
            await self._task
            _clear_current_line()
        if exc_type is not None:
            logger.error(f"{self.message} – {exc}")
        elif not self._failed:
            success(self.message)
        return False

    async def _animate(self) -> None:
        for frame in itertools.cycle(self.FRAMES):
            if not self._running:
                break
            sys.stdout.write(f"\r{_apply_color(frame, 'cyan')} {self.message}")
            sys.stdout.flush()
            await asyncio.sleep(0.12)

    def fail(self, reason: Optional[str] = None) -> None:
        self._failed = True
        _clear_current_line()
        logger.error(f"{self.message} – {reason}" if reason else self.message)


def _clear_current_line() -> None:
    if not sys.stdout.isatty():
        return
    sys.stdout.write("\r" + " " * 120 + "\r")
    sys.stdout.flush()


def spinner(message: str) -> _Spinner:
    """Return an async spinner context manager."""
    return _Spinner(message)


def set_log_profile(profile: Optional[str]) -> None:
    """Adjust console logging verbosity at runtime."""
    global LOG_PROFILE
    profile = (profile or "user").lower()

    base_logger = logging.getLogger(ROOT_LOGGER_NAME)
    base_logger.setLevel(logging.DEBUG)
    _set_console_level(base_logger, _console_level(profile))

    LOG_PROFILE = profile
    os.environ["LOG_PROFILE"] = profile


def apply_env_settings() -> None:
    """Re-read LOG_PROFILE, LOG_LEVEL, LOG_FILE and NO_COLOR.

    The logger is configured at import time, before ``.env`` is loaded; call
    this once the environment is complete.
    """
    global LOG_PROFILE, LOG_FILE, LOG_LEVEL_OVERRIDE, NO_COLOR
    NO_COLOR = os.getenv("NO_COLOR") is not None
    LOG_PROFILE = (os.getenv("LOG_PROFILE") or "user").lower()
    LOG_LEVEL_OVERRIDE = os.getenv("LOG_LEVEL")

    base_logger = logging.getLogger(ROOT_LOGGER_NAME)
    _set_console_level(base_logger, _console_level(LOG_PROFILE, LOG_LEVEL_OVERRIDE))

    log_file = os.getenv("LOG_FILE")
    if log_file and log_file != LOG_FILE:
        _add_file_handler(base_logger, log_file)
        LOG_FILE = log_file
