"""Configuration loaded from ``.env`` and the process environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .checkin import AUTO_RETURN_SECONDS
from .errors import ConfigError
from .logger import get_logger

LOGGER = get_logger("config")

ENV_TEMPLATE = """
# Proxy endpoint that forwards {"action": ...} requests to the PNM sheet
GATEWAY_URL=""

# Where local CSV backups and the session credential are kept
STORAGE_DIR=".pnm_backups"

# Seconds the success screen stays up before the next scan
AUTO_RETURN_SECONDS=2

# Remote request timeout in seconds
GATEWAY_TIMEOUT_SECONDS=30

# quiet | user | debug
LOG_PROFILE=user
""".lstrip()


@dataclass
class Config:
    # Names mirror .env keys for clarity
    GATEWAY_URL: Optional[str]
    STORAGE_DIR: Path
    AUTO_RETURN_SECONDS: float
    GATEWAY_TIMEOUT_SECONDS: float

    def require_gateway_url(self) -> str:
        if not self.GATEWAY_URL:
            raise ConfigError("Missing required .env key: GATEWAY_URL")
        return self.GATEWAY_URL


def ensure_env_file(root: Path) -> None:
    """Create a template .env file if missing (no overwrite)."""
    env_path = root / ".env"
    if env_path.exists():
        return
    try:
        env_path.write_text(ENV_TEMPLATE, encoding="utf-8")
    except OSError as exc:
        LOGGER.warning("Could not create %s: %s", env_path, exc)
        return
    LOGGER.info("Created default .env at %s, please review.", env_path)


def getenv_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{name} must not be negative")
    return value


def load_config(root: Path, *, create_env: bool = True) -> Config:
    """Load configuration from ``root/.env`` without overriding real env vars."""
    if create_env:
        ensure_env_file(root)
    load_dotenv(dotenv_path=root / ".env", override=False)

    storage_dir = Path(os.getenv("STORAGE_DIR") or ".pnm_backups")
    if not storage_dir.is_absolute():
        storage_dir = root / storage_dir
    return Config(
        GATEWAY_URL=(os.getenv("GATEWAY_URL") or "").strip() or None,
        STORAGE_DIR=storage_dir,
        AUTO_RETURN_SECONDS=getenv_float("AUTO_RETURN_SECONDS", AUTO_RETURN_SECONDS),
        GATEWAY_TIMEOUT_SECONDS=getenv_float("GATEWAY_TIMEOUT_SECONDS", 30.0),
    )
