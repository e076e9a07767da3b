"""PNM check-in kiosk

Command to run:
    python3 -m venv .venv && . .venv/bin/activate
    python -m pip install --upgrade pip
    pip install -e .
    python main.py login
    python main.py check-in --event 2

Environment variables (.env). If missing, a template is created:
  GATEWAY_URL=""              # proxy endpoint for the PNM sheet
  STORAGE_DIR=".pnm_backups"  # local CSV backups + remembered password
  AUTO_RETURN_SECONDS=2
  GATEWAY_TIMEOUT_SECONDS=30
  LOG_PROFILE=user

Commands:
    events                      list events
    login / logout              remember or forget the event password
    check-in [--event N]        scan IDs (Enter after each; ':reset' to change event)
    ingest --name --email --id --photo PATH
    export {check-in,ingest} [-o FILE]
"""

from __future__ import annotations

import pathlib
import sys

SRC_PATH = pathlib.Path(__file__).resolve().parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from pnm_checkin.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
