"""Command-line kiosk for check-in, ingest and backup export."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .backup import read_backup
from .checkin import CheckInFlow, CheckInStatus
from .config import Config, load_config
from .credentials import CredentialStore, login, logout
from .csv_format import render_csv
from .errors import ConfigError
from .events import (
    CHECKIN_BACKUP_HEADERS,
    CHECKIN_BACKUP_KEY,
    EVENT_HEADERS,
    INGEST_BACKUP_HEADERS,
    INGEST_BACKUP_KEY,
)
from .gateway import HttpGateway
from .ingest import IngestFlow, IngestStatus, PhotoUpload
from .logger import apply_env_settings, get_logger, set_log_profile, spinner, step, success
from .storage import KeyValueStorage, open_storage

LOGGER = get_logger("cli")

BACKUPS = {
    "check-in": (CHECKIN_BACKUP_KEY, CHECKIN_BACKUP_HEADERS),
    "ingest": (INGEST_BACKUP_KEY, INGEST_BACKUP_HEADERS),
}

RESET_COMMAND = ":reset"
QUIT_COMMANDS = {":quit", ":q", ":exit"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pnm-checkin", description=__doc__)
    parser.add_argument("--root", type=Path, default=Path.cwd(), help="Directory holding .env")
    parser.add_argument("--log-profile", choices=["quiet", "user", "debug"], help="Console verbosity")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("events", help="List events available for check-in")
    sub.add_parser("login", help="Check the event password and remember it")
    sub.add_parser("logout", help="Forget the remembered password")

    checkin = sub.add_parser("check-in", help="Run the scanning kiosk")
    checkin.add_argument("--event", type=int, help="Event number (see 'events')")

    ingest = sub.add_parser("ingest", help="Add a new PNM")
    ingest.add_argument("--name", required=True)
    ingest.add_argument("--email", required=True)
    ingest.add_argument("--id", dest="id_number", required=True)
    ingest.add_argument("--photo", type=Path, required=True)

    export = sub.add_parser("export", help="Write a local backup as CSV")
    export.add_argument("log", choices=sorted(BACKUPS))
    export.add_argument("--output", "-o", type=Path, help="Destination file (stdout if omitted)")
    return parser


def _gateway(cfg: Config) -> HttpGateway:
    return HttpGateway(cfg.require_gateway_url(), timeout=cfg.GATEWAY_TIMEOUT_SECONDS)


def _print_events(events: Sequence[str]) -> None:
    for index, event in enumerate(events, start=1):
        print(f"  {index}. {event}")


def _pick_event(events: Sequence[str], number: Optional[int]) -> Optional[str]:
    if number is None:
        _print_events(events)
        try:
            answer = input("Event number: ").strip()
        except EOFError:
            return None
        if not answer.isdigit():
            return None
        number = int(answer)
    if 1 <= number <= len(events):
        return events[number - 1]
    return None


async def run_kiosk(flow: CheckInFlow, event_number: Optional[int]) -> int:
    """Read scans from stdin until EOF or a quit command."""
    while True:
        event = _pick_event(flow.events, event_number)
        if event is None:
            LOGGER.error("Please choose an event between 1 and %s", len(flow.events))
            return 2
        flow.select_event(event)
        flow.confirm()
        step(f"Scanning for {event}. Type {RESET_COMMAND} to change event.")

        while True:
            try:
                line = await asyncio.to_thread(input, "ID> ")
            except EOFError:
                await flow.close()
                return 0
            command = line.strip().lower()
            if command in QUIT_COMMANDS:
                await flow.close()
                return 0
            if command == RESET_COMMAND:
                flow.reset()
                event_number = None
                break
            outcome = await flow.submit(line)
            if outcome.status is CheckInStatus.SUCCESS:
                who = f" {outcome.name}" if outcome.name else ""
                success(f"Checked in{who} ({outcome.id_number}) for {outcome.event}")
            elif outcome.status is CheckInStatus.LOGIN_REQUIRED:
                LOGGER.error("Not logged in. Scan saved locally; run 'login' and rescan.")
                await flow.close()
                return 1
            else:
                LOGGER.error(outcome.message or "Failed to check in")


async def run_ingest(flow: IngestFlow, args: argparse.Namespace) -> int:
    try:
        photo = PhotoUpload.from_path(args.photo)
    except OSError as exc:
        LOGGER.error("Could not read photo %s: %s", args.photo, exc)
        return 2
    flow.update(full_name=args.name, email=args.email, id_number=args.id_number)
    flow.attach_photo(photo)
    async with spinner(f"Adding {args.name}") as status:
        outcome = await flow.submit()
        if outcome.status is not IngestStatus.SUCCESS:
            status.fail(outcome.message)
    return 0 if outcome.status is IngestStatus.SUCCESS else 1


async def run_login(cfg: Config, credentials: CredentialStore) -> int:
    password = getpass.getpass("Password: ")
    async with spinner("Checking password") as status:
        result = await login(_gateway(cfg), credentials, password)
        if not result.ok:
            status.fail(result.error or "Incorrect password")
    return 0 if result.ok else 1


def run_export(storage: Optional[KeyValueStorage], log: str, output: Optional[Path]) -> int:
    key, headers = BACKUPS[log]
    backup = read_backup(storage, key, headers)
    text = render_csv(backup)
    if output is None:
        sys.stdout.write(text)
        return 0
    output.write_text(text, encoding="utf-8")
    success(f"Wrote {len(backup.rows)} rows to {output}")
    return 0


async def dispatch(args: argparse.Namespace) -> int:
    cfg = load_config(args.root)
    apply_env_settings()
    if args.log_profile:
        set_log_profile(args.log_profile)
    storage = open_storage(cfg.STORAGE_DIR)
    credentials = CredentialStore(storage)

    if args.command == "events":
        _print_events(EVENT_HEADERS)
        return 0
    if args.command == "logout":
        logout(credentials)
        success("Logged out")
        return 0
    if args.command == "export":
        return run_export(storage, args.log, args.output)
    if args.command == "login":
        return await run_login(cfg, credentials)
    if args.command == "check-in":
        flow = CheckInFlow(
            _gateway(cfg),
            credentials,
            storage,
            auto_return_delay=cfg.AUTO_RETURN_SECONDS,
            on_ready=lambda: print("Ready for next scan"),
        )
        return await run_kiosk(flow, args.event)
    if args.command == "ingest":
        return await run_ingest(IngestFlow(_gateway(cfg), credentials, storage), args)
    raise AssertionError(f"unhandled command {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(dispatch(args))
    except ConfigError as exc:
        raise SystemExit(str(exc)) from exc
    except KeyboardInterrupt:
        return 130
