import logging

import pytest

from pnm_checkin.backup import append_row
from pnm_checkin.cli import build_parser, main
from pnm_checkin.config import load_config
from pnm_checkin.errors import ConfigError
from pnm_checkin.events import CHECKIN_BACKUP_HEADERS, CHECKIN_BACKUP_KEY, EVENT_HEADERS
from pnm_checkin.logger import set_log_profile
from pnm_checkin.storage import FileStorage


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path / "backups"))
    monkeypatch.setenv("GATEWAY_URL", "")
    monkeypatch.setenv("AUTO_RETURN_SECONDS", "2")
    monkeypatch.setenv("GATEWAY_TIMEOUT_SECONDS", "30")
    monkeypatch.setenv("LOG_PROFILE", "user")
    return tmp_path


def test_load_config_creates_env_template(env):
    cfg = load_config(env)

    assert (env / ".env").exists()
    assert cfg.STORAGE_DIR == env / "backups"
    assert cfg.AUTO_RETURN_SECONDS == 2.0
    with pytest.raises(ConfigError):
        cfg.require_gateway_url()


def test_load_config_rejects_bad_numbers(env, monkeypatch):
    monkeypatch.setenv("AUTO_RETURN_SECONDS", "soon")
    with pytest.raises(ConfigError):
        load_config(env)


def test_export_writes_header_and_rows(env, capsys):
    storage = FileStorage(env / "backups")
    (env / "backups").mkdir()
    append_row(storage, CHECKIN_BACKUP_KEY, CHECKIN_BACKUP_HEADERS, ["t1", EVENT_HEADERS[0], "1234567890"])

    assert main(["--root", str(env), "export", "check-in"]) == 0

    out = capsys.readouterr().out
    assert out == f'"timestamp","eventType","studentId"\n"t1","{EVENT_HEADERS[0]}","1234567890"\n'


def test_export_to_file_with_empty_backup(env):
    target = env / "ingest.csv"

    assert main(["--root", str(env), "export", "ingest", "--output", str(target)]) == 0

    assert target.read_text(encoding="utf-8").startswith('"timestamp","pnmName"')


def test_network_command_without_gateway_url_exits(env):
    with pytest.raises(SystemExit) as excinfo:
        main(["--root", str(env), "check-in", "--event", "1"])
    assert "GATEWAY_URL" in str(excinfo.value)


def test_events_lists_every_event(env, capsys):
    assert main(["--root", str(env), "events"]) == 0
    out = capsys.readouterr().out
    assert all(event in out for event in EVENT_HEADERS)


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def _console_handler():
    return next(h for h in logging.getLogger("pnm_checkin").handlers if type(h) is logging.StreamHandler)


def test_log_profile_from_env_file_is_applied(env, monkeypatch):
    monkeypatch.delenv("LOG_PROFILE")
    (env / ".env").write_text('LOG_PROFILE="quiet"\n', encoding="utf-8")

    try:
        assert main(["--root", str(env), "logout"]) == 0
        assert _console_handler().level == logging.WARNING
    finally:
        set_log_profile("user")


def test_log_profile_flag_beats_env_file(env, monkeypatch):
    monkeypatch.delenv("LOG_PROFILE")
    (env / ".env").write_text('LOG_PROFILE="quiet"\n', encoding="utf-8")

    try:
        assert main(["--root", str(env), "--log-profile", "debug", "logout"]) == 0
        assert _console_handler().level == logging.DEBUG
    finally:
        set_log_profile("user")
