import json
import logging
from pathlib import Path

import pytest

from fakes import FakeEvent, FakeShutdownService, ScriptedDetector, downloading

from apps.cli import main as cli
from packages.core.orchestrator import DownloadOrchestrator
from packages.shared.config import AppConfig


@pytest.fixture(autouse=True)
def isolated_appdata(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("APPDATA", str(tmp_path / "appdata"))
    for var in ("POWERDOWN_DRYRUN", "POWERDOWN_VERIFICATIONDELAY", "POWERDOWN_POLLINGINTERVAL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(cli, "setup_logging", lambda verbose=False: None)


def parse(*argv):
    return cli.build_parser().parse_args(list(argv))


def test_cli_overrides_env_and_file(tmp_path: Path):
    config = tmp_path / "settings.json"
    config.write_text(json.dumps({"PowerDown": {"VerificationDelaySeconds": 200, "PollingIntervalSeconds": 20}}), encoding="utf-8")
    env = {"POWERDOWN_POLLINGINTERVAL": "10", "POWERDOWN_REQUIREDCHECKS": "4"}

    cfg = cli.build_config(parse("--config", str(config), "-c", "2", "--dry-run", "--steam-only"), env)
    assert cfg.verification_delay_seconds == 200
    assert cfg.polling_interval_seconds == 10
    assert cfg.required_no_activity_checks == 2
    assert cfg.dry_run
    assert cfg.monitor_steam and not cfg.monitor_epic


def test_default_store_is_used(tmp_path: Path):
    cfg = cli.build_config(parse("-e", "--epic-path", "/epic"), {})
    assert cfg == AppConfig(monitor_steam=False, custom_epic_path="/epic")
    assert (tmp_path / "appdata" / "PowerDown" / "config.json").is_file()


def test_layers_validated_together():
    cfg = cli.build_config(parse("--interval", "5"), {"POWERDOWN_VERIFICATIONDELAY": "30"})
    assert cfg.verification_delay_seconds == 30
    assert cfg.polling_interval_seconds == 5
    assert cfg.required_no_activity_checks == 5


def test_file_value_completed_by_command_line(tmp_path: Path):
    config = tmp_path / "settings.json"
    config.write_text(json.dumps({"VerificationDelaySeconds": 30}), encoding="utf-8")
    cfg = cli.build_config(parse("--config", str(config), "-i", "5", "-c", "6"), {})
    assert (cfg.verification_delay_seconds, cfg.polling_interval_seconds, cfg.required_no_activity_checks) == (30, 5, 6)


@pytest.mark.parametrize("argv", [["--delay", "0"], ["-i", "abc"], ["--steam-only", "--epic-only"], ["--bogus"]])
def test_argument_errors_exit_2(argv):
    with pytest.raises(SystemExit) as exc:
        cli.main(argv)
    assert exc.value.code == 2


def test_missing_config_file_exit_2(tmp_path: Path):
    with pytest.raises(SystemExit) as exc:
        cli.main(["--config", str(tmp_path / "missing.json")])
    assert exc.value.code == 2


def test_invalid_combination_exit_1():
    assert cli.main(["--delay", "10", "--interval", "5", "--checks", "5"]) == 1


def test_no_launchers_exit_1(monkeypatch):
    monkeypatch.setattr(cli, "create_detectors", lambda cfg: [])
    assert cli.main(["--dry-run"]) == 1


class _InstantOrchestrator(DownloadOrchestrator):
    def monitor_and_shutdown(self, cancel_evt=None):
        return super().monitor_and_shutdown(FakeEvent())


def test_dry_run_completes(monkeypatch, caplog):
    caplog.set_level(logging.INFO)
    detector = ScriptedDetector([[downloading("Dota 2")], []])
    svc = FakeShutdownService()
    monkeypatch.setattr(cli, "create_detectors", lambda cfg: [detector])
    monkeypatch.setattr(cli, "default_shutdown_service", lambda: svc)
    monkeypatch.setattr(cli, "DownloadOrchestrator", _InstantOrchestrator)

    assert cli.main(["--dry-run", "-d", "3", "-i", "1", "-c", "3"]) == 0
    assert svc.scheduled == []
    assert "Dry run mode: Would shutdown now" in caplog.text
