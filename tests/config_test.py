import json
from pathlib import Path

import pytest

from packages.core.errors import ConfigurationError
from packages.shared.config import AppConfig, env_overrides, normalize_settings
from packages.shared.store import ConfigStore


def test_defaults():
    cfg = AppConfig()
    assert cfg.verification_delay_seconds == 120
    assert cfg.polling_interval_seconds == 15
    assert cfg.required_no_activity_checks == 5
    assert cfg.shutdown_delay_seconds == 60
    assert cfg.monitor_steam and cfg.monitor_epic
    assert not cfg.dry_run


@pytest.mark.parametrize(
    "field", ["verification_delay_seconds", "polling_interval_seconds", "required_no_activity_checks", "shutdown_delay_seconds"]
)
def test_non_positive_values_rejected(field):
    with pytest.raises(ConfigurationError):
        AppConfig.build(**{field: 0})


def test_window_too_short_for_required_checks():
    with pytest.raises(ConfigurationError, match="verification delay"):
        AppConfig.build(verification_delay_seconds=30, polling_interval_seconds=15, required_no_activity_checks=3)


def test_merged_ignores_none():
    cfg = AppConfig().merged(polling_interval_seconds=None, dry_run=True)
    assert cfg.polling_interval_seconds == 15
    assert cfg.dry_run


def test_normalize_wrapped_pascal_case():
    data = {"PowerDown": {"VerificationDelaySeconds": 300, "MonitorEpic": False}}
    assert normalize_settings(data) == {"verification_delay_seconds": 300, "monitor_epic": False}


def test_env_overrides():
    env = {
        "POWERDOWN_VERIFICATIONDELAY": "300",
        "POWERDOWN_POLLINGINTERVAL": "soon",
        "POWERDOWN_DRYRUN": "yes",
        "POWERDOWN_MONITOREPIC": "0",
        "POWERDOWN_VERBOSE": "maybe",
        "POWERDOWN_STEAMPATH": "/games/steam",
    }
    assert env_overrides(env) == {
        "verification_delay_seconds": 300,
        "dry_run": True,
        "monitor_epic": False,
        "custom_steam_path": "/games/steam",
    }


def test_env_invalid_value_raises_when_merged():
    with pytest.raises(ConfigurationError):
        AppConfig().merged(**env_overrides({"POWERDOWN_SHUTDOWNDELAY": "-5"}))


def test_store_creates_defaults(tmp_path: Path):
    store = ConfigStore(tmp_path / "config.json")
    cfg = store.load()
    assert cfg == AppConfig()
    saved = json.loads((tmp_path / "config.json").read_text(encoding="utf-8"))
    assert saved["polling_interval_seconds"] == 15


def test_store_round_trip(tmp_path: Path):
    store = ConfigStore(tmp_path / "config.json")
    store.save(AppConfig(dry_run=True, custom_epic_path="/epic"))
    cfg = store.load()
    assert cfg.dry_run
    assert cfg.custom_epic_path == "/epic"


def test_store_bad_json_falls_back(tmp_path: Path, caplog):
    p = tmp_path / "config.json"
    p.write_text("{nope", encoding="utf-8")
    assert ConfigStore(p).load() == AppConfig()
    assert "using defaults" in caplog.text


def test_store_invalid_values_raise(tmp_path: Path):
    p = tmp_path / "config.json"
    p.write_text(json.dumps({"PowerDown": {"PollingIntervalSeconds": -1}}), encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigStore(p).load()


def test_store_settings_are_not_validated_alone(tmp_path: Path):
    p = tmp_path / "config.json"
    p.write_text(json.dumps({"PowerDown": {"VerificationDelaySeconds": 30}}), encoding="utf-8")
    store = ConfigStore(p)
    assert store.load_settings() == {"verification_delay_seconds": 30}
    with pytest.raises(ConfigurationError):
        store.load()


def test_store_settings_missing_file(tmp_path: Path):
    store = ConfigStore(tmp_path / "config.json")
    assert store.load_settings(create=False) == {}
    assert not (tmp_path / "config.json").exists()


def test_default_store_location(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("APPDATA", str(tmp_path))
    store = ConfigStore()
    assert Path(store.path()) == tmp_path / "PowerDown" / "config.json"
