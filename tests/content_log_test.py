import pytest

from packages.core.monitor.content_log import (
    LogEvent,
    extract_title,
    is_fully_installed_state,
    is_installing_state,
    parse_line,
)


def test_update_started_download():
    line = "[2024-01-01 12:00:00] AppID 42 update started : download 0/1000"
    assert parse_line(line) == LogEvent("APP_DOWNLOADING", app_id="42")


def test_update_changed_downloading():
    line = "[2024-01-01 12:00:00] AppID 730 update changed : Running Update,Downloading,"
    assert parse_line(line) == LogEvent("APP_DOWNLOADING", app_id="730")


@pytest.mark.parametrize("state", ["Staging", "Committing,", "Preallocating", "Reconfiguring", "Validating"])
def test_update_changed_installing(state):
    line = f"AppID 730 update changed : Running Update,{state}"
    assert parse_line(line) == LogEvent("APP_INSTALLING", app_id="730")


def test_update_changed_none_settles():
    assert parse_line("AppID 730 update changed : None") == LogEvent("APP_SETTLED", app_id="730")


def test_fully_installed_settles():
    line = "AppID 42 state changed : Fully Installed,"
    assert parse_line(line) == LogEvent("APP_SETTLED", app_id="42")


def test_fully_installed_with_pending_update_is_ignored():
    assert parse_line("AppID 42 state changed : Fully Installed,Update Queued,") is None
    assert parse_line("AppID 42 state changed : Fully Installed,Update Running,") is None


def test_free_text_download_lines():
    assert parse_line("Downloading 1.5 GiB for Half-Life 3 - please wait") == LogEvent(
        "TITLE_DOWNLOADING", title="Half-Life 3"
    )
    assert parse_line("Download complete for Half-Life 3 - ok") == LogEvent(
        "TITLE_DOWNLOAD_COMPLETE", title="Half-Life 3"
    )
    assert parse_line("Starting Portal [update] Installation complete") == LogEvent(
        "TITLE_INSTALL_COMPLETE", title="Portal"
    )


def test_free_text_without_title_is_ignored():
    assert parse_line("Downloading 3.0 GiB") is None


def test_irrelevant_lines():
    assert parse_line("") is None
    assert parse_line("   ") is None
    assert parse_line("[2024-01-01] Steam client started") is None


def test_state_helpers():
    assert is_installing_state("Running Update,Staging,")
    assert not is_installing_state("Downloading")
    assert is_fully_installed_state("Fully Installed,")
    assert not is_fully_installed_state("Fully Installed,Update Started,")


def test_extract_title_prefers_starting():
    assert extract_title("Starting Dota 2 [x] for Other - y") == "Dota 2"
    assert extract_title("nothing here") is None
