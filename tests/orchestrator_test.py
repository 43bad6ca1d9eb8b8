import pytest

from fakes import FakeEvent, FakeShutdownService, RecordingNotifier, ScriptedDetector, downloading, fast_config

from packages.core.errors import LauncherNotFoundError, NoLaunchersError
from packages.core.orchestrator import DownloadOrchestrator


def phases(notifier):
    return [p.phase for p in notifier.phases]


def test_full_run_skips_waiting_when_already_downloading():
    detector = ScriptedDetector([[downloading("Dota 2")], []])
    svc = FakeShutdownService()
    notifier = RecordingNotifier()
    orch = DownloadOrchestrator([detector], svc, fast_config(), notifier)

    assert orch.monitor_and_shutdown(FakeEvent()) == "COMPLETED"
    assert phases(notifier) == [
        "INITIALIZING",
        "DETECTING_LAUNCHERS",
        "MONITORING",
        "VERIFYING",
        "SHUTDOWN_PENDING",
        "COMPLETED",
    ]
    assert svc.scheduled == [(1, "PowerDown: All downloads complete")]
    assert orch.phase == "COMPLETED"


def test_waits_for_a_download_to_start():
    detector = ScriptedDetector([[], [], [downloading("Dota 2")], []])
    svc = FakeShutdownService()
    notifier = RecordingNotifier()
    orch = DownloadOrchestrator([detector], svc, fast_config(dry_run=True), notifier, start_poll_interval=5.0)

    assert orch.monitor_and_shutdown(FakeEvent()) == "COMPLETED"
    assert "WAITING_FOR_DOWNLOADS" in phases(notifier)
    assert svc.scheduled == []
    assert notifier.shutdowns[0].is_dry_run


def test_cancel_while_waiting():
    detector = ScriptedDetector([[]])
    svc = FakeShutdownService()
    notifier = RecordingNotifier()
    orch = DownloadOrchestrator([detector], svc, fast_config(), notifier)

    assert orch.monitor_and_shutdown(FakeEvent(cancel_after=3)) == "CANCELLED"
    assert phases(notifier)[-1] == "CANCELLED"
    assert svc.scheduled == []
    assert svc.cancels == 0


def test_cancel_during_shutdown_countdown():
    # no waits while monitoring, three verification polls, then the countdown
    detector = ScriptedDetector([[downloading("Dota 2")], []])
    svc = FakeShutdownService()
    orch = DownloadOrchestrator([detector], svc, fast_config(), RecordingNotifier())

    assert orch.monitor_and_shutdown(FakeEvent(cancel_after=4)) == "CANCELLED"
    assert svc.scheduled == []
    assert svc.cancels == 1


def test_cancel_method_sets_event():
    orch = DownloadOrchestrator([], FakeShutdownService(), fast_config())
    orch.cancel()
    assert orch.cancel_event.is_set()


def test_no_launchers_is_an_error():
    detector = ScriptedDetector([], init_error=LauncherNotFoundError("Steam directory not found"))
    notifier = RecordingNotifier()
    orch = DownloadOrchestrator([detector], FakeShutdownService(), fast_config(), notifier)

    with pytest.raises(NoLaunchersError):
        orch.monitor_and_shutdown(FakeEvent())
    assert orch.phase == "ERROR"
    assert notifier.errors
    assert phases(notifier)[-1] == "ERROR"


def test_failing_notifier_does_not_break_monitoring():
    class Exploding(RecordingNotifier):
        def phase_change(self, phase):
            raise RuntimeError("ui went away")

    detector = ScriptedDetector([[downloading("Dota 2")], []])
    orch = DownloadOrchestrator([detector], FakeShutdownService(), fast_config(dry_run=True), Exploding())
    assert orch.monitor_and_shutdown(FakeEvent()) == "COMPLETED"


def test_cancel_from_another_thread_during_verification():
    detector = ScriptedDetector([[downloading("Dota 2")], []])
    svc = FakeShutdownService()
    notifier = RecordingNotifier()
    orch = DownloadOrchestrator([detector], svc, fast_config(), notifier)

    def on_wait(n):
        if n == 2:
            orch.cancel()

    assert orch.monitor_and_shutdown(FakeEvent(on_wait=on_wait)) == "CANCELLED"
    assert "SHUTDOWN_PENDING" not in phases(notifier)
    assert svc.calls == ["cancel"]


def test_cancel_just_as_countdown_ends_never_schedules():
    # the 4th wait is the shutdown countdown; cancel lands after it timed out
    detector = ScriptedDetector([[downloading("Dota 2")], []])
    svc = FakeShutdownService()
    notifier = RecordingNotifier()
    orch = DownloadOrchestrator([detector], svc, fast_config(), notifier)

    def on_wait(n):
        if n == 4:
            orch.cancel()

    assert orch.monitor_and_shutdown(FakeEvent(on_wait=on_wait)) == "CANCELLED"
    assert svc.scheduled == []
    assert svc.calls == ["cancel"]
    assert notifier.shutdowns == []
    assert phases(notifier)[-1] == "CANCELLED"


def test_cancel_after_completion_cancels_os_shutdown():
    detector = ScriptedDetector([[downloading("Dota 2")], []])
    svc = FakeShutdownService()
    orch = DownloadOrchestrator([detector], svc, fast_config(), RecordingNotifier())

    assert orch.monitor_and_shutdown(FakeEvent()) == "COMPLETED"
    orch.cancel()
    orch.cancel()
    assert svc.calls == ["schedule", "cancel"]
