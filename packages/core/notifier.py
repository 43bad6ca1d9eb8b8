from __future__ import annotations

import logging
from typing import Optional, Protocol

from .monitor.types import DownloadUpdate, PhaseChange, ShutdownEvent, VerificationProgress

log = logging.getLogger(__name__)


class StatusNotifier(Protocol):
    """Fire-and-forget observer of monitoring progress."""

    def status(self, message: str) -> None:
        ...

    def download_update(self, update: DownloadUpdate) -> None:
        ...

    def phase_change(self, phase: PhaseChange) -> None:
        ...

    def verification_progress(self, progress: VerificationProgress) -> None:
        ...

    def shutdown_scheduled(self, event: ShutdownEvent) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class NullStatusNotifier:
    def status(self, message: str) -> None:
        pass

    def download_update(self, update: DownloadUpdate) -> None:
        pass

    def phase_change(self, phase: PhaseChange) -> None:
        pass

    def verification_progress(self, progress: VerificationProgress) -> None:
        pass

    def shutdown_scheduled(self, event: ShutdownEvent) -> None:
        pass

    def error(self, message: str) -> None:
        pass


class LogStatusNotifier:
    """Writes every event to the log. Used by the CLI, where the log is the UI."""

    def status(self, message: str) -> None:
        log.debug(message)

    def download_update(self, update: DownloadUpdate) -> None:
        log.debug(
            f"{update.title} ({update.launcher_name}): "
            f"download={update.download_state} install={update.install_state} {update.progress:.0f}%"
        )

    def phase_change(self, phase: PhaseChange) -> None:
        log.info(f"[{phase.phase}] {phase.description}")

    def verification_progress(self, progress: VerificationProgress) -> None:
        log.debug(
            f"Verification {progress.checks_completed}/{progress.total_checks_required}, "
            f"{progress.elapsed_seconds:.0f}s elapsed, {progress.remaining_seconds:.0f}s left"
        )

    def shutdown_scheduled(self, event: ShutdownEvent) -> None:
        mode = "dry run" if event.is_dry_run else f"in {event.delay_seconds}s"
        log.info(f"Shutdown scheduled ({mode}): {event.reason}")

    def error(self, message: str) -> None:
        log.error(message)


class SafeNotifier:
    """Wraps a notifier so a failing observer never breaks monitoring."""

    def __init__(self, inner: StatusNotifier) -> None:
        self._inner = inner

    def _call(self, method: str, arg: object) -> None:
        try:
            getattr(self._inner, method)(arg)
        except Exception:
            log.exception(f"Status notifier failed in {method}")

    def status(self, message: str) -> None:
        self._call("status", message)

    def download_update(self, update: DownloadUpdate) -> None:
        self._call("download_update", update)

    def phase_change(self, phase: PhaseChange) -> None:
        self._call("phase_change", phase)

    def verification_progress(self, progress: VerificationProgress) -> None:
        self._call("verification_progress", progress)

    def shutdown_scheduled(self, event: ShutdownEvent) -> None:
        self._call("shutdown_scheduled", event)

    def error(self, message: str) -> None:
        self._call("error", message)


def safe(notifier: Optional[StatusNotifier]) -> StatusNotifier:
    if notifier is None:
        return NullStatusNotifier()
    if isinstance(notifier, SafeNotifier):
        return notifier
    return SafeNotifier(notifier)
