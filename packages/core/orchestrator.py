"""
Top-level monitoring session.

INITIALIZING -> DETECTING_LAUNCHERS -> WAITING_FOR_DOWNLOADS (skipped when
something is already downloading) -> MONITORING -> VERIFYING ->
SHUTDOWN_PENDING -> COMPLETED | CANCELLED | ERROR
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional

from packages.shared.config import AppConfig

from .errors import NoLaunchersError, VerificationError
from .monitor.detector import DownloadDetector
from .monitor.download_monitor import START_POLL_INTERVAL_SECONDS, DownloadMonitor
from .monitor.types import ApplicationPhase, PhaseChange
from .monitor.verification import VerificationEngine
from .notifier import StatusNotifier, safe
from .shutdown.scheduler import ShutdownScheduler
from .shutdown.service import ShutdownService

log = logging.getLogger(__name__)


class DownloadOrchestrator:
    def __init__(
        self,
        detectors: Iterable[DownloadDetector],
        shutdown_service: ShutdownService,
        config: AppConfig,
        notifier: Optional[StatusNotifier] = None,
        start_poll_interval: float = START_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._detectors = list(detectors)
        self._shutdown_service = shutdown_service
        self._cfg = config
        self._notifier = safe(notifier)
        self._start_poll_interval = start_poll_interval

        self._cancel_evt = threading.Event()
        self._lock = threading.RLock()
        self._phase: ApplicationPhase = "INITIALIZING"
        self._scheduler: Optional[ShutdownScheduler] = None
        self._shutdown_cancel_attempted = False

    @property
    def phase(self) -> ApplicationPhase:
        return self._phase

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_evt

    def cancel(self) -> None:
        """
        Stop the session. Safe to call from a signal handler or another thread.

        The event is set first so a countdown that has just finished cannot
        go on to schedule the OS shutdown; then any shutdown already pending
        is cancelled.
        """
        log.info("Cancellation requested...")
        self._cancel_evt.set()
        self._cancel_pending_shutdown()

    def monitor_and_shutdown(self, cancel_evt: Optional[threading.Event] = None) -> ApplicationPhase:
        """
        Run the whole session. Returns "COMPLETED" or "CANCELLED"; any other
        failure is reported as an ERROR phase and re-raised.
        """
        if cancel_evt is not None:
            self._cancel_evt = cancel_evt
        evt = self._cancel_evt

        monitor = DownloadMonitor(self._detectors, self._cfg, evt, self._notifier, self._start_poll_interval)
        engine = VerificationEngine(monitor, self._cfg, evt, self._notifier)
        with self._lock:
            self._scheduler = ShutdownScheduler(self._shutdown_service, self._cfg, evt, self._notifier)
            self._shutdown_cancel_attempted = False

        try:
            return self._run(monitor, engine, self._scheduler)
        except Exception as e:
            log.exception("Monitoring failed")
            self._set_phase("ERROR", str(e))
            self._notifier.error(str(e))
            raise

    def _run(self, monitor: DownloadMonitor, engine: VerificationEngine, scheduler: ShutdownScheduler) -> ApplicationPhase:
        cfg = self._cfg
        self._set_phase("INITIALIZING", "Starting PowerDown")
        log.info(
            f"Verification delay: {cfg.verification_delay_seconds}s, "
            f"Polling interval: {cfg.polling_interval_seconds}s, "
            f"Required checks: {cfg.required_no_activity_checks}"
        )
        log.info(f"Monitoring Steam: {cfg.monitor_steam}, Monitoring Epic Games: {cfg.monitor_epic}")
        log.info(f"Dry run mode: {cfg.dry_run}")

        self._set_phase("DETECTING_LAUNCHERS", "Initializing launcher detectors")
        if monitor.initialize_detectors() == 0:
            raise NoLaunchersError("No launchers could be initialized")
        if self._cancel_evt.is_set():
            return self._finish_cancelled()

        initial = monitor.get_active_downloads()
        monitor.display_active_downloads(initial)

        if not any(d.is_active for d in initial):
            self._set_phase("WAITING_FOR_DOWNLOADS", "No downloads in progress - Waiting for downloads to start...")
            if not monitor.wait_for_downloads_to_start():
                return self._finish_cancelled()

        self._set_phase("MONITORING", "Monitoring downloads...")
        if not monitor.wait_for_all_downloads_to_complete():
            return self._finish_cancelled()

        self._set_phase("VERIFYING", "All downloads complete - Starting verification period...")
        scheduler.set_verification_period(True)
        if not engine.run():
            if self._cancel_evt.is_set():
                return self._finish_cancelled()
            raise VerificationError("Verification window elapsed before enough idle checks")

        self._set_phase("SHUTDOWN_PENDING", f"Shutting down in {cfg.shutdown_delay_seconds} seconds")
        scheduled = scheduler.schedule_shutdown()
        if self._cancel_evt.is_set():
            return self._finish_cancelled()

        self._set_phase("COMPLETED", "Shutdown scheduled" if scheduled else "Dry run complete - no shutdown issued")
        return "COMPLETED"

    def _finish_cancelled(self) -> ApplicationPhase:
        self._cancel_pending_shutdown()
        self._set_phase("CANCELLED", "Monitoring was cancelled")
        return "CANCELLED"

    def _cancel_pending_shutdown(self) -> None:
        with self._lock:
            scheduler = self._scheduler
            if scheduler is None or not scheduler.is_verification_period:
                return
            # Retry only if a shutdown was scheduled after the earlier attempt.
            if self._shutdown_cancel_attempted and not scheduler.shutdown_scheduled:
                return
            self._shutdown_cancel_attempted = True
        scheduler.cancel_shutdown_if_needed()

    def _set_phase(self, phase: ApplicationPhase, description: str) -> None:
        self._phase = phase
        self._notifier.phase_change(PhaseChange(phase, description))
