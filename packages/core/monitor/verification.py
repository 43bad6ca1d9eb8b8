"""
Post-completion verification.

Once every download looks finished, poll a few more times before trusting
it: Steam often finishes a download and then starts staging, or picks up
the next queued update a few seconds later. Verification only completes
after `required_no_activity_checks` consecutive idle polls; any activity
sends us back to waiting for completion with a fresh counter.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from packages.shared.config import AppConfig

from ..notifier import StatusNotifier, safe
from .download_monitor import DownloadMonitor
from .types import VerificationProgress

log = logging.getLogger(__name__)


@dataclass
class VerificationCounter:
    required: int
    total_delay: float
    elapsed: float = 0.0
    idle_count: int = 0

    @property
    def remaining(self) -> float:
        return max(0.0, self.total_delay - self.elapsed)

    @property
    def complete(self) -> bool:
        return self.idle_count >= self.required

    @property
    def expired(self) -> bool:
        return self.elapsed >= self.total_delay


class VerificationEngine:
    def __init__(
        self,
        monitor: DownloadMonitor,
        config: AppConfig,
        cancel_evt: threading.Event,
        notifier: Optional[StatusNotifier] = None,
    ) -> None:
        self._monitor = monitor
        self._cfg = config
        self._cancel_evt = cancel_evt
        self._notifier = safe(notifier)
        self._counter: Optional[VerificationCounter] = None

    @property
    def counter(self) -> Optional[VerificationCounter]:
        return self._counter

    def _fresh_counter(self) -> VerificationCounter:
        self._counter = VerificationCounter(
            required=self._cfg.required_no_activity_checks,
            total_delay=float(self._cfg.verification_delay_seconds),
        )
        return self._counter

    def run(self) -> bool:
        """
        Returns True once enough consecutive idle polls were seen, False if
        cancelled or if the window ran out first.
        """
        interval = float(self._cfg.polling_interval_seconds)
        counter = self._fresh_counter()
        log.debug("Starting verification polling...")

        while not counter.expired and not self._cancel_evt.is_set():
            if self._cancel_evt.wait(interval):
                return False
            counter.elapsed += interval

            if self._monitor.is_any_download_active():
                log.warning("Download resumed during verification - Resetting counter...")
                self._notifier.status("Download resumed during verification")
                counter.idle_count = 0
                self._report(counter, no_activity=False)
                if not self._monitor.wait_for_all_downloads_to_complete():
                    return False
                counter = self._fresh_counter()
                continue

            counter.idle_count += 1
            log.info(f"Polling check {counter.idle_count}/{counter.required}: No activity detected")
            self._report(counter, no_activity=True)
            if counter.complete:
                log.info("Verification complete - No downloads resumed!")
                return True

        return False

    def _report(self, counter: VerificationCounter, no_activity: bool) -> None:
        self._notifier.verification_progress(
            VerificationProgress(
                checks_completed=counter.idle_count,
                total_checks_required=counter.required,
                elapsed_seconds=counter.elapsed,
                remaining_seconds=counter.remaining,
                no_activity_detected=no_activity,
            )
        )
