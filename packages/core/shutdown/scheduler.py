from __future__ import annotations

import logging
import threading
from typing import Optional

from packages.shared.config import AppConfig

from ..monitor.types import ShutdownEvent
from ..notifier import StatusNotifier, safe
from .service import ShutdownService

log = logging.getLogger(__name__)

SHUTDOWN_MESSAGE = "PowerDown: All downloads complete"


class ShutdownScheduler:
    def __init__(
        self,
        service: ShutdownService,
        config: AppConfig,
        cancel_evt: threading.Event,
        notifier: Optional[StatusNotifier] = None,
    ) -> None:
        self._service = service
        self._cfg = config
        self._cancel_evt = cancel_evt
        self._notifier = safe(notifier)
        self._lock = threading.RLock()
        self._is_verification_period = False
        self._shutdown_scheduled = False

    @property
    def is_verification_period(self) -> bool:
        return self._is_verification_period

    @property
    def shutdown_scheduled(self) -> bool:
        return self._shutdown_scheduled

    def set_verification_period(self, active: bool) -> None:
        self._is_verification_period = active

    def schedule_shutdown(self) -> bool:
        """
        Count down shutdown_delay_seconds, then ask the OS to shut down.

        In dry-run mode only an event is emitted. Returns True when the OS
        shutdown was actually scheduled.
        """
        delay = self._cfg.shutdown_delay_seconds
        if self._cfg.dry_run:
            log.info("Dry run mode: Would shutdown now")
            self._notifier.shutdown_scheduled(ShutdownEvent(delay, True, SHUTDOWN_MESSAGE))
            return False

        log.info(f"Initiating shutdown in {delay} seconds...")
        log.info("Press CTRL+C to cancel")
        if self._cancel_evt.wait(delay):
            log.info("Shutdown countdown cancelled")
            return False

        # A cancel that lands after the wait must either stop the schedule call
        # or find _shutdown_scheduled already set, never fall in between.
        with self._lock:
            if self._cancel_evt.is_set():
                log.info("Shutdown countdown cancelled")
                return False
            self._service.schedule(delay, SHUTDOWN_MESSAGE)
            self._shutdown_scheduled = True
        log.info("Shutdown scheduled")
        self._notifier.shutdown_scheduled(ShutdownEvent(delay, False, SHUTDOWN_MESSAGE))
        return True

    def cancel_shutdown_if_needed(self) -> None:
        if not self._is_verification_period or self._cfg.dry_run:
            return
        with self._lock:
            log.info("Cancelling scheduled shutdown...")
            try:
                self._service.cancel()
            except Exception as e:
                log.warning(f"Failed to cancel shutdown: {e}")
                return
            self._shutdown_scheduled = False
