"""
Aggregates several launcher detectors and runs the polling loops that wait
for downloads to start and to finish.

All detectors are polled one after another on the caller's thread. Every
wait goes through the cancellation event so a cancel request interrupts it
immediately instead of after the full interval.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from packages.shared.config import AppConfig

from ..notifier import StatusNotifier, safe
from .detector import DownloadDetector
from .types import DownloadUpdate, TitleStatus

log = logging.getLogger(__name__)

START_POLL_INTERVAL_SECONDS = 5.0

_Key = Tuple[str, str]


class DownloadMonitor:
    def __init__(
        self,
        detectors: Iterable[DownloadDetector],
        config: AppConfig,
        cancel_evt: threading.Event,
        notifier: Optional[StatusNotifier] = None,
        start_poll_interval: float = START_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._all = list(detectors)
        self._ready: List[DownloadDetector] = list(self._all)
        self._cfg = config
        self._cancel_evt = cancel_evt
        self._notifier = safe(notifier)
        if notifier is not None:
            for detector in self._all:
                detector.set_notifier(self._notifier)
        self._start_poll_interval = start_poll_interval
        self._last_seen: Dict[_Key, TitleStatus] = {}

    @property
    def detectors(self) -> List[DownloadDetector]:
        """Detectors that initialized successfully (all of them before initialize_detectors)."""
        return list(self._ready)

    def initialize_detectors(self) -> int:
        """Initialize every detector; failures disable that launcher only. Returns how many are ready."""
        log.debug("Initializing detectors...")
        ready: List[DownloadDetector] = []
        for detector in self._all:
            try:
                initialized = detector.initialize()
            except Exception as e:
                self._warn(f"Failed to initialize {detector.launcher_name} detector: {e}")
                continue
            log.debug(f"{detector.launcher_name} detector initialized: {initialized}")
            if initialized:
                ready.append(detector)
        self._ready = ready
        return len(ready)

    def get_active_downloads(self) -> List[TitleStatus]:
        downloads: List[TitleStatus] = []
        for detector in self._ready:
            try:
                found = detector.get_active_downloads()
            except Exception as e:
                self._warn(f"Error getting downloads from {detector.launcher_name}: {e}")
                continue
            log.debug(f"{detector.launcher_name}: {len(found)} tracked title(s)")
            downloads.extend(found)
        self._emit_updates(downloads)
        return downloads

    def is_any_download_active(self) -> bool:
        return any(d.is_active for d in self.get_active_downloads())

    def display_active_downloads(self, downloads: Iterable[TitleStatus]) -> None:
        active = [d for d in downloads if d.is_active]
        if not active:
            log.info("No active downloads detected.")
            return

        log.info(f"Active Downloads ({len(active)}):")
        for d in active:
            status = "Downloading" if d.download_state == "DOWNLOADING" else "Installing"
            log.info(f"  - {d.title} ({d.launcher_name}): {status} {d.progress:.0f}%")

    def wait_for_downloads_to_start(self) -> bool:
        """Poll until some launcher reports activity. Returns False if cancelled first."""
        while not self._cancel_evt.is_set():
            active = [d for d in self.get_active_downloads() if d.is_active]
            if active:
                launchers = sorted({d.launcher_name for d in active})
                log.info(f"Download detected on {', '.join(launchers)}")
                return True
            if self._cancel_evt.wait(self._start_poll_interval):
                break
        return False

    def wait_for_all_downloads_to_complete(self) -> bool:
        """Poll until nothing is downloading or installing. Returns False if cancelled first."""
        while not self._cancel_evt.is_set():
            downloads = self.get_active_downloads()
            self.display_active_downloads(downloads)
            if not any(d.is_active for d in downloads):
                log.info("All downloads and installations complete!")
                return True
            if self._cancel_evt.wait(self._cfg.polling_interval_seconds):
                break
        return False

    def _emit_updates(self, downloads: List[TitleStatus]) -> None:
        current: Dict[_Key, TitleStatus] = {}
        for d in downloads:
            key = (d.launcher_name, d.key or d.title)
            current[key] = d
            prev = self._last_seen.get(key)
            if prev is None or (prev.title, prev.download_state, prev.install_state, prev.progress) != (
                d.title,
                d.download_state,
                d.install_state,
                d.progress,
            ):
                self._notifier.download_update(
                    DownloadUpdate(d.title, d.launcher_name, d.download_state, d.install_state, d.progress)
                )

        # A title that moved to a new key (name -> app id) is still tracked, not finished.
        titles = {(d.launcher_name, d.title) for d in current.values()}
        for key, prev in self._last_seen.items():
            if key not in current and (prev.launcher_name, prev.title) not in titles:
                self._notifier.download_update(
                    DownloadUpdate(prev.title, prev.launcher_name, "IDLE", "IDLE", 100.0)
                )

        self._last_seen = current

    def _warn(self, message: str) -> None:
        log.warning(message)
        self._notifier.status(message)
