"""
Per-launcher download detection.

One LauncherDownloadDetector implementation serves every launcher; what
differs between Steam and Epic (log location, manifest format, library
index, download folders) lives in a DetectorConfig.

Sources are merged into a single map keyed by the most stable identifier
available (app id when known, title otherwise):
  1. content log lines (optimistic: they flip titles to DOWNLOADING early)
  2. manifests (authoritative: they overwrite log guesses for the same id)
  3. active download folders (last resort, when nothing else knows the id)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional, Set

from ..errors import LauncherNotFoundError
from ..notifier import NullStatusNotifier, StatusNotifier, safe
from .content_log import LogEvent, parse_line
from .log_tail import LogTailReader
from .manifest import AcfManifestParser, EpicManifestParser, ManifestParser, ManifestScanner
from .state_flags import resolve_manifest_status
from .types import RawManifestRecord, TitleStatus, placeholder_title

log = logging.getLogger(__name__)

STEAM = "Steam"
EPIC = "Epic Games"

# Log events only say "something is moving", never how far along it is.
_LOG_DOWNLOAD_PROGRESS = 0.0
_LOG_INSTALL_PROGRESS = 95.0


class DownloadDetector(ABC):
    """Interface for detecting download/install activity of one launcher."""

    launcher_name: str
    _notifier: StatusNotifier = NullStatusNotifier()

    def set_notifier(self, notifier: Optional[StatusNotifier]) -> None:
        """Route non-fatal detection warnings to an observer as well as the log."""
        self._notifier = safe(notifier)

    def _warn(self, message: str) -> None:
        log.warning(message)
        self._notifier.status(message)

    @abstractmethod
    def initialize(self) -> bool:
        """Check the launcher is present. Raises LauncherNotFoundError if its root is missing."""
        ...

    @abstractmethod
    def get_active_downloads(self) -> List[TitleStatus]:
        """Refresh from disk and return copies of the tracked titles."""
        ...

    def is_any_active(self) -> bool:
        return any(s.is_active for s in self.get_active_downloads())


@dataclass(frozen=True)
class DetectorConfig:
    launcher_name: str
    root: Path
    manifest_dir: Path
    parser: ManifestParser
    log_path: Optional[Path] = None
    library_index_path: Optional[Path] = None
    library_subdir: str = ""
    downloading_subdir: Optional[str] = None


def steam_config(steam_root: Path) -> DetectorConfig:
    steamapps = steam_root / "steamapps"
    return DetectorConfig(
        launcher_name=STEAM,
        root=steam_root,
        manifest_dir=steamapps,
        parser=AcfManifestParser(),
        log_path=steam_root / "logs" / "content_log.txt",
        library_index_path=steamapps / "libraryfolders.vdf",
        library_subdir="steamapps",
        downloading_subdir="downloading",
    )


def epic_config(epic_root: Path, manifest_dir: Optional[Path] = None) -> DetectorConfig:
    return DetectorConfig(
        launcher_name=EPIC,
        root=epic_root,
        manifest_dir=manifest_dir if manifest_dir is not None else epic_root / "Manifests",
        parser=EpicManifestParser(),
    )


class LauncherDownloadDetector(DownloadDetector):
    def __init__(self, config: DetectorConfig, notifier: Optional[StatusNotifier] = None) -> None:
        if not str(config.root).strip():
            raise ValueError(f"{config.launcher_name} path is not configured")
        self._cfg = config
        self.launcher_name = config.launcher_name
        if notifier is not None:
            self.set_notifier(notifier)
        self._scanner = ManifestScanner(config.parser, warn=self._warn)
        self._log_reader = LogTailReader(config.log_path, warn=self._warn) if config.log_path is not None else None
        self._manifest_roots: List[Path] = [config.manifest_dir]
        self._active: Dict[str, TitleStatus] = {}
        self._names: Dict[str, str] = {}  # app id -> display name
        self._folder_keys: Set[str] = set()  # entries synthesized from download folders

    @property
    def config(self) -> DetectorConfig:
        return self._cfg

    @property
    def manifest_roots(self) -> List[Path]:
        return list(self._manifest_roots)

    def initialize(self) -> bool:
        cfg = self._cfg
        if not cfg.root.is_dir():
            raise LauncherNotFoundError(f"{cfg.launcher_name} directory not found: {cfg.root}")

        self._refresh_roots()

        if cfg.log_path is not None and not cfg.log_path.is_file():
            self._warn(f"{cfg.launcher_name} content log not found: {cfg.log_path}")
        if not cfg.manifest_dir.is_dir():
            self._warn(f"{cfg.launcher_name} manifest directory not found: {cfg.manifest_dir}")
        return True

    def get_active_downloads(self) -> List[TitleStatus]:
        self._read_log()
        self._scan_manifests()
        return [replace(s, key=k) for k, s in self._active.items()]

    # --- content log -----------------------------------------------------

    def _read_log(self) -> None:
        if self._log_reader is None:
            return
        for line in self._log_reader.read_new_lines():
            event = parse_line(line)
            if event is not None:
                self._apply_log_event(event)

    def _apply_log_event(self, event: LogEvent) -> None:
        if event.app_id is not None:
            # Ids only become meaningful once a manifest has told us about them;
            # this also keeps old history in the log from resurrecting titles.
            if event.app_id not in self._names:
                log.debug(f"Ignoring log event for unknown AppID {event.app_id}")
                return
            if event.kind == "APP_SETTLED":
                self._mark_settled(event.app_id)
                return
            info = self._ensure_app(event.app_id)
            if event.kind == "APP_DOWNLOADING":
                info.download_state = "DOWNLOADING"
                info.install_state = "UNKNOWN"
                info.progress = _LOG_DOWNLOAD_PROGRESS
            elif event.kind == "APP_INSTALLING":
                info.download_state = "IDLE"
                info.install_state = "INSTALLING"
                info.progress = _LOG_INSTALL_PROGRESS
            return

        if event.title is None:
            return
        info = self._ensure_title(event.title)
        if event.kind == "TITLE_DOWNLOADING":
            info.download_state = "DOWNLOADING"
            info.progress = _LOG_DOWNLOAD_PROGRESS
        elif event.kind == "TITLE_DOWNLOAD_COMPLETE":
            info.download_state = "IDLE"
            info.progress = 100.0
        elif event.kind == "TITLE_INSTALL_COMPLETE":
            info.install_state = "IDLE"
            info.progress = 100.0

    def _ensure_app(self, app_id: str) -> TitleStatus:
        self._folder_keys.discard(app_id)
        name = self._names.get(app_id, placeholder_title(app_id))
        info = self._active.get(app_id)
        if info is None:
            info = TitleStatus(title=name, launcher_name=self.launcher_name)
            self._active[app_id] = info
        else:
            info.title = name
        return info

    def _ensure_title(self, title: str) -> TitleStatus:
        key = self._id_for_name(title) or title
        self._folder_keys.discard(key)
        info = self._active.get(key)
        if info is None:
            info = TitleStatus(title=title, launcher_name=self.launcher_name)
            self._active[key] = info
        return info

    def _mark_settled(self, app_id: str) -> None:
        info = self._ensure_app(app_id)
        info.download_state = "IDLE"
        info.install_state = "IDLE"
        info.progress = 100.0

    def _id_for_name(self, title: str) -> Optional[str]:
        for app_id, name in self._names.items():
            if name == title:
                return app_id
        return None

    # --- manifests -------------------------------------------------------

    def _refresh_roots(self) -> List[Path]:
        cfg = self._cfg
        self._manifest_roots = self._scanner.discover_roots(
            cfg.manifest_dir, cfg.library_index_path, cfg.library_subdir
        )
        return self._manifest_roots

    def _scan_manifests(self) -> None:
        roots = self._refresh_roots()
        described: Set[str] = set()
        for record in self._scanner.scan(roots):
            self._apply_manifest(record)
            if record.has_status and record.key is not None:
                described.add(record.key)
        self._scan_download_folders(roots, described)

    def _apply_manifest(self, record: RawManifestRecord) -> None:
        key = record.key
        if key is None:
            return

        name = record.name or placeholder_title(key)
        if record.app_id is not None:
            if record.name is not None or record.app_id not in self._names:
                self._names[record.app_id] = name
            name = self._names[record.app_id]
            # A log line may have tracked this title by name before its id was known.
            if record.name is not None and record.name != key and record.name in self._active:
                self._active.setdefault(key, self._active.pop(record.name))

        status = resolve_manifest_status(record)
        if status is None:
            if key in self._active:
                self._active[key].title = name
            return

        self._folder_keys.discard(key)
        download_state, install_state, progress = status
        if download_state == "IDLE" and install_state == "IDLE":
            if self._active.pop(key, None) is not None:
                log.debug(f"{self.launcher_name}: {name} is fully installed")
            return

        info = self._active.get(key)
        if info is None:
            self._active[key] = TitleStatus(
                title=name,
                launcher_name=self.launcher_name,
                download_state=download_state,
                install_state=install_state,
                progress=progress,
            )
        else:
            info.title = name
            info.download_state = download_state
            info.install_state = install_state
            info.progress = progress

    # --- download folders ------------------------------------------------

    def _scan_download_folders(self, roots: List[Path], described: Set[str]) -> None:
        subdir = self._cfg.downloading_subdir
        if subdir is None:
            return

        observed: Set[str] = set()
        for root in roots:
            folder = root / subdir
            if not folder.is_dir():
                continue
            try:
                children = [p for p in folder.iterdir() if p.is_dir()]
            except OSError as e:
                self._warn(f"Error scanning downloading folder {folder}: {e}")
                continue
            for child in children:
                observed.add(child.name)

        for key in observed:
            if key in described or (key in self._active and key not in self._folder_keys):
                continue
            if key not in self._active:
                title = self._names.get(key) or (placeholder_title(key) if key.isdigit() else key)
                log.debug(f"{self.launcher_name}: active download folder for {title}")
                self._active[key] = TitleStatus(
                    title=title,
                    launcher_name=self.launcher_name,
                    download_state="DOWNLOADING",
                    install_state="UNKNOWN",
                    progress=0.0,
                )
                self._folder_keys.add(key)

        for key in list(self._folder_keys):
            if key not in observed:
                self._folder_keys.discard(key)
                self._active.pop(key, None)
