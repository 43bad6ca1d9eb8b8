from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal, Optional, Tuple

DownloadState = Literal["DOWNLOADING", "IDLE", "UNKNOWN", "ERROR"]
InstallState = Literal["INSTALLING", "IDLE", "UNKNOWN", "ERROR"]

# (download_state, install_state, progress_percent)
StatusTriple = Tuple[DownloadState, InstallState, float]

ApplicationPhase = Literal[
    "INITIALIZING",
    "DETECTING_LAUNCHERS",
    "WAITING_FOR_DOWNLOADS",
    "MONITORING",
    "VERIFYING",
    "SHUTDOWN_PENDING",
    "COMPLETED",
    "CANCELLED",
    "ERROR",
]


def placeholder_title(app_id: str) -> str:
    return f"AppID {app_id}"


@dataclass
class TitleStatus:
    """Current download/install status of one game or app."""
    title: str
    launcher_name: str
    download_state: DownloadState = "UNKNOWN"
    install_state: InstallState = "UNKNOWN"
    progress: float = 0.0  # 0-100, best effort
    key: Optional[str] = None  # stable within a launcher while the title may be renamed

    @property
    def is_active(self) -> bool:
        return self.download_state == "DOWNLOADING" or self.install_state == "INSTALLING"

    @property
    def is_settled(self) -> bool:
        return self.download_state == "IDLE" and self.install_state == "IDLE"

    def copy(self) -> "TitleStatus":
        return replace(self)


@dataclass(frozen=True)
class RawManifestRecord:
    """Fields pulled out of one manifest file. Any field may be missing."""
    path: Path
    app_id: Optional[str] = None
    name: Optional[str] = None
    state_flags: Optional[int] = None
    bytes_to_download: Optional[int] = None
    bytes_downloaded: Optional[int] = None
    bytes_to_stage: Optional[int] = None
    bytes_staged: Optional[int] = None

    @property
    def key(self) -> Optional[str]:
        return self.app_id or self.name

    @property
    def has_status(self) -> bool:
        return self.state_flags is not None or any(
            v is not None
            for v in (self.bytes_to_download, self.bytes_downloaded, self.bytes_to_stage, self.bytes_staged)
        )


@dataclass(frozen=True)
class DownloadUpdate:
    title: str
    launcher_name: str
    download_state: DownloadState
    install_state: InstallState
    progress: float
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class PhaseChange:
    phase: ApplicationPhase
    description: str
    started_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class VerificationProgress:
    checks_completed: int
    total_checks_required: int
    elapsed_seconds: float
    remaining_seconds: float
    no_activity_detected: bool


@dataclass(frozen=True)
class ShutdownEvent:
    delay_seconds: int
    is_dry_run: bool
    reason: str
