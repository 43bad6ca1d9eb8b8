"""
Launcher state codes -> (download state, install state, progress).

Steam persists a numeric StateFlags value in every app manifest. Only a few
values matter for deciding whether something is still in flight; everything
else is reported as unknown. When the manifest also carries byte counters
they give a much better answer than the fixed percentages below, so
resolve_manifest_status() prefers them.
"""

from __future__ import annotations

from typing import Dict, Optional

from .types import RawManifestRecord, StatusTriple

FULLY_INSTALLED = 4
INSTALLING_UPDATE = 6
DOWNLOADING = 1026

_FLAG_TABLE: Dict[int, StatusTriple] = {
    FULLY_INSTALLED: ("IDLE", "IDLE", 100.0),
    INSTALLING_UPDATE: ("IDLE", "INSTALLING", 95.0),
    DOWNLOADING: ("DOWNLOADING", "UNKNOWN", 50.0),
}

_UNKNOWN: StatusTriple = ("UNKNOWN", "UNKNOWN", 0.0)


def interpret(code: int) -> StatusTriple:
    """Map a state code to a status triple. Unknown codes give (UNKNOWN, UNKNOWN, 0)."""
    return _FLAG_TABLE.get(code, _UNKNOWN)


def calculate_progress(
    bytes_to_download: Optional[int],
    bytes_downloaded: Optional[int],
    bytes_to_stage: Optional[int],
    bytes_staged: Optional[int],
) -> float:
    total = (bytes_to_download or 0) + (bytes_to_stage or 0)
    done = (bytes_downloaded or 0) + (bytes_staged or 0)
    if total <= 0:
        return 0.0
    return min(100.0, max(0.0, done / total * 100.0))


def resolve_status(
    state_flags: Optional[int],
    bytes_to_download: Optional[int] = None,
    bytes_downloaded: Optional[int] = None,
    bytes_to_stage: Optional[int] = None,
    bytes_staged: Optional[int] = None,
) -> Optional[StatusTriple]:
    """
    Resolve a status triple, byte counters first, then the flag table.

    Returns None when there is nothing to go on (no counters with remaining
    work and no state code).
    """
    remaining_download = 0
    if bytes_to_download is not None and bytes_downloaded is not None:
        remaining_download = max(0, bytes_to_download - bytes_downloaded)

    remaining_stage = 0
    if bytes_to_stage is not None and bytes_staged is not None:
        remaining_stage = max(0, bytes_to_stage - bytes_staged)

    if remaining_download > 0 or remaining_stage > 0:
        progress = calculate_progress(bytes_to_download, bytes_downloaded, bytes_to_stage, bytes_staged)
        if remaining_download > 0:
            return ("DOWNLOADING", "UNKNOWN", progress)
        return ("IDLE", "INSTALLING", progress)

    if state_flags is not None:
        return interpret(state_flags)

    if any(v is not None for v in (bytes_to_download, bytes_downloaded, bytes_to_stage, bytes_staged)):
        # Counters present and nothing left to do.
        return ("IDLE", "IDLE", 100.0)

    return None


def resolve_manifest_status(record: RawManifestRecord) -> Optional[StatusTriple]:
    return resolve_status(
        record.state_flags,
        record.bytes_to_download,
        record.bytes_downloaded,
        record.bytes_to_stage,
        record.bytes_staged,
    )
