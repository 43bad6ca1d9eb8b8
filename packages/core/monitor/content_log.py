"""
Steam content_log.txt line parsing.

Each recognized line becomes a LogEvent. Lines that carry an AppID are
keyed by id; the older free-text lines only carry a title, which is pulled
out with the "Starting <name>" / "for <name> -" patterns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Optional

LogEventKind = Literal[
    "APP_DOWNLOADING",  # AppID N update started / update changed: Downloading
    "APP_INSTALLING",  # AppID N update changed: Staging/Committing/...
    "APP_SETTLED",  # AppID N update changed: None / state changed: Fully Installed
    "TITLE_DOWNLOADING",  # Downloading 1.5 GiB for <title> -
    "TITLE_DOWNLOAD_COMPLETE",
    "TITLE_INSTALL_COMPLETE",
]


@dataclass(frozen=True)
class LogEvent:
    kind: LogEventKind
    app_id: Optional[str] = None
    title: Optional[str] = None


_UPDATE_CHANGED = re.compile(r"AppID\s+(?P<id>\d+)\s+update changed\s*:\s*(?P<state>.+)", re.IGNORECASE)
_UPDATE_STARTED = re.compile(r"AppID\s+(?P<id>\d+)\s+update started\s*:\s*download", re.IGNORECASE)
_STATE_CHANGED = re.compile(r"AppID\s+(?P<id>\d+)\s+state changed\s*:\s*(?P<state>.+)", re.IGNORECASE)

_DOWNLOAD_PROGRESS = re.compile(r"Downloading\s+([\d.]+)\s+GiB", re.IGNORECASE)
_DOWNLOAD_COMPLETE = re.compile(r"Download complete|Download finished", re.IGNORECASE)
_INSTALL_COMPLETE = re.compile(r"Installed|Installation complete", re.IGNORECASE)

_STARTING_TITLE = re.compile(r"Starting\s+([^\[\]]+)")
_FOR_TITLE = re.compile(r"for\s+(.+?)\s+-")

_INSTALLING_WORDS = ("staging", "committing", "preallocating", "reconfiguring", "validating")
_PENDING_UPDATE_WORDS = ("update running", "update started", "update queued")


def is_installing_state(state: str) -> bool:
    s = state.lower()
    return any(w in s for w in _INSTALLING_WORDS)


def is_fully_installed_state(state: str) -> bool:
    s = state.lower()
    return "fully installed" in s and not any(w in s for w in _PENDING_UPDATE_WORDS)


def extract_title(line: str) -> Optional[str]:
    for pattern in (_STARTING_TITLE, _FOR_TITLE):
        m = pattern.search(line)
        if m:
            title = m.group(1).strip()
            if title:
                return title
    return None


def parse_line(line: str) -> Optional[LogEvent]:
    """Turn one log line into a LogEvent, or None if it says nothing useful."""
    if not line or not line.strip():
        return None

    m = _UPDATE_CHANGED.search(line)
    if m:
        app_id, state = m.group("id"), m.group("state")
        if "downloading" in state.lower():
            return LogEvent("APP_DOWNLOADING", app_id=app_id)
        if is_installing_state(state):
            return LogEvent("APP_INSTALLING", app_id=app_id)
        if "none" in state.lower():
            return LogEvent("APP_SETTLED", app_id=app_id)
        return None

    m = _UPDATE_STARTED.search(line)
    if m:
        return LogEvent("APP_DOWNLOADING", app_id=m.group("id"))

    m = _STATE_CHANGED.search(line)
    if m and is_fully_installed_state(m.group("state")):
        return LogEvent("APP_SETTLED", app_id=m.group("id"))

    if _DOWNLOAD_PROGRESS.search(line):
        title = extract_title(line)
        return LogEvent("TITLE_DOWNLOADING", title=title) if title else None

    if _DOWNLOAD_COMPLETE.search(line):
        title = extract_title(line)
        return LogEvent("TITLE_DOWNLOAD_COMPLETE", title=title) if title else None

    if _INSTALL_COMPLETE.search(line):
        title = extract_title(line)
        return LogEvent("TITLE_INSTALL_COMPLETE", title=title) if title else None

    return None
