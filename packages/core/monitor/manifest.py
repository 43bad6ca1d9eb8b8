"""
Manifest scanning for launcher libraries.

Two interchangeable parsers produce RawManifestRecord objects:
  - AcfManifestParser: Steam's brace-delimited key/value text (appmanifest_*.acf)
  - EpicManifestParser: Epic Games Launcher JSON manifests

Parsing is tolerant. A bad field becomes None; a file that cannot be read
or decoded is logged and skipped so the rest of the library still counts.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from . import state_flags
from .types import RawManifestRecord

log = logging.getLogger(__name__)

_KV_LINE = re.compile(r'^\s*"(?P<key>[^"]+)"\s+"(?P<value>(?:[^"\\]|\\.)*)"')


def parse_key_values(text: str, max_depth: int = 1) -> Dict[str, str]:
    """
    Flat key/value view of a VDF-style document.

    Only keys at brace depth <= max_depth are kept (the first occurrence of
    each key wins, compared case-insensitively), so nested blocks such as
    InstalledDepots do not shadow the top-level fields.
    """
    values: Dict[str, str] = {}
    depth = 0
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith("{"):
            depth += 1
            continue
        if line.startswith("}"):
            depth = max(0, depth - 1)
            continue
        m = _KV_LINE.match(line)
        if m and depth <= max_depth:
            key = m.group("key").lower()
            values.setdefault(key, m.group("value"))
    return values


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class ManifestParser(Protocol):
    patterns: Sequence[str]

    def parse(self, path: Path, text: str) -> Optional[RawManifestRecord]:
        ...


class AcfManifestParser:
    patterns: Sequence[str] = ("appmanifest_*.acf",)

    def parse(self, path: Path, text: str) -> Optional[RawManifestRecord]:
        kv = parse_key_values(text)
        app_id = kv.get("appid") or app_id_from_filename(path)
        name = kv.get("name") or None
        if app_id is None and name is None:
            return None
        return RawManifestRecord(
            path=path,
            app_id=app_id,
            name=name,
            state_flags=_to_int(kv.get("stateflags")),
            bytes_to_download=_to_int(kv.get("bytestodownload")),
            bytes_downloaded=_to_int(kv.get("bytesdownloaded")),
            bytes_to_stage=_to_int(kv.get("bytestostage")),
            bytes_staged=_to_int(kv.get("bytesstaged")),
        )


class EpicManifestParser:
    """
    Epic manifests are JSON. The install state is encoded in the version
    string ("...+Downloading", "...+Installing") and is normalized onto the
    Steam flag codes so both launchers share one interpreter.
    """

    patterns: Sequence[str] = ("*.item", "*.manifest")

    def parse(self, path: Path, text: str) -> Optional[RawManifestRecord]:
        root = json.loads(text)
        if not isinstance(root, dict):
            return None
        manifest = root.get("Manifest")
        if not isinstance(manifest, dict):
            manifest = root

        app_name = _str_or_none(manifest.get("AppName"))
        display_name = _str_or_none(manifest.get("DisplayName")) or app_name
        if app_name is None and display_name is None:
            return None

        version = _str_or_none(manifest.get("AppVersion")) or _str_or_none(manifest.get("AppVersionString")) or ""
        if "+Downloading" in version:
            flags = state_flags.DOWNLOADING
        elif "+Installing" in version:
            flags = state_flags.INSTALLING_UPDATE
        else:
            flags = state_flags.FULLY_INSTALLED

        return RawManifestRecord(path=path, app_id=app_name, name=display_name, state_flags=flags)


def _str_or_none(value: object) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def app_id_from_filename(path: Path) -> Optional[str]:
    stem = path.stem
    prefix = "appmanifest_"
    if stem.lower().startswith(prefix):
        return stem[len(prefix):] or None
    return None


def read_library_folders(index_path: Path, warn: Optional[Callable[[str], None]] = None) -> List[Path]:
    """Library paths listed in a Steam libraryfolders.vdf (empty if absent or unreadable)."""
    if not index_path.is_file():
        return []
    warn = warn or log.warning
    try:
        text = index_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        warn(f"Error reading library folders {index_path}: {e}")
        return []

    folders: List[Path] = []
    for line in text.splitlines():
        m = _KV_LINE.match(line.strip())
        if not m or m.group("key").lower() != "path":
            continue
        value = m.group("value").replace("\\\\", "\\").strip()
        if value:
            folders.append(Path(value))
    return folders


class ManifestScanner:
    def __init__(self, parser: ManifestParser, warn: Optional[Callable[[str], None]] = None) -> None:
        self._parser = parser
        self._warn = warn or log.warning

    def discover_roots(self, primary_root: Path, index_path: Optional[Path] = None, subdir: str = "") -> List[Path]:
        """
        Manifest directories to scan: the primary root first, then every
        library listed in the index (each joined with subdir), de-duplicated.
        """
        roots = [primary_root]
        if index_path is not None:
            for folder in read_library_folders(index_path, self._warn):
                roots.append(folder / subdir if subdir else folder)

        seen = set()
        unique: List[Path] = []
        for root in roots:
            norm = os.path.normcase(os.path.normpath(str(root)))
            if norm in seen:
                continue
            seen.add(norm)
            unique.append(root)
        return unique

    def scan(self, roots: Iterable[Path]) -> List[RawManifestRecord]:
        records: List[RawManifestRecord] = []
        for root in roots:
            if not root.is_dir():
                continue
            for path in self._list_manifests(root):
                record = self._parse_file(path)
                if record is not None:
                    records.append(record)
        return records

    def _list_manifests(self, root: Path) -> List[Path]:
        files: List[Path] = []
        try:
            for pattern in self._parser.patterns:
                files.extend(sorted(p for p in root.glob(pattern) if p.is_file()))
        except OSError as e:
            self._warn(f"Error listing manifests in {root}: {e}")
        return files

    def _parse_file(self, path: Path) -> Optional[RawManifestRecord]:
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
            return self._parser.parse(path, text)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            self._warn(f"Error parsing manifest {path}: {e}")
            return None
