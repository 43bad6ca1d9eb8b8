"""
Launcher install locations.

A custom path always wins when it exists; a custom path that does not exist
disables the launcher instead of silently falling back to a default.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import psutil

log = logging.getLogger(__name__)

_STEAM_PROCESS_NAMES = {"steam", "steam.exe", "steam_osx"}


def validate_and_resolve(
    custom_path: Optional[str],
    launcher_name: str,
    default_resolver: Callable[[], Optional[Path]],
) -> Optional[Path]:
    if custom_path is None or not custom_path.strip():
        return default_resolver()

    p = Path(custom_path).expanduser()
    if p.is_dir():
        return p.resolve()

    log.warning(f"Custom {launcher_name} path does not exist: {custom_path}")
    return None


def _first_dir(candidates: Iterable[Path]) -> Optional[Path]:
    for c in candidates:
        if c.is_dir():
            return c
    return None


def _platform(platform: Optional[str]) -> str:
    return platform or sys.platform


def steam_candidates(platform: Optional[str] = None, home: Optional[Path] = None) -> List[Path]:
    plat = _platform(platform)
    home = home or Path.home()
    if plat.startswith("win"):
        out = []
        for var in ("ProgramFiles(x86)", "ProgramFiles"):
            base = os.environ.get(var)
            if base:
                out.append(Path(base) / "Steam")
        return out
    if plat == "darwin":
        return [home / "Library" / "Application Support" / "Steam"]
    return [home / ".local" / "share" / "Steam", home / ".steam" / "steam"]


def epic_candidates(platform: Optional[str] = None, home: Optional[Path] = None) -> List[Path]:
    plat = _platform(platform)
    home = home or Path.home()
    if plat.startswith("win"):
        out = []
        installed = _epic_from_launcher_installed()
        if installed is not None:
            out.append(installed)
        base = os.environ.get("ProgramFiles")
        if base:
            out.append(Path(base) / "Epic Games")
        return out
    if plat == "darwin":
        return [home / "Library" / "Application Support" / "Epic"]
    return [home / ".local" / "share" / "Epic", home / "Games" / "Epic"]


def epic_manifest_dir(epic_root: Path, platform: Optional[str] = None) -> Path:
    """Windows keeps Epic manifests under ProgramData, not next to the games."""
    if _platform(platform).startswith("win"):
        program_data = os.environ.get("ProgramData")
        if program_data:
            return Path(program_data) / "Epic" / "EpicGamesLauncher" / "Data" / "Manifests"
    return epic_root / "Manifests"


def _epic_from_launcher_installed() -> Optional[Path]:
    program_data = os.environ.get("ProgramData")
    if not program_data:
        return None
    dat = Path(program_data) / "Epic" / "UnrealEngineLauncher" / "LauncherInstalled.dat"
    return epic_root_from_launcher_installed(dat)


def epic_root_from_launcher_installed(dat_path: Path) -> Optional[Path]:
    """Parent folder of the first installed game listed in LauncherInstalled.dat."""
    if not dat_path.is_file():
        return None
    try:
        data = json.loads(dat_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log.warning(f"Failed to parse {dat_path.name}: {e}")
        return None

    installs = data.get("InstallationList") if isinstance(data, dict) else None
    if not isinstance(installs, list) or not installs:
        return None
    first = installs[0]
    location = first.get("InstallLocation") if isinstance(first, dict) else None
    if not location:
        return None
    return Path(location).parent


def running_steam_dir() -> Optional[Path]:
    """Install directory of a running Steam client, if any."""
    for p in psutil.process_iter(attrs=["name", "exe"]):
        try:
            name = (p.info.get("name") or "").lower()
            exe = p.info.get("exe")
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        if name in _STEAM_PROCESS_NAMES and exe:
            folder = Path(exe).parent
            # Linux clients run from <root>/ubuntu12_32/steam.
            if folder.name.startswith("ubuntu12"):
                folder = folder.parent
            if (folder / "steamapps").is_dir():
                return folder
    return None


def default_steam_path(platform: Optional[str] = None) -> Optional[Path]:
    found = _first_dir(steam_candidates(platform))
    if found is not None:
        return found
    try:
        found = running_steam_dir()
    except psutil.Error as e:
        log.debug(f"Could not inspect running processes: {e}")
        found = None
    if found is None:
        log.warning("Steam installation not found")
    return found


def default_epic_path(platform: Optional[str] = None) -> Optional[Path]:
    found = _first_dir(epic_candidates(platform))
    if found is None:
        log.warning("Epic Games installation not found")
    return found


def detect_steam_path(custom_path: Optional[str] = None, platform: Optional[str] = None) -> Optional[Path]:
    return validate_and_resolve(custom_path, "Steam", lambda: default_steam_path(platform))


def detect_epic_path(custom_path: Optional[str] = None, platform: Optional[str] = None) -> Optional[Path]:
    return validate_and_resolve(custom_path, "Epic Games", lambda: default_epic_path(platform))
