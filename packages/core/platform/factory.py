from __future__ import annotations

import logging
from typing import List, Optional

from packages.shared.config import AppConfig

from ..monitor.detector import DownloadDetector, LauncherDownloadDetector, epic_config, steam_config
from .paths import detect_epic_path, detect_steam_path, epic_manifest_dir

log = logging.getLogger(__name__)


def create_detectors(config: AppConfig, platform: Optional[str] = None) -> List[DownloadDetector]:
    """Detectors for every enabled launcher whose install directory could be found."""
    detectors: List[DownloadDetector] = []

    if config.monitor_steam:
        steam_root = detect_steam_path(config.custom_steam_path, platform)
        if steam_root is not None:
            detectors.append(LauncherDownloadDetector(steam_config(steam_root)))
            log.info(f"Steam detected at: {steam_root}")
        else:
            log.warning("Steam path not found - Steam monitoring disabled")

    if config.monitor_epic:
        epic_root = detect_epic_path(config.custom_epic_path, platform)
        if epic_root is not None:
            detectors.append(LauncherDownloadDetector(epic_config(epic_root, epic_manifest_dir(epic_root, platform))))
            log.info(f"Epic Games detected at: {epic_root}")
        else:
            log.warning("Epic Games path not found - Epic monitoring disabled")

    if not detectors:
        log.warning("No launchers detected")
    return detectors
