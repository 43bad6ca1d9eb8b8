from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from packages.core.errors import ConfigurationError
from packages.shared.config import AppConfig, normalize_settings
from packages.shared.paths import config_path, ensure_app_dirs

log = logging.getLogger(__name__)


class ConfigStore:
    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        if path is None:
            ensure_app_dirs()
            self._path = config_path()
        else:
            self._path = Path(path)

    def load(self, create: bool = True) -> AppConfig:
        """Load and validate settings from disk. Invalid values raise ConfigurationError."""
        return AppConfig.build(**self.load_settings(create))

    def load_settings(self, create: bool = True) -> Dict[str, Any]:
        """
        Raw settings from disk, normalized to field names but not validated,
        so they can be layered under other sources before a single build.

        A missing file yields {} (defaults are written back when create=True);
        a file that is not valid JSON yields {} with a warning.
        """
        if not self._path.exists():
            if create:
                self.save(AppConfig())
            return {}

        try:
            raw = self._path.read_text(encoding="utf-8")
            data: Any = json.loads(raw)
        except (OSError, ValueError) as e:
            log.warning(f"Could not read config {self._path}: {e}; using defaults")
            return {}

        if not isinstance(data, dict):
            raise ConfigurationError(f"{self._path}: expected a JSON object")
        return normalize_settings(data)

    def save(self, cfg: AppConfig) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(cfg.model_dump_json(indent=2), encoding="utf-8")

    def path(self) -> str:
        return str(self._path)
