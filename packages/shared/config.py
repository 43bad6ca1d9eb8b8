from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from packages.core.errors import ConfigurationError

ENV_PREFIX = "POWERDOWN_"

# env var suffix -> (field name, kind)
_ENV_FIELDS = {
    "VERIFICATIONDELAY": ("verification_delay_seconds", int),
    "POLLINGINTERVAL": ("polling_interval_seconds", int),
    "REQUIREDCHECKS": ("required_no_activity_checks", int),
    "SHUTDOWNDELAY": ("shutdown_delay_seconds", int),
    "MONITORSTEAM": ("monitor_steam", bool),
    "MONITOREPIC": ("monitor_epic", bool),
    "STEAMPATH": ("custom_steam_path", str),
    "EPICPATH": ("custom_epic_path", str),
    "DRYRUN": ("dry_run", bool),
    "VERBOSE": ("verbose", bool),
}

# Keys used by the JSON settings file of earlier releases.
_LEGACY_KEYS = {
    "VerificationDelaySeconds": "verification_delay_seconds",
    "PollingIntervalSeconds": "polling_interval_seconds",
    "RequiredNoActivityChecks": "required_no_activity_checks",
    "ShutdownDelaySeconds": "shutdown_delay_seconds",
    "MonitorSteam": "monitor_steam",
    "MonitorEpic": "monitor_epic",
    "DryRun": "dry_run",
    "Verbose": "verbose",
    "CustomSteamPath": "custom_steam_path",
    "CustomEpicPath": "custom_epic_path",
}


class AppConfig(BaseModel):
    verification_delay_seconds: int = Field(120, gt=0)
    polling_interval_seconds: int = Field(15, gt=0)
    required_no_activity_checks: int = Field(5, gt=0)
    shutdown_delay_seconds: int = Field(60, gt=0)
    monitor_steam: bool = True
    monitor_epic: bool = True
    dry_run: bool = False
    verbose: bool = False
    custom_steam_path: Optional[str] = None
    custom_epic_path: Optional[str] = None

    @model_validator(mode="after")
    def _check_verification_window(self) -> "AppConfig":
        needed = self.required_no_activity_checks * self.polling_interval_seconds
        if needed > self.verification_delay_seconds:
            raise ValueError(
                f"verification delay ({self.verification_delay_seconds}s) is shorter than "
                f"{self.required_no_activity_checks} checks x {self.polling_interval_seconds}s interval"
            )
        return self

    @classmethod
    def build(cls, **values: Any) -> "AppConfig":
        """Validate values, raising ConfigurationError instead of pydantic's ValidationError."""
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigurationError(_describe(e)) from e

    def merged(self, **overrides: Any) -> "AppConfig":
        data = self.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return AppConfig.build(**data)


def _describe(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", ())) or "config"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def normalize_settings(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Accept either flat snake_case settings or the {"PowerDown": {...}} PascalCase layout."""
    section = data.get("PowerDown", data)
    if not isinstance(section, Mapping):
        raise ConfigurationError("'PowerDown' settings must be an object")
    return {_LEGACY_KEYS.get(k, k): v for k, v in section.items()}


def _parse_bool(raw: str) -> Optional[bool]:
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    return None


def _parse_int(raw: str) -> Optional[int]:
    try:
        return int(raw.strip())
    except ValueError:
        return None


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Settings from POWERDOWN_* variables. Unparsable values are ignored."""
    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {}
    for suffix, (field_name, kind) in _ENV_FIELDS.items():
        raw = env.get(ENV_PREFIX + suffix)
        if raw is None or not raw.strip():
            continue
        if kind is int:
            parsed: Any = _parse_int(raw)
        elif kind is bool:
            parsed = _parse_bool(raw)
        else:
            parsed = raw
        if parsed is not None:
            values[field_name] = parsed
    return values
