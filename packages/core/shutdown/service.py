"""
OS shutdown commands.

Each service wraps the platform's `shutdown` tool via subprocess. A
successful schedule/cancel is tracked in `is_scheduled`; a command that
cannot be run at all raises ShutdownCommandError.
"""

from __future__ import annotations

import logging
import math
import subprocess
import sys
from typing import List, Optional, Protocol

from ..errors import ShutdownCommandError

log = logging.getLogger(__name__)

_NO_WINDOW = subprocess.CREATE_NO_WINDOW if hasattr(subprocess, "CREATE_NO_WINDOW") else 0


class ShutdownService(Protocol):
    @property
    def is_scheduled(self) -> bool:
        ...

    def schedule(self, delay_seconds: int, message: str) -> None:
        ...

    def cancel(self) -> None:
        ...


class CommandShutdownService:
    """Base for services that shell out to a shutdown command."""

    timeout_seconds = 15.0

    def __init__(self) -> None:
        self._scheduled = False

    @property
    def is_scheduled(self) -> bool:
        return self._scheduled

    def schedule(self, delay_seconds: int, message: str) -> None:
        if delay_seconds <= 0:
            raise ValueError("Delay must be greater than 0")
        rc = self._run(self.schedule_args(delay_seconds, message))
        self._scheduled = rc == 0
        if rc != 0:
            log.warning(f"Shutdown command exited with code {rc}")

    def cancel(self) -> None:
        rc = self._run(self.cancel_args())
        if rc == 0:
            self._scheduled = False
        else:
            log.warning(f"Shutdown cancel command exited with code {rc}")

    def schedule_args(self, delay_seconds: int, message: str) -> List[str]:
        raise NotImplementedError

    def cancel_args(self) -> List[str]:
        raise NotImplementedError

    def _run(self, args: List[str]) -> int:
        log.debug(f"Running: {' '.join(args)}")
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                creationflags=_NO_WINDOW,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            raise ShutdownCommandError(f"Failed to execute shutdown command: {e}") from e
        if result.returncode != 0 and result.stderr:
            log.debug(f"{args[0]} stderr: {result.stderr[:200]}")
        return result.returncode


class WindowsShutdownService(CommandShutdownService):
    def schedule_args(self, delay_seconds: int, message: str) -> List[str]:
        args = ["shutdown.exe", "/s", "/t", str(delay_seconds)]
        if message.strip():
            args += ["/c", message]
        return args

    def cancel_args(self) -> List[str]:
        return ["shutdown.exe", "/a"]


def _minutes(delay_seconds: int) -> int:
    # Unix shutdown only takes whole minutes.
    return max(1, math.ceil(delay_seconds / 60))


class LinuxShutdownService(CommandShutdownService):
    def schedule_args(self, delay_seconds: int, message: str) -> List[str]:
        args = ["shutdown", "-h", f"+{_minutes(delay_seconds)}"]
        if message.strip():
            args.append(message)
        return args

    def cancel_args(self) -> List[str]:
        return ["shutdown", "-c"]


class MacShutdownService(CommandShutdownService):
    def schedule_args(self, delay_seconds: int, message: str) -> List[str]:
        args = ["shutdown", "-h", f"+{_minutes(delay_seconds)}"]
        if message.strip():
            args.append(message)
        return args

    def cancel_args(self) -> List[str]:
        return ["killall", "shutdown"]


def default_shutdown_service(platform: Optional[str] = None) -> CommandShutdownService:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return WindowsShutdownService()
    if platform == "darwin":
        return MacShutdownService()
    return LinuxShutdownService()
