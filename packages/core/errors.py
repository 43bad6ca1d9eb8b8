from __future__ import annotations


class PowerDownError(Exception):
    """Base class for errors raised by the monitoring core."""


class ConfigurationError(PowerDownError, ValueError):
    """Invalid configuration, rejected before monitoring begins."""


class LauncherNotFoundError(PowerDownError, FileNotFoundError):
    """A launcher installation directory does not exist."""


class NoLaunchersError(PowerDownError):
    """None of the configured launchers could be initialized."""


class ShutdownCommandError(PowerDownError, RuntimeError):
    """The OS shutdown command could not be executed."""


class VerificationError(PowerDownError):
    """The verification window elapsed without enough idle polls."""
