"""PowerDown command line: wait for game downloads to finish, then shut the machine down."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Mapping, Optional

from packages.core.errors import PowerDownError
from packages.core.logging_ import setup_logging
from packages.core.notifier import LogStatusNotifier
from packages.core.orchestrator import DownloadOrchestrator
from packages.core.platform.factory import create_detectors
from packages.core.shutdown.service import default_shutdown_service
from packages.shared.config import AppConfig, env_overrides
from packages.shared.store import ConfigStore

log = logging.getLogger(__name__)

EPILOG = """\
Configuration sources (in order of precedence):
  1. Command-line arguments
  2. Environment variables (POWERDOWN_VERIFICATIONDELAY, POWERDOWN_POLLINGINTERVAL,
     POWERDOWN_REQUIREDCHECKS, POWERDOWN_SHUTDOWNDELAY, POWERDOWN_MONITORSTEAM,
     POWERDOWN_MONITOREPIC, POWERDOWN_STEAMPATH, POWERDOWN_EPICPATH,
     POWERDOWN_DRYRUN, POWERDOWN_VERBOSE)
  3. Config file (--config, or the per-user config.json)
  4. Defaults
"""


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{raw}' is not a valid number")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="powerdown",
        description="PowerDown - Auto-shutdown when game downloads complete",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--delay", "-d", type=_positive_int, metavar="SECONDS", help="Verification delay in seconds (default: 120)")
    parser.add_argument("--interval", "-i", type=_positive_int, metavar="SECONDS", help="Polling interval in seconds (default: 15)")
    parser.add_argument("--checks", "-c", type=_positive_int, metavar="N", help="Required consecutive idle checks (default: 5)")
    parser.add_argument("--shutdown-delay", type=_positive_int, metavar="SECONDS", help="Delay before shutdown (default: 60)")

    only = parser.add_mutually_exclusive_group()
    only.add_argument("--steam-only", "-s", action="store_true", help="Monitor Steam only")
    only.add_argument("--epic-only", "-e", action="store_true", help="Monitor Epic Games only")

    parser.add_argument("--steam-path", metavar="PATH", help="Custom Steam install directory")
    parser.add_argument("--epic-path", metavar="PATH", help="Custom Epic Games install directory")
    parser.add_argument("--dry-run", "-r", action="store_true", help="Test mode without actual shutdown")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--config", metavar="PATH", help="Path to JSON config file")
    return parser


def build_config(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Defaults < config file < environment < command line.

    The layers are merged first and validated once, so a value that is only
    valid together with a higher-precedence one is accepted.
    """
    if args.config:
        settings = ConfigStore(args.config).load_settings(create=False)
    else:
        settings = ConfigStore().load_settings()
    settings.update(env_overrides(environ))

    overrides = {
        "verification_delay_seconds": args.delay,
        "polling_interval_seconds": args.interval,
        "required_no_activity_checks": args.checks,
        "shutdown_delay_seconds": args.shutdown_delay,
        "custom_steam_path": args.steam_path,
        "custom_epic_path": args.epic_path,
        "dry_run": True if args.dry_run else None,
        "verbose": True if args.verbose else None,
    }
    if args.steam_only:
        overrides.update(monitor_steam=True, monitor_epic=False)
    elif args.epic_only:
        overrides.update(monitor_steam=False, monitor_epic=True)
    settings.update({k: v for k, v in overrides.items() if v is not None})
    return AppConfig.build(**settings)


def _log_config(cfg: AppConfig) -> None:
    log.info("Configuration loaded:")
    log.info(f"  Verification Delay: {cfg.verification_delay_seconds}s")
    log.info(f"  Polling Interval: {cfg.polling_interval_seconds}s")
    log.info(f"  Required Checks: {cfg.required_no_activity_checks}")
    log.info(f"  Shutdown Delay: {cfg.shutdown_delay_seconds}s")
    log.info(f"  Monitor Steam: {cfg.monitor_steam}")
    log.info(f"  Monitor Epic: {cfg.monitor_epic}")
    log.info(f"  Dry Run: {cfg.dry_run}")
    if cfg.custom_steam_path:
        log.info(f"  Custom Steam Path: {cfg.custom_steam_path}")
    if cfg.custom_epic_path:
        log.info(f"  Custom Epic Path: {cfg.custom_epic_path}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config and not Path(args.config).is_file():
        parser.error(f"'--config' file not found: '{args.config}'")

    try:
        cfg = build_config(args)
    except PowerDownError as e:
        setup_logging(bool(args.verbose))
        log.error(f"Invalid configuration: {e}")
        return 1

    setup_logging(cfg.verbose)
    _log_config(cfg)

    orchestrator = DownloadOrchestrator(
        create_detectors(cfg),
        default_shutdown_service(),
        cfg,
        notifier=LogStatusNotifier(),
    )

    def signal_handler(sig, frame):
        log.info("Received interrupt signal (Ctrl+C), cancelling...")
        orchestrator.cancel()

    previous = signal.signal(signal.SIGINT, signal_handler)
    try:
        phase = orchestrator.monitor_and_shutdown()
    except Exception as e:
        log.error(f"{e}")
        return 1
    finally:
        signal.signal(signal.SIGINT, previous)

    log.info(f"Finished: {phase}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
