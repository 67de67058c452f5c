#!/usr/bin/env python3
"""
Bastion maintenance command
Run from cron on the maintenance host; anything printed is mailed to the operator
"""
import argparse
import logging
import signal
import sys
from datetime import datetime
from typing import List, Optional

from config import ConfigurationMissing, MaintenanceConfig
from services.binaries import BinaryCheckerService
from services.engines import EngineAdapter
from services.maintenance import CancellationToken, MaintenanceDriver, MaintenanceInterrupted
from services.maintenance_defaults import ExitStatus
from services.rotation import RotationFileMissing, RotationReminder

logger = logging.getLogger("bastion")


def build_driver(config: MaintenanceConfig, verbose: bool = False) -> MaintenanceDriver:
    """Create a driver wired to the configured engine binaries and limits"""
    settings = config.get_global_settings()
    adapter = EngineAdapter(
        path=settings['path'],
        borg_binary=settings['borg_binary'],
        restic_binary=settings['restic_binary'],
        timeout=settings['operation_timeout'] or None
    )
    return MaintenanceDriver(adapter=adapter, stream=sys.stdout,
                             verbose=verbose or bool(settings.get('show_output')))


def install_signal_handlers(token: CancellationToken):
    """Route SIGINT/SIGTERM into the cancellation token; returns the previous handlers"""
    def handle_signal(signum, frame):
        token.cancel()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handle_signal)
    return previous


def restore_signal_handlers(previous) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def run_maintenance(args) -> int:
    try:
        config = MaintenanceConfig(args.config)
        targets = config.get_targets()
    except ConfigurationMissing as e:
        logger.error("Configuration missing: %s", e)
        return ExitStatus.CONFIGURATION_MISSING

    if args.target:
        known = {target.name for target in targets}
        unknown = [name for name in args.target if name not in known]
        if unknown:
            logger.error("Unknown target(s): %s", ", ".join(unknown))
            return ExitStatus.CONFIGURATION_MISSING
        targets = [target for target in targets if target.name in args.target]

    driver = build_driver(config, verbose=args.verbose)
    token = CancellationToken()
    previous = install_signal_handlers(token)
    try:
        return driver.run_all(targets, token)
    except MaintenanceInterrupted as e:
        print(f"{datetime.now().astimezone().strftime('%c %Z')} {e}", file=sys.stderr)
        return ExitStatus.INTERRUPTED
    finally:
        restore_signal_handlers(previous)


def check_rotation(args) -> int:
    rotate_file = args.rotate_file
    days = args.days
    if rotate_file is None or days is None:
        try:
            rotation = MaintenanceConfig(args.config).get_setting('rotation', {})
        except ConfigurationMissing as e:
            logger.error("Configuration missing: %s", e)
            return ExitStatus.CONFIGURATION_MISSING
        rotate_file = rotate_file or rotation.get('rotate_file')
        days = days if days is not None else rotation.get('days')

    try:
        reminder = RotationReminder(rotate_file, int(days))
    except (TypeError, ValueError) as e:
        logger.error("Invalid rotation period %r: %s", days, e)
        return ExitStatus.CONFIGURATION_MISSING

    try:
        status = reminder.check()
    except RotationFileMissing as e:
        print(f"***ERROR*** {e}")
        return ExitStatus.ERROR

    for line in status.messages():
        print(line)
    return ExitStatus.OK


def check_binaries(args) -> int:
    try:
        settings = MaintenanceConfig(args.config).get_global_settings()
    except ConfigurationMissing as e:
        logger.error("Configuration missing: %s", e)
        return ExitStatus.CONFIGURATION_MISSING

    checker = BinaryCheckerService(
        path=settings['path'],
        binaries={'borg': settings['borg_binary'], 'restic': settings['restic_binary']}
    )
    missing = False
    for name, status in checker.check_all().items():
        if status['available']:
            print(f"{name}: {status['version']}")
        else:
            missing = True
            print(f"{name}: {status['error']}")
    return ExitStatus.ERROR if missing else ExitStatus.OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bastion",
        description="Prune, compact, check and audit Borg and Restic repositories from a maintenance host"
    )
    parser.add_argument("--config", default=None,
                        help="Path to maintenance.yaml (default: $BASTION_CONFIG or /etc/bastion/maintenance.yaml)")
    parser.add_argument("--debug", action="store_true", help="Log process diagnostics to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run maintenance for every registered target")
    run_parser.add_argument("-v", "--verbose", action="store_true",
                            help="Show every log entry as it happens, not only for failed targets")
    run_parser.add_argument("--target", action="append", metavar="NAME",
                            help="Only maintain this target (repeatable)")
    run_parser.set_defaults(handler=run_maintenance)

    rotation_parser = subparsers.add_parser("rotation", help="Remind the operator to rotate the backup drive")
    rotation_parser.add_argument("--rotate-file", default=None, help="Rotation marker file")
    rotation_parser.add_argument("--days", type=int, default=None, help="Rotation period in days")
    rotation_parser.set_defaults(handler=check_rotation)

    binaries_parser = subparsers.add_parser("binaries", help="Check that the engine binaries can be started")
    binaries_parser.set_defaults(handler=check_binaries)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr
    )
    return args.handler(args)


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
