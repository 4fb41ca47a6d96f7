"""
Hoppscotch Collection Backup — Entry Point.

Reads configuration (appsettings.json, .env, environment), then runs one of
three modes:

Usage:
    hoppscotch-backup                      # Full backup: auth -> export -> git push
    hoppscotch-backup test-auth            # Only check the Hoppscotch token
    hoppscotch-backup explore-schema       # Save and list the GraphQL query operations
    hoppscotch-backup --debug              # Verbose output
    hoppscotch-backup --env /path/.env     # Use alternate .env file
    hoppscotch-backup --config a.json      # Use alternate JSON config file(s)

Exit code is 0 on success and 1 on any failure, including configuration errors.
"""

import argparse
import logging
import sys

from . import __version__
from .errors import BackupError, ConfigError
from .events import ConsoleReporter, EventBus
from .orchestrator import BackupPipeline
from .settings import load_settings

MODES = {
    None: "Backup",
    "test-auth": "Authentication test",
    "explore-schema": "Schema exploration",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hoppscotch-backup",
        description="Hoppscotch Backup - Export team collections and push them to a git branch",
    )
    parser.add_argument(
        "mode",
        nargs="?",
        choices=[m for m in MODES if m],
        help="Diagnostic mode (default: run the full backup)",
    )
    parser.add_argument("--env", "-e", default="./.env", help="Path to .env file")
    parser.add_argument(
        "--config", "-c", action="append", metavar="FILE",
        help="JSON config file with a BackupSettings section (repeatable; "
             "default: appsettings.json, appsettings.Development.json)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--version", "-v", action="version", version=f"hoppscotch-backup {__version__}")
    return parser


def print_configuration(settings):
    print("Configuration values:")
    for key, value in settings.describe().items():
        print(f"  {key}: {value}")
    print("\nConfiguration sources:")
    for source in settings.sources:
        print(f"  - {source}")


def main(argv=None) -> int:
    """Parse CLI arguments, run the selected mode and return the exit code."""
    args = build_parser().parse_args(argv)
    label = MODES[args.mode]

    try:
        settings = load_settings(env_file=args.env, config_files=args.config)
    except ConfigError as e:
        print(f"{label} failed: {e}")
        return 1

    debug = args.debug or settings.debug
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s - %(levelname)s - %(message)s")

    print(f"\n{'='*60}")
    print(f"HOPPSCOTCH COLLECTION BACKUP v{__version__}")
    print("="*60)
    print_configuration(settings)

    try:
        settings.ensure_valid()
    except ConfigError as e:
        print("\nConfiguration Errors:")
        for err in e.errors:
            print(f"  - {err}")
        print(f"\n{label} failed: {e}")
        return 1

    events = EventBus()
    events.subscribe(ConsoleReporter(debug=debug))

    try:
        with BackupPipeline.from_settings(settings, events=events) as pipeline:
            if args.mode == "test-auth":
                pipeline.test_auth()
            elif args.mode == "explore-schema":
                pipeline.explore_schema()
            else:
                result = pipeline.run()
                print(f"\nBranch: {result.branch}")
                print(f"Files exported: {len(result.exported_files)}")
                if result.warnings:
                    print(f"Collections skipped: {len(result.warnings)}")
    except BackupError as e:
        print(f"\n{label} failed: {e}")
        return 1
    except Exception as e:
        print(f"\n{label} failed: {e}")
        if debug:
            import traceback
            traceback.print_exc()
        return 1

    print(f"\n{label} completed successfully.")
    return 0


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
