#!/usr/bin/env python3
"""
Pre-copy migration tool.

This script checks whether a process can be pre-dumped, inspects the dump
statistics of images directories, and replays pages-written sequences through
the convergence policy to tune its thresholds.
"""

import sys
import logging
import argparse
from typing import List, Optional

from precopy.config.migration_settings import MigrationSettings, load_settings, validate_settings
from precopy.migration.criu_engine import CRIUError


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def get_settings(settings_path: Optional[str] = None) -> MigrationSettings:
    """Load settings from a file, or the defaults when no file is given."""
    if settings_path is None:
        return MigrationSettings()

    settings = load_settings(settings_path)
    is_valid, errors = validate_settings(settings)
    if not is_valid:
        raise ValueError(f"Invalid settings: {errors}")
    return settings


def check_process(settings: MigrationSettings, pid: int) -> bool:
    """Check that CRIU is usable and the process can be pre-dumped."""
    engine = settings.build_engine()

    print(f"Checking process {pid}...")
    try:
        engine.prepare(pid)
    except CRIUError as e:
        print(f"✗ {e}")
        return False

    engine.cleanup()
    print(f"✓ Process {pid} is ready for pre-copy migration")
    return True


def show_stats(settings: MigrationSettings, images_dirs: List[str]) -> bool:
    """Print dump statistics of images directories."""
    engine = settings.build_engine()
    success = True

    print("\n=== Dump Statistics ===")
    for images_dir in images_dirs:
        try:
            stats = engine.get_dump_stats(images_dir)
        except (CRIUError, ValueError) as e:
            print(f"{images_dir}: ✗ {e}")
            success = False
            continue

        print(f"{images_dir}:")
        print(f"  Pages written: {stats.pages_written}")
        print(f"  Pages skipped (parent): {stats.pages_skipped_parent}")
        print(f"  Pages scanned: {stats.pages_scanned}")
        print(f"  Frozen time: {stats.frozen_time / 1000000.:.3f} seconds")
    print()

    return success


def simulate_policy(settings: MigrationSettings, pages_written: List[int]) -> bool:
    """Replay a pages-written sequence through the convergence policy."""
    policy = settings.build_policy()
    iterations, reason = policy.simulate(pages_written)

    print("\n=== Convergence Simulation ===")
    print(f"Max iterations: {policy.max_iterations}")
    print(f"Min pages written: {policy.min_pages_written}")
    print(f"Max grow delta: {policy.max_grow_delta}")

    if reason is None:
        print(f"Sequence exhausted after {iterations} iterations without stopping")
    else:
        print(f"Stops after iteration {iterations}: {reason.value}")
    print()

    return True


def main(argv: Optional[List[str]] = None) -> int:
    """Main function."""
    parser = argparse.ArgumentParser(description="Pre-copy process migration tool")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--config", "-c", help="JSON settings file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    check_parser = subparsers.add_parser("check", help="Check that a process can be pre-dumped")
    check_parser.add_argument("pid", type=int, help="Process ID to check")

    stats_parser = subparsers.add_parser("stats", help="Show dump statistics of images directories")
    stats_parser.add_argument("images_dirs", nargs="+", help="Images directories")

    simulate_parser = subparsers.add_parser("simulate", help="Replay pages written through the policy")
    simulate_parser.add_argument("pages_written", type=int, nargs="+",
                                 help="Pages written by successive iterations")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    try:
        settings = get_settings(args.config)

        if args.command == "check":
            success = check_process(settings, args.pid)
        elif args.command == "stats":
            success = show_stats(settings, args.images_dirs)
        elif args.command == "simulate":
            success = simulate_policy(settings, args.pages_written)
        else:
            parser.print_help()
            return 1

        return 0 if success else 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1
    except Exception as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
