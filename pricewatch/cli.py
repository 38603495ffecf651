"""CLI entry point for the price watch engine.

This module handles argument parsing and command dispatch.
The sweep functions live in main.py and are injected, which keeps this
module free of network and storage imports.
"""

import argparse
import json
from collections.abc import Callable

from .config import Config
from .logger import logger


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        description="Price watch: re-alert on tickers that stay near their alert price",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m pricewatch.main --once                   Process due watches once
  python -m pricewatch.main --schedule seeds.json    Schedule seeds, sweeping before and after
  python -m pricewatch.main --positions              Check watched positions for drops
  python -m pricewatch.main --status                 Print health status
  python -m pricewatch.main --interval 300           Sweep every 5 minutes
        """
    )

    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Config file path (default: config.yaml)"
    )

    parser.add_argument(
        "--interval",
        type=int,
        default=300,
        metavar="SECONDS",
        help="Sweep interval in seconds (default: 300 = 5 minutes)"
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one price watch sweep and exit (default: continuous)"
    )

    parser.add_argument(
        "--schedule",
        metavar="SEEDS_JSON",
        default=None,
        help="Schedule watches from a JSON array of seeds"
    )

    parser.add_argument(
        "--positions",
        action="store_true",
        help="Run the watched positions check and exit"
    )

    parser.add_argument(
        "--status",
        action="store_true",
        help="Print health status as JSON and exit"
    )

    return parser


def run_cli(
    argv: list[str] | None = None,
    *,
    sweep_fn: Callable,
    schedule_fn: Callable,
    positions_fn: Callable,
    status_fn: Callable,
    continuous_fn: Callable,
) -> int:
    """
    Parse arguments and dispatch to the appropriate run function.

    Args:
        argv: Command line arguments (None for sys.argv)
        sweep_fn: Runs one price watch sweep
        schedule_fn: Schedules seeds from a file
        positions_fn: Runs the watched positions check
        status_fn: Returns the health status dict
        continuous_fn: Sweeps forever at an interval

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        cfg = Config.load(args.config)
        logger.set_level(cfg.log_level)

        if args.status:
            print(json.dumps(status_fn(cfg), indent=2, default=str))
            return 0

        if args.schedule:
            print(f"📥 Scheduling watches from {args.schedule}...\n")
            submitted = schedule_fn(cfg, args.schedule)
            print(f"\n✅ Scheduled {submitted} watch(es)")
            return 0

        if args.positions:
            print("💼 Checking watched positions...\n")
            result = positions_fn(cfg)
            print(f"\n✅ Positions checked: {result.checked}, alerts: {len(result.alerts)}")
            return 0

        if args.once:
            print("🔍 Running price watch sweep once...\n")
            result = sweep_fn(cfg)
            print(f"\n✅ Sweep complete: checked={result.checked} triggered={len(result.triggered)} "
                  f"expired={result.expired} rescheduled={result.rescheduled} "
                  f"data_unavailable={result.data_unavailable}")
            return 0

        # Continuous mode (default)
        continuous_fn(cfg, args.interval)
        return 0

    except KeyboardInterrupt:
        print("\n\n👋 Interrupted by user")
        return 130

    except Exception as e:
        logger.exception("fatal_error")
        print(f"❌ Fatal error: {e}")
        return 1


def main(argv: list[str] | None = None) -> int:
    """
    Console script entry point.

    Note: This imports from main.py to avoid circular imports.
    """
    # Late import to avoid circular dependency
    from . import main as main_module

    return main_module.main(argv)
