"""
Main Entry Point for the Cinema Shift Scheduling System

Command-line front end: loads a roster, generates the month (or one week)
for one or every cinema, logs the summary and optionally exports it.
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence, Tuple

from .data_manager import DataManager
from .exceptions import SchedulerError
from .reporting import ExportManager, ReportGenerator
from .scheduler_logic import ShiftScheduler
from .settings import load_settings


def setup_logging(log_dir: str = "logs", level: int = logging.INFO):
    """Setup application logging"""
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    log_file = log_path / f"cinema_scheduler_{datetime.now().strftime('%Y%m%d')}.log"

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ]
    )

    return logging.getLogger(__name__)


def parse_month(value: str) -> Tuple[int, int]:
    try:
        parsed = datetime.strptime(value, "%Y-%m")
    except ValueError:
        raise argparse.ArgumentTypeError(f"Month must look like 2026-01, got {value!r}")
    return parsed.year, parsed.month


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cinema-scheduler",
        description="Generate cinema shift assignments for a month from a roster JSON file."
    )
    parser.add_argument("--roster", required=True, help="Path to the roster JSON file")
    parser.add_argument("--month", required=True, type=parse_month, help="Target month as YYYY-MM")
    parser.add_argument("--cinema", default=None, help="Cinema id to generate; all cinemas when omitted")
    parser.add_argument("--week", type=int, default=None, help="Only regenerate this week of the window (0-based)")
    parser.add_argument("--settings", default=None, help="Path to a settings JSON file")
    parser.add_argument("--export", dest="export_path", default=None, help="Write the result to this file")
    parser.add_argument("--format", dest="export_format", default="excel",
                        choices=["excel", "csv", "pdf"], help="Export format (default: excel)")
    parser.add_argument("--log-dir", default="logs", help="Directory for log files")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point"""
    args = parse_args(argv)
    logger = setup_logging(args.log_dir, logging.DEBUG if args.verbose else logging.INFO)
    logger.info("=" * 50)
    logger.info("Starting Cinema Shift Scheduler")
    logger.info("=" * 50)

    year, month = args.month

    try:
        settings = load_settings(args.settings)
        data_manager = DataManager.from_roster_file(args.roster, settings)
        scheduler = ShiftScheduler(data_manager)

        cinema_ids = [args.cinema] if args.cinema else [c.id for c in data_manager.cinemas]
        result = None
        for cinema_id in cinema_ids:
            result = scheduler.generate_schedule(year, month, cinema_id, args.week)
            logger.info(result.message)

    except (SchedulerError, ValueError) as e:
        logger.error(f"Schedule generation failed: {e}")
        return 1

    # A single generation result only describes one cinema
    if len(cinema_ids) > 1:
        result = None

    summary = ReportGenerator(data_manager).create_dashboard_summary(year, month, result)
    for line in summary.splitlines():
        logger.info(line)

    if args.export_path:
        export_manager = ExportManager(data_manager)
        if not export_manager.export_month(year, month, args.export_format, args.export_path, result):
            logger.error(f"Export to {args.export_path} failed")
            return 1
        logger.info(f"Exported {args.export_format} to {args.export_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
