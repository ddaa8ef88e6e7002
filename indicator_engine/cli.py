"""
Command Line Entry Point

Runs the indicator engine once for a tenant and prints the batch report.

Usage:
    indicator-engine --tenant acme --period 30d
    indicator-engine --tenant acme --period short --period-end 2025-03-31 --show
"""

import argparse
import asyncio
import json
import sys
from datetime import date, datetime, time
from typing import List, Optional

import structlog

from indicator_engine.config.logging import configure_logging
from indicator_engine.database.connection import init_database, close_database, get_session_factory
from indicator_engine.engine.orchestrator import IndicatorEngine
from indicator_engine.indicators.periods import PeriodLabel

logger = structlog.get_logger(__name__)


def _period_label(value: str) -> PeriodLabel:
    try:
        return PeriodLabel.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _period_end(value: str) -> datetime:
    try:
        return datetime.combine(date.fromisoformat(value), time.max)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date: {value} (expected YYYY-MM-DD)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="indicator-engine",
        description="Calculate and store business indicators for one tenant",
    )
    parser.add_argument("--tenant", required=True, help="Tenant identifier")
    parser.add_argument(
        "--period",
        type=_period_label,
        default=PeriodLabel.MEDIUM,
        help="short|medium|long or 7d|30d|90d (default: 30d)",
    )
    parser.add_argument(
        "--period-end",
        type=_period_end,
        default=None,
        help="Last day of the current window (default: yesterday)",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Print the stored indicators after the run",
    )
    parser.add_argument("--database-url", default=None, help="Override the configured database URL")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    return parser


async def run(args: argparse.Namespace) -> int:
    """Run one batch; exit code 1 when any indicator failed"""
    await init_database(args.database_url)
    try:
        engine = IndicatorEngine.from_session_factory(get_session_factory())
        report = await engine.run(args.tenant, args.period, args.period_end)
        print(json.dumps(report.to_dict(), indent=2))

        if args.show:
            results = await engine.get_indicators(args.tenant, args.period)
            print(json.dumps([result.model_dump(mode="json") for result in results], indent=2))
    finally:
        await close_database()

    return 1 if report.errors else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(log_level=args.log_level)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
