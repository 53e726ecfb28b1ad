#!/usr/bin/env python3
"""
Main CLI for the ticker price workbench.
Usage: python cli.py COMMAND [args]
"""

import os
import sys
import json
import logging
import argparse
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from analysis.calculations.correlation import ALIGNMENTS, ALIGN_BY_DATE
from analysis.errors import AnalyticsError
from analysis.stats_job import (
    window_stats_for_ticker,
    correlation_for_tickers,
    run_stats_job,
    batch_window_stats
)
from ingestion.transforms.normalizers import parse_date, normalize_ticker
from pipeline.daily_prices_dag import run_daily_prices, DailyPricesConfig, PipelineError
from storage.loaders import (
    DEFAULT_DB_PATH,
    PriceStoreError,
    init_database,
    get_connection,
    add_price,
    get_price,
    remove_price,
    update_price,
    find_max_price,
    find_min_price
)

logger = logging.getLogger('cli')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Store daily closes and compute return and correlation statistics',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py add AAPL 01-15-2024 185.92
  python cli.py get aapl 2024-01-15
  python cli.py max AAPL 01-01-2024 03-31-2024
  python cli.py stats AAPL 365 1000 30
  python cli.py stats-batch 365 1000 30 AAPL MSFT --output-dir ./data/stats
  python cli.py correlation AAPL MSFT 90 --alignment position
  python cli.py ingest AAPL --days 730
        """
    )
    parser.add_argument('--db-path',
                        help=f'Path to SQLite database (default: $TICKER_DB_PATH or {DEFAULT_DB_PATH})')
    parser.add_argument('--verbose', '-v',
                        action='store_true',
                        help='Debug logging')

    sub = parser.add_subparsers(dest='command', required=True)

    for name, help_text in [('add', 'Add a close price'), ('update', 'Amend a close price')]:
        p = sub.add_parser(name, help=help_text)
        p.add_argument('ticker')
        p.add_argument('date', type=parse_date, help='MM-dd-yyyy or YYYY-MM-DD')
        p.add_argument('close', type=float)

    for name, help_text in [('get', 'Show a close price'), ('remove', 'Delete a close price')]:
        p = sub.add_parser(name, help=help_text)
        p.add_argument('ticker')
        p.add_argument('date', type=parse_date, help='MM-dd-yyyy or YYYY-MM-DD')

    for name, help_text in [('max', 'Highest close in a date range'), ('min', 'Lowest close in a date range')]:
        p = sub.add_parser(name, help=help_text)
        p.add_argument('ticker')
        p.add_argument('date_from', type=parse_date)
        p.add_argument('date_to', type=parse_date)

    p = sub.add_parser('stats', help='Rolling-window return statistics')
    p.add_argument('ticker')
    p.add_argument('period_days', type=int, help='How far back window starts extend')
    p.add_argument('investment_sum', type=float, help='Principal for revenue projection')
    p.add_argument('term_days', type=int, help='Holding duration of each window')
    p.add_argument('--as-of', type=parse_date, help='Reference date (default: today)')
    p.add_argument('--output', help='Also save result JSON to this path')

    p = sub.add_parser('stats-batch', help='Window statistics for several tickers, one JSON file each')
    p.add_argument('period_days', type=int, help='How far back window starts extend')
    p.add_argument('investment_sum', type=float, help='Principal for revenue projection')
    p.add_argument('term_days', type=int, help='Holding duration of each window')
    p.add_argument('tickers', nargs='+')
    p.add_argument('--output-dir', required=True, help='Directory for {ticker}_{period}_{term}.json files')
    p.add_argument('--as-of', type=parse_date, help='Reference date (default: today)')

    p = sub.add_parser('correlation', help='Close-price correlation of two tickers')
    p.add_argument('ticker_a')
    p.add_argument('ticker_b')
    p.add_argument('term_days', type=int, help='Lookback window in days')
    p.add_argument('--alignment', choices=ALIGNMENTS, default=ALIGN_BY_DATE,
                   help='Pair closes by trading date (default) or by list position')
    p.add_argument('--as-of', type=parse_date, help='Reference date (default: today)')

    p = sub.add_parser('ingest', help='Fetch daily closes from Yahoo Finance')
    p.add_argument('ticker')
    p.add_argument('--days', type=int, default=365, help='Days of history (default: 365)')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    load_dotenv()

    args = build_parser().parse_args(argv)

    level = 'DEBUG' if args.verbose else os.getenv('LOG_LEVEL', 'WARNING').upper()
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    db_path = args.db_path or os.getenv('TICKER_DB_PATH', DEFAULT_DB_PATH)
    if db_path != ':memory:':
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = get_connection(db_path)
    init_database(conn)

    try:
        return _dispatch(args, conn)
    except (AnalyticsError, PriceStoreError, PipelineError, ValueError) as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"ERROR ({type(e).__name__}): {e}", file=sys.stderr)
        return 1
    finally:
        conn.close()


def _dispatch(args: argparse.Namespace, conn) -> int:
    command = args.command

    if command == 'add':
        _print_json(add_price(conn, normalize_ticker(args.ticker), args.date, args.close).to_dict())
    elif command == 'get':
        _print_json(get_price(conn, normalize_ticker(args.ticker), args.date).to_dict())
    elif command == 'remove':
        _print_json(remove_price(conn, normalize_ticker(args.ticker), args.date).to_dict())
    elif command == 'update':
        _print_json(update_price(conn, normalize_ticker(args.ticker), args.date, args.close).to_dict())
    elif command == 'max':
        _print_json(find_max_price(conn, normalize_ticker(args.ticker), args.date_from, args.date_to).to_dict())
    elif command == 'min':
        _print_json(find_min_price(conn, normalize_ticker(args.ticker), args.date_from, args.date_to).to_dict())
    elif command == 'stats':
        return _run_stats(args, conn)
    elif command == 'stats-batch':
        return _run_stats_batch(args, conn)
    elif command == 'correlation':
        _print_json(correlation_for_tickers(
            conn, args.ticker_a, args.ticker_b, args.term_days,
            alignment=args.alignment, as_of_date=args.as_of
        ))
    elif command == 'ingest':
        return _run_ingest(args, conn)

    return 0


def _run_stats(args: argparse.Namespace, conn) -> int:
    if args.output:
        job = run_stats_job(
            conn, args.ticker, args.period_days, args.term_days, args.investment_sum,
            output_path=Path(args.output), as_of_date=args.as_of
        )
        if job['status'] != 'completed':
            print(f"ERROR ({job['error_type']}): {job['error_message']}", file=sys.stderr)
            return 1
        print(f"Saved {job['window_count']} windows for {job['ticker']} to {job['output_path']}")
        return 0

    result = window_stats_for_ticker(
        conn, args.ticker, args.period_days, args.term_days, args.investment_sum,
        as_of_date=args.as_of
    )
    _print_json(result.to_dict())
    return 0


def _run_stats_batch(args: argparse.Namespace, conn) -> int:
    summary = batch_window_stats(
        conn, args.tickers, args.period_days, args.term_days, args.investment_sum,
        output_dir=Path(args.output_dir), as_of_date=args.as_of
    )

    for job in summary['results']:
        if job['status'] == 'completed':
            print(f"{job['ticker']}: {job['window_count']} windows -> {job['output_path']}")
        else:
            print(f"{job['ticker']}: FAILED ({job['error_type']}) {job['error_message']}", file=sys.stderr)

    print(f"Completed {summary['completed']}/{summary['total_tickers']} tickers")
    return 0 if summary['failed'] == 0 else 1


def _run_ingest(args: argparse.Namespace, conn) -> int:
    end_date = date.today()
    config = DailyPricesConfig(
        ticker=args.ticker,
        start_date=end_date - timedelta(days=args.days),
        end_date=end_date
    )

    result = run_daily_prices(config, conn)

    if result['status'] != 'completed':
        print(f"ERROR: ingest failed for {args.ticker}: {result['error_message']}", file=sys.stderr)
        return 1

    print(f"Stored {result['rows_stored']} of {result['rows_fetched']} rows for {args.ticker}")
    if result['validation_warnings']:
        print(f"Validation warnings: {result['validation_warnings']}")
    return 0


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, default=str))


if __name__ == '__main__':
    sys.exit(main())
