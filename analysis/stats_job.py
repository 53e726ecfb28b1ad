"""
Orchestrated stats jobs - SQLite to result JSON.
Binds the price store to the pure engines and persists their output.
"""

import sqlite3
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Any, Optional, List

from analysis.calculations.window_stats import compute_window_stats, WindowStatResult
from analysis.calculations.correlation import correlate_tickers, ALIGN_BY_DATE
from analysis.errors import AnalyticsError
from ingestion.transforms.normalizers import normalize_ticker
from storage.loaders import price_provider

logger = logging.getLogger(__name__)


def window_stats_for_ticker(
    conn: sqlite3.Connection,
    ticker: str,
    period_days: int,
    term_days: int,
    investment_sum: float,
    as_of_date: Optional[date] = None
) -> WindowStatResult:
    """
    Rolling-window return statistics for a stored ticker.

    Args:
        conn: SQLite connection
        ticker: Ticker name (any case)
        period_days: How far back window starts extend
        term_days: Holding duration of each window
        investment_sum: Principal for revenue projection
        as_of_date: Reference date (defaults to today)

    Returns:
        WindowStatResult

    Raises:
        AnalyticsError: Any engine failure, unchanged
    """
    return compute_window_stats(
        price_provider(conn),
        normalize_ticker(ticker),
        period_days,
        term_days,
        investment_sum,
        today=as_of_date
    )


def correlation_for_tickers(
    conn: sqlite3.Connection,
    ticker_a: str,
    ticker_b: str,
    term_days: int,
    alignment: str = ALIGN_BY_DATE,
    as_of_date: Optional[date] = None
) -> Dict[str, Any]:
    """
    Correlation of two stored tickers, wrapped with its parameters.

    Returns:
        Dictionary with tickers, term_days, alignment, as_of_date, correlation
        and pair_count (number of aligned close pairs)

    Raises:
        AnalyticsError: Any engine failure, unchanged
    """
    if as_of_date is None:
        as_of_date = date.today()

    ticker_a = normalize_ticker(ticker_a)
    ticker_b = normalize_ticker(ticker_b)

    correlation, pair_count = correlate_tickers(
        price_provider(conn),
        ticker_a,
        ticker_b,
        term_days,
        alignment=alignment,
        today=as_of_date
    )

    return {
        'ticker_a': ticker_a,
        'ticker_b': ticker_b,
        'term_days': term_days,
        'alignment': alignment,
        'as_of_date': as_of_date.isoformat(),
        'correlation': correlation,
        'pair_count': pair_count
    }


def run_stats_job(
    conn: sqlite3.Connection,
    ticker: str,
    period_days: int,
    term_days: int,
    investment_sum: float,
    output_path: Path,
    as_of_date: Optional[date] = None
) -> Dict[str, Any]:
    """
    Compute window statistics for a ticker and save them to JSON.

    Engine failures are reported in the returned summary instead of raised.

    Args:
        conn: SQLite connection
        ticker: Ticker name
        period_days: How far back window starts extend
        term_days: Holding duration of each window
        investment_sum: Principal for revenue projection
        output_path: Path to save the result JSON
        as_of_date: Reference date (defaults to today)

    Returns:
        Dictionary with job status and summary
    """
    if as_of_date is None:
        as_of_date = date.today()

    start_time = datetime.now()

    try:
        result = window_stats_for_ticker(
            conn, ticker, period_days, term_days, investment_sum, as_of_date=as_of_date
        )
    except AnalyticsError as e:
        logger.warning(f"Window stats failed for {ticker}: {e}")
        return {
            'ticker': normalize_ticker(ticker),
            'status': 'failed',
            'error_type': type(e).__name__,
            'error_message': str(e),
            'output_path': None,
            'duration_seconds': (datetime.now() - start_time).total_seconds()
        }

    payload = result.to_dict()
    payload['as_of_date'] = as_of_date.isoformat()
    payload['investment_sum'] = investment_sum
    payload['calculated_at'] = datetime.now().isoformat()

    _write_json(payload, output_path)

    return {
        'ticker': result.ticker,
        'status': 'completed',
        'output_path': str(output_path),
        'window_count': result.window_count,
        'duration_seconds': (datetime.now() - start_time).total_seconds()
    }


def batch_window_stats(
    conn: sqlite3.Connection,
    tickers: List[str],
    period_days: int,
    term_days: int,
    investment_sum: float,
    output_dir: Path,
    as_of_date: Optional[date] = None
) -> Dict[str, Any]:
    """
    Run window statistics for multiple tickers.

    Returns:
        Summary of batch results
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    results = []
    start_time = datetime.now()

    for ticker in tickers:
        output_path = output_dir / f'{normalize_ticker(ticker)}_{period_days}_{term_days}.json'
        results.append(run_stats_job(
            conn=conn,
            ticker=ticker,
            period_days=period_days,
            term_days=term_days,
            investment_sum=investment_sum,
            output_path=output_path,
            as_of_date=as_of_date
        ))

    completed = [r for r in results if r['status'] == 'completed']

    return {
        'total_tickers': len(tickers),
        'completed': len(completed),
        'failed': len(results) - len(completed),
        'success_rate': len(completed) / len(tickers) if tickers else 0,
        'duration_seconds': (datetime.now() - start_time).total_seconds(),
        'results': results
    }


def _write_json(payload: Dict[str, Any], output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(payload, f, indent=2, default=str)
