"""
Daily prices DAG - orchestrates the price ingestion pipeline.
Composes: Provider → Transform → Validate → Store.
"""

import sqlite3
import logging
from datetime import date, datetime, timedelta
from typing import Dict, Any, Optional, List
from dataclasses import dataclass

from ingestion.providers.yfinance_adapter import fetch_prices_window, YFinanceError
from ingestion.transforms.normalizers import normalize_prices
from ingestion.transforms.validators import (
    validate_price_row,
    check_price_date_monotonicity,
    ValidationError
)
from storage.loaders import upsert_prices

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """Raised when pipeline configuration or execution fails."""
    pass


@dataclass
class DailyPricesConfig:
    """Configuration for daily prices pipeline."""
    ticker: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def __post_init__(self):
        """Validate and set defaults."""
        if not self.ticker or not isinstance(self.ticker, str):
            raise PipelineError("ticker must be non-empty string")

        if self.end_date is None:
            self.end_date = date.today()

        if self.start_date is None:
            self.start_date = self.end_date - timedelta(days=365)

        if self.start_date > self.end_date:
            raise PipelineError("start_date must be <= end_date")

    @property
    def days_range(self) -> int:
        """Calculate number of days in range."""
        return (self.end_date - self.start_date).days


def run_daily_prices(config: DailyPricesConfig, conn: sqlite3.Connection) -> Dict[str, Any]:
    """
    Run the daily prices pipeline.

    Pipeline stages:
    1. Fetch raw data from provider
    2. Normalize to canonical close rows
    3. Validate each row, then date order across rows
    4. Upsert valid rows

    Args:
        config: Pipeline configuration
        conn: SQLite database connection

    Returns:
        Dictionary with run results and metrics
    """
    start_time = datetime.now()

    result = {
        'ticker': config.ticker,
        'start_date': config.start_date,
        'end_date': config.end_date,
        'status': 'running',
        'rows_fetched': 0,
        'rows_stored': 0,
        'validation_warnings': 0,
        'error_message': None
    }

    try:
        raw_data = fetch_prices_window(
            ticker=config.ticker,
            start=config.start_date,
            end=config.end_date
        )
    except YFinanceError as e:
        logger.error(f"daily_prices failed for {config.ticker}: {e}")
        return _finish(result, start_time, 'failed', str(e))

    result['rows_fetched'] = len(raw_data)

    if not raw_data:
        # Empty data is not an error
        return _finish(result, start_time, 'completed')

    normalized = normalize_prices(
        raw_rows=raw_data,
        ticker=config.ticker,
        source='yfinance',
        ingested_at=datetime.now()
    )

    valid_rows = []
    for row in normalized:
        try:
            validate_price_row(row)
            valid_rows.append(row)
        except ValidationError as e:
            result['validation_warnings'] += 1
            logger.warning(f"Validation warning for {config.ticker} {row.get('date', 'unknown')}: {e}")

    if not valid_rows:
        error_msg = f"All {len(normalized)} rows failed validation"
        logger.error(f"daily_prices failed for {config.ticker}: {error_msg}")
        return _finish(result, start_time, 'failed', error_msg)

    try:
        check_price_date_monotonicity(valid_rows)
    except ValidationError as e:
        result['validation_warnings'] += 1
        logger.error(f"daily_prices failed for {config.ticker}: {e}")
        return _finish(result, start_time, 'failed', str(e))

    inserted, updated = upsert_prices(conn, valid_rows)
    result['rows_stored'] = len(valid_rows)
    result['rows_inserted'] = inserted
    result['rows_updated'] = updated
    result.update(_summarize_closes(valid_rows))

    logger.info(f"daily_prices stored {len(valid_rows)} rows for {config.ticker} ({inserted} new, {updated} updated)")
    return _finish(result, start_time, 'completed')


def _finish(
    result: Dict[str, Any],
    start_time: datetime,
    status: str,
    error_message: Optional[str] = None
) -> Dict[str, Any]:
    result['status'] = status
    result['error_message'] = error_message
    result['duration_seconds'] = (datetime.now() - start_time).total_seconds()
    return result


def _summarize_closes(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Calculate summary metrics from stored closes.

    Args:
        rows: List of validated price dictionaries

    Returns:
        Dictionary with close range, date range and total return
    """
    closes = [row['close'] for row in rows]

    summary = {
        'price_range': {
            'min_close': min(closes),
            'max_close': max(closes),
            'first_close': closes[0],
            'last_close': closes[-1]
        },
        'date_range': {
            'first_date': rows[0]['date'],
            'last_date': rows[-1]['date'],
            'trading_days': len(rows)
        }
    }

    if len(closes) > 1:
        total_return = (closes[-1] - closes[0]) / closes[0]
        summary['total_return_pct'] = round(total_return * 100, 2)

    return summary
