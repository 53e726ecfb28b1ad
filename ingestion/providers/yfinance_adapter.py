"""
yfinance adapter - fetch daily closes from Yahoo Finance.
Network IO allowed here, but minimal business logic.
"""

import os
import logging
import yfinance as yf
import pandas as pd
from datetime import date, timedelta
from typing import Dict, Any, List

logger = logging.getLogger(__name__)

PRICE_FIELDS = ('Close',)


class YFinanceError(Exception):
    """Raised when yfinance operations fail."""
    pass


def fetch_prices_window(ticker: str, start: date, end: date) -> List[Dict[str, Any]]:
    """
    Fetch daily closes for a ticker within date window.
    Returns raw data in provider format - no normalization.

    Args:
        ticker: Ticker symbol (e.g., 'AAPL'); Yahoo expects upper case
        start: Start date (inclusive)
        end: End date (inclusive)

    Returns:
        List of raw price dictionaries with 'Date' and 'Close'

    Raises:
        YFinanceError: If fetch fails or validation fails
    """
    _validate_date_range(start, end)
    _validate_ticker(ticker)

    symbol = ticker.upper()

    try:
        # yfinance uses exclusive end dates, so add 1 day
        yf_end = end + timedelta(days=1)

        data = yf.download(
            symbol,
            start=start.isoformat(),
            end=yf_end.isoformat(),
            progress=False,
            auto_adjust=False
        )
    except Exception as e:
        raise YFinanceError(f"Failed to fetch prices for {symbol}: {str(e)}") from e

    if data is None or data.empty:
        logger.info(f"No prices returned for {symbol} between {start} and {end}")
        return []

    # Single-ticker downloads can still come back with (field, ticker) columns
    if isinstance(data.columns, pd.MultiIndex):
        data.columns = data.columns.get_level_values(0)

    rows = []
    for date_idx, row in data.iterrows():
        row_dict = {'Date': date_idx.strftime('%Y-%m-%d')}

        for field in PRICE_FIELDS:
            if field in data.columns and pd.notna(row[field]):
                row_dict[field] = float(row[field])

        rows.append(row_dict)

    logger.info(f"Fetched {len(rows)} rows for {symbol}")
    return rows


def _validate_date_range(start: date, end: date) -> None:
    """
    Validate date range parameters.

    Raises:
        YFinanceError: If validation fails
    """
    if start > end:
        raise YFinanceError(f"start date ({start}) must be <= end date ({end})")

    today = date.today()
    if start > today or end > today:
        raise YFinanceError("Future dates not allowed for historical data")

    max_days = int(os.getenv('YFINANCE_MAX_RANGE_DAYS', str(365 * 3)))
    if (end - start).days > max_days:
        raise YFinanceError(f"Date range too long (max {max_days} days)")


def _validate_ticker(ticker: str) -> None:
    """
    Basic ticker validation.

    Raises:
        YFinanceError: If ticker is invalid
    """
    if not ticker or not isinstance(ticker, str):
        raise YFinanceError("Ticker must be non-empty string")

    if len(ticker) > 10:
        raise YFinanceError("Ticker too long (max 10 characters)")

    allowed_chars = set('ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789.-^=')
    if not set(ticker.upper()).issubset(allowed_chars):
        raise YFinanceError(f"Ticker contains invalid characters: {ticker}")
