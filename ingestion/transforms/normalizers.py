"""
Normalizers for transforming provider and user input to canonical shape.
Pure functions - no IO, network, or side effects.
"""

from datetime import date, datetime
from typing import Dict, Any, List

# US route format first, then ISO
DATE_FORMATS = ('%m-%d-%Y', '%Y-%m-%d')


class DateParseError(ValueError):
    """Raised when a date string matches none of the accepted formats."""
    pass


def normalize_ticker(ticker: str) -> str:
    """
    Canonical ticker identity: stripped and lower-cased.

    Raises:
        ValueError: If ticker is empty
    """
    if not isinstance(ticker, str) or not ticker.strip():
        raise ValueError("ticker must be non-empty string")
    return ticker.strip().lower()


def parse_date(value: str) -> date:
    """
    Parse a date given as MM-dd-yyyy or YYYY-MM-DD.

    Args:
        value: Date string

    Returns:
        Parsed date

    Raises:
        DateParseError: If no accepted format matches
    """
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    raise DateParseError(f"Invalid date: {value!r} (use MM-dd-yyyy or YYYY-MM-DD)")


def normalize_prices(
    raw_rows: List[Dict[str, Any]],
    *,
    ticker: str,
    source: str,
    ingested_at: datetime
) -> List[Dict[str, Any]]:
    """
    Transform provider-native price rows to canonical close rows.

    Minimal normalization:
    - Date strings to date objects
    - Provider 'Close' to canonical 'close'
    - Deduplication by date (keep last to handle corrections)

    Args:
        raw_rows: List of provider-specific price dictionaries
        ticker: Ticker symbol (stored lower-case)
        source: Data provider name
        ingested_at: Pipeline processing timestamp

    Returns:
        List of canonical price dictionaries
    """
    if not raw_rows:
        return []

    canonical_ticker = normalize_ticker(ticker)
    seen_dates = {}

    for raw in raw_rows:
        date_str = raw.get('Date', '')
        if isinstance(date_str, str):
            row_date = date.fromisoformat(date_str)
        else:
            row_date = date_str

        # Rows without a close are kept so validation can count them
        close = raw.get('Close')

        seen_dates[row_date] = {
            'ticker': canonical_ticker,
            'date': row_date,
            'close': float(close) if close is not None else None,
            'source': source,
            'ingested_at': ingested_at,
        }

    return list(seen_dates.values())
