"""
Core validators for canonical price rows.
Pure functions - no IO, network, or side effects.
"""

import math
from datetime import date, datetime
from typing import Dict, Any, List


class ValidationError(ValueError):
    """Raised when data validation fails."""
    pass


def validate_price_row(row: Dict[str, Any]) -> None:
    """
    Validate a canonical price row.

    Args:
        row: Dictionary with ticker, date, close, source, ingested_at

    Raises:
        ValidationError: If validation fails
    """
    required_keys = {'ticker', 'date', 'close', 'source', 'ingested_at'}

    missing = required_keys - set(row.keys())
    if missing:
        raise ValidationError(f"Missing required keys: {missing}")

    if not isinstance(row['ticker'], str) or not row['ticker']:
        raise ValidationError(f"ticker must be non-empty string, got {row['ticker']!r}")

    if row['ticker'] != row['ticker'].lower():
        raise ValidationError(f"ticker must be lower-case, got {row['ticker']}")

    # datetime is a date subclass; a timestamp is not a trading date
    if not isinstance(row['date'], date) or isinstance(row['date'], datetime):
        raise ValidationError(f"date must be date, got {type(row['date'])}")

    if not isinstance(row['ingested_at'], datetime):
        raise ValidationError(f"ingested_at must be datetime, got {type(row['ingested_at'])}")

    if not isinstance(row['source'], str):
        raise ValidationError(f"source must be string, got {type(row['source'])}")

    close = row['close']
    if isinstance(close, bool) or not isinstance(close, (int, float)):
        raise ValidationError(f"close must be numeric, got {type(close)}")

    if not math.isfinite(close):
        raise ValidationError(f"close must be finite, got {close}")

    if close <= 0:
        raise ValidationError(f"close must be positive, got {close}")


def check_price_date_monotonicity(prices: List[Dict[str, Any]]) -> None:
    """
    Check that dates are strictly increasing for each ticker.

    Args:
        prices: List of price rows with 'ticker' and 'date' fields

    Raises:
        ValidationError: If dates are not monotonic or have duplicates
    """
    if not prices:
        return

    ticker_dates: Dict[str, List[date]] = {}
    for row in prices:
        ticker_dates.setdefault(row.get('ticker'), []).append(row.get('date'))

    for ticker, dates in ticker_dates.items():
        if len(dates) != len(set(dates)):
            raise ValidationError(f"Duplicate date found for ticker {ticker}")

        for i in range(1, len(dates)):
            if dates[i] <= dates[i - 1]:
                raise ValidationError(
                    f"Ticker {ticker} dates not monotonic: "
                    f"{dates[i - 1]} >= {dates[i]}"
                )
