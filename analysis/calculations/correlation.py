"""
Pairwise close-price correlation.
Pure functions: series alignment and a two-pass Pearson coefficient.
"""

import math
import logging
import numpy as np
import pandas as pd
from datetime import date, timedelta
from typing import Sequence, Tuple, Callable, Optional

from analysis.errors import (
    InvalidArgumentError,
    InsufficientDataError,
    DegenerateInputError
)
from storage.models import PricePoint

logger = logging.getLogger(__name__)

ALIGN_BY_DATE = 'date'
ALIGN_BY_POSITION = 'position'
ALIGNMENTS = (ALIGN_BY_DATE, ALIGN_BY_POSITION)

FetchRange = Callable[[str, date, date], Sequence[PricePoint]]


def align_by_date(
    series_a: Sequence[PricePoint],
    series_b: Sequence[PricePoint]
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pair closes that share a calendar date.
    Dates present in only one series are dropped.

    Returns:
        Tuple of (closes_a, closes_b) ordered by date
    """
    frame_a = pd.DataFrame({
        'date': [p.date for p in series_a],
        'close_a': [p.close for p in series_a]
    })
    frame_b = pd.DataFrame({
        'date': [p.date for p in series_b],
        'close_b': [p.close for p in series_b]
    })

    merged = frame_a.merge(frame_b, on='date', how='inner').sort_values('date')

    return (
        merged['close_a'].to_numpy(dtype=float),
        merged['close_b'].to_numpy(dtype=float)
    )


def align_by_position(
    series_a: Sequence[PricePoint],
    series_b: Sequence[PricePoint]
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pair the i-th close of A with the i-th close of B.

    Only meaningful when both tickers trade on the same calendar. The longer
    series is truncated to the length of the shorter one.
    """
    n = min(len(series_a), len(series_b))
    closes_a = np.array([p.close for p in series_a[:n]], dtype=float)
    closes_b = np.array([p.close for p in series_b[:n]], dtype=float)
    return closes_a, closes_b


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> float:
    """
    Pearson correlation coefficient of two equal-length series.

    Two-pass formula: both series are centred on their mean before the
    second moments are taken. Results can differ from the sum-of-products
    form in the last decimal digits.

    Args:
        xs: First series
        ys: Second series, same length

    Returns:
        Correlation in [-1, 1]

    Raises:
        InvalidArgumentError: If lengths differ
        InsufficientDataError: If the series are empty
        DegenerateInputError: If either series has zero variance
    """
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)

    if len(x) != len(y):
        raise InvalidArgumentError(f"Series lengths differ: {len(x)} vs {len(y)}")

    if len(x) == 0:
        raise InsufficientDataError("Cannot correlate empty series")

    if np.ptp(x) == 0 or np.ptp(y) == 0:
        raise DegenerateInputError("Constant price series has zero variance")

    dx = x - x.mean()
    dy = y - y.mean()

    variance_x = float(np.mean(dx * dx))
    variance_y = float(np.mean(dy * dy))

    if variance_x <= 0 or variance_y <= 0:
        raise DegenerateInputError("Price series has zero variance")

    covariance = float(np.mean(dx * dy))
    correlation = covariance / math.sqrt(variance_x * variance_y)

    return max(-1.0, min(1.0, correlation))


def compute_correlation(
    fetch_range: FetchRange,
    ticker_a: str,
    ticker_b: str,
    term_days: int,
    alignment: str = ALIGN_BY_DATE,
    today: Optional[date] = None
) -> float:
    """
    Correlation of two tickers' closes over the last term_days.

    Args:
        fetch_range: Provider returning ascending prices for (ticker, from, to)
        ticker_a: First normalized ticker
        ticker_b: Second normalized ticker
        term_days: Lookback window in calendar days
        alignment: 'date' (join on trading date) or 'position' (pair by index)
        today: Reference date (defaults to date.today())

    Returns:
        Correlation in [-1, 1]

    Raises:
        InvalidArgumentError: If term_days <= 0 or alignment is unknown
        InsufficientDataError: If either series is empty or no pairs remain
        DegenerateInputError: If either aligned series is constant
    """
    correlation, _ = correlate_tickers(
        fetch_range, ticker_a, ticker_b, term_days, alignment=alignment, today=today
    )
    return correlation


def correlate_tickers(
    fetch_range: FetchRange,
    ticker_a: str,
    ticker_b: str,
    term_days: int,
    alignment: str = ALIGN_BY_DATE,
    today: Optional[date] = None
) -> Tuple[float, int]:
    """
    Same as compute_correlation, also returning how many close pairs it used.

    Returns:
        Tuple of (correlation, pair_count)
    """
    if term_days <= 0:
        raise InvalidArgumentError(f"term_days must be positive, got {term_days}")

    if alignment not in ALIGNMENTS:
        raise InvalidArgumentError(f"alignment must be one of {ALIGNMENTS}, got {alignment!r}")

    if today is None:
        today = date.today()

    date_from = today - timedelta(days=term_days)

    series_a = list(fetch_range(ticker_a, date_from, today))
    series_b = list(fetch_range(ticker_b, date_from, today))

    for ticker, series in ((ticker_a, series_a), (ticker_b, series_b)):
        if not series:
            raise InsufficientDataError(
                f"No prices for {ticker} between {date_from.isoformat()} and {today.isoformat()}"
            )

    if alignment == ALIGN_BY_DATE:
        closes_a, closes_b = align_by_date(series_a, series_b)
    else:
        closes_a, closes_b = align_by_position(series_a, series_b)

    if len(closes_a) == 0:
        raise InsufficientDataError(f"{ticker_a} and {ticker_b} share no trading dates in range")

    logger.debug(
        f"{ticker_a}/{ticker_b}: {len(closes_a)} pairs by {alignment} "
        f"from {len(series_a)} and {len(series_b)} prices"
    )

    return pearson_correlation(closes_a, closes_b), len(closes_a)
