"""
Rolling holding-period return statistics.
Pure functions over an ascending price series that may have calendar gaps.
"""

import bisect
import logging
import numpy as np
from dataclasses import dataclass, asdict
from datetime import date, timedelta
from typing import List, Dict, Sequence, Callable, Optional, NamedTuple

from analysis.errors import (
    InvalidArgumentError,
    InsufficientDataError,
    ResolutionBoundError
)
from storage.models import PricePoint

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.0

FetchRange = Callable[[str, date, date], Sequence[PricePoint]]


@dataclass(frozen=True)
class WindowStatResult:
    """Summary of annualized returns over all rolling windows."""
    ticker: str
    period_days: int
    term_days: int
    window_count: int
    min_return_pct: float
    max_return_pct: float
    avg_return_pct: float
    min_revenue: float
    max_revenue: float
    avg_revenue: float

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


class Window(NamedTuple):
    """One holding period: start point, resolved end point and its return."""
    start_date: date
    end_date: date
    target_end_date: date
    apy: float


def resolve_prior_index(dates: Sequence[date], target: date, lower_index: int = 0) -> int:
    """
    Find the index of the latest date at or before target.

    The search never goes below lower_index, so sparse data cannot make it
    run past the start of the window being resolved.

    Args:
        dates: Ascending dates without duplicates
        target: Date to resolve
        lower_index: Smallest index the result may take

    Returns:
        Index into dates

    Raises:
        ResolutionBoundError: If no date in [dates[lower_index], target] exists
    """
    index = bisect.bisect_right(dates, target) - 1
    if index < lower_index:
        bound = dates[lower_index].isoformat() if 0 <= lower_index < len(dates) else 'series start'
        raise ResolutionBoundError(
            f"No price at or before {target.isoformat()} within bound {bound}"
        )
    return index


def annualized_return(start_close: float, end_close: float, term_days: int) -> float:
    """
    Percentage return of one window scaled to a 365-day year.

    Formula: (P_end - P_start) / P_start * 100 * (365 / term_days)
    """
    if start_close <= 0:
        raise InvalidArgumentError(f"Start price must be positive, got {start_close}")
    return (end_close - start_close) / start_close * 100 * (DAYS_PER_YEAR / term_days)


def window_returns(series: Sequence[PricePoint], end_index: int, term_days: int) -> List[Window]:
    """
    Build every window whose start index lies in [0, end_index).

    Each window ends at start date + term_days, falling back to the nearest
    earlier trading day that is not before the window's own start.

    Args:
        series: Ascending price points for one ticker
        end_index: Exclusive upper bound for window starts
        term_days: Holding duration in calendar days

    Returns:
        List of windows in ascending start order
    """
    dates = [point.date for point in series]
    windows = []

    for start in range(end_index):
        start_point = series[start]
        target = start_point.date + timedelta(days=term_days)
        end = resolve_prior_index(dates, target, lower_index=start)
        apy = annualized_return(start_point.close, series[end].close, term_days)
        windows.append(Window(start_point.date, series[end].date, target, apy))

    return windows


def summarize_returns(returns: Sequence[float], investment_sum: float) -> Dict[str, float]:
    """
    Reduce per-window returns to min/max/mean and projected revenue.

    Args:
        returns: Annualized returns in percent
        investment_sum: Principal used for revenue projection

    Returns:
        Dictionary with *_return_pct and *_revenue values

    Raises:
        InsufficientDataError: If returns is empty
    """
    if len(returns) == 0:
        raise InsufficientDataError("No windows available to summarize")

    values = np.asarray(returns, dtype=float)
    min_pct = float(values.min())
    max_pct = float(values.max())
    # Rounding can push the mean just outside [min, max]
    avg_pct = min(max(float(values.mean()), min_pct), max_pct)

    return {
        'min_return_pct': min_pct,
        'max_return_pct': max_pct,
        'avg_return_pct': avg_pct,
        'min_revenue': investment_sum * (1 + min_pct / 100),
        'max_revenue': investment_sum * (1 + max_pct / 100),
        'avg_revenue': investment_sum * (1 + avg_pct / 100)
    }


def compute_window_stats(
    fetch_range: FetchRange,
    ticker: str,
    period_days: int,
    term_days: int,
    investment_sum: float,
    today: Optional[date] = None
) -> WindowStatResult:
    """
    Distribution of annualized returns across all rolling windows.

    Window starts are scanned over the last period_days before
    today - term_days; each window is held for term_days.

    Args:
        fetch_range: Provider returning ascending prices for (ticker, from, to)
        ticker: Normalized ticker name
        period_days: How far back window starts extend
        term_days: Holding duration of each window
        investment_sum: Principal for revenue projection
        today: Reference date (defaults to date.today())

    Returns:
        WindowStatResult

    Raises:
        InvalidArgumentError: If term_days <= 0, period_days < 0 or investment_sum <= 0
        InsufficientDataError: If the range is empty or no window can be formed
        ResolutionBoundError: If no price exists at or before today - term_days in range
    """
    if term_days <= 0:
        raise InvalidArgumentError(f"term_days must be positive, got {term_days}")

    if period_days < 0:
        raise InvalidArgumentError(f"period_days must be non-negative, got {period_days}")

    if investment_sum <= 0:
        raise InvalidArgumentError(f"investment_sum must be positive, got {investment_sum}")

    if today is None:
        today = date.today()

    range_start = today - timedelta(days=period_days + term_days)
    range_end_target = today - timedelta(days=term_days)

    series = list(fetch_range(ticker, range_start, today))
    if not series:
        raise InsufficientDataError(
            f"No prices for {ticker} between {range_start.isoformat()} and {today.isoformat()}"
        )

    dates = [point.date for point in series]
    end = resolve_prior_index(dates, range_end_target, lower_index=0)

    if end <= 0:
        raise InsufficientDataError(
            f"Not enough prices for {ticker} to form a {term_days}-day window"
        )

    windows = window_returns(series, end, term_days)
    logger.debug(f"{ticker}: {len(windows)} windows of {term_days} days over {len(series)} prices")

    summary = summarize_returns([w.apy for w in windows], investment_sum)

    return WindowStatResult(
        ticker=ticker,
        period_days=period_days,
        term_days=term_days,
        window_count=len(windows),
        **summary
    )
