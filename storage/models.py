"""
Record types shared between the price store and the analysis engines.
"""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class PricePoint:
    """One daily close for one ticker. Identity is (ticker, date)."""
    ticker: str
    date: date
    close: float

    def to_dict(self) -> dict:
        return {
            'ticker': self.ticker,
            'date': self.date.isoformat(),
            'close': self.close
        }
