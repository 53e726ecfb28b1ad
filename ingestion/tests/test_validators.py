"""
Tests for canonical price row validators.
"""

import pytest
from datetime import date, datetime

from ingestion.transforms.validators import (
    validate_price_row,
    check_price_date_monotonicity,
    ValidationError
)


@pytest.fixture
def valid_row():
    return {
        'ticker': 'aapl',
        'date': date(2024, 1, 15),
        'close': 185.92,
        'source': 'yfinance',
        'ingested_at': datetime(2024, 1, 16, 9, 0, 0),
    }


class TestValidatePriceRow:
    """Tests for validate_price_row."""

    def test_valid_row(self, valid_row):
        """A canonical row passes."""
        validate_price_row(valid_row)

    def test_integer_close(self, valid_row):
        """Integer closes are numeric."""
        valid_row['close'] = 100
        validate_price_row(valid_row)

    def test_missing_key(self, valid_row):
        """All canonical keys are required."""
        del valid_row['close']

        with pytest.raises(ValidationError, match="Missing required keys"):
            validate_price_row(valid_row)

    @pytest.mark.parametrize("close,message", [
        (0.0, "must be positive"),
        (-1.5, "must be positive"),
        (float('nan'), "must be finite"),
        (float('inf'), "must be finite"),
        (None, "must be numeric"),
        ('185.92', "must be numeric"),
        (True, "must be numeric"),
    ])
    def test_bad_close(self, valid_row, close, message):
        """Close must be a finite positive number."""
        valid_row['close'] = close

        with pytest.raises(ValidationError, match=message):
            validate_price_row(valid_row)

    def test_upper_case_ticker(self, valid_row):
        """Stored tickers are lower-case."""
        valid_row['ticker'] = 'AAPL'

        with pytest.raises(ValidationError, match="lower-case"):
            validate_price_row(valid_row)

    def test_empty_ticker(self, valid_row):
        """Ticker cannot be empty."""
        valid_row['ticker'] = ''

        with pytest.raises(ValidationError, match="non-empty"):
            validate_price_row(valid_row)

    def test_datetime_is_not_a_date(self, valid_row):
        """Timestamps are rejected as trading dates."""
        valid_row['date'] = datetime(2024, 1, 15, 16, 0)

        with pytest.raises(ValidationError, match="date must be date"):
            validate_price_row(valid_row)

    def test_ingested_at_type(self, valid_row):
        """ingested_at must be a datetime."""
        valid_row['ingested_at'] = date(2024, 1, 16)

        with pytest.raises(ValidationError, match="ingested_at"):
            validate_price_row(valid_row)

    def test_validation_error_is_value_error(self):
        """ValidationError can be caught as ValueError."""
        assert issubclass(ValidationError, ValueError)


class TestDateMonotonicity:
    """Tests for check_price_date_monotonicity."""

    def test_increasing_dates(self):
        """Strictly increasing per ticker passes."""
        rows = [
            {'ticker': 'a', 'date': date(2024, 1, 2)},
            {'ticker': 'b', 'date': date(2024, 1, 1)},
            {'ticker': 'a', 'date': date(2024, 1, 3)},
        ]
        check_price_date_monotonicity(rows)

    def test_duplicate_date(self):
        """Two rows for one identity fail."""
        rows = [
            {'ticker': 'a', 'date': date(2024, 1, 2)},
            {'ticker': 'a', 'date': date(2024, 1, 2)},
        ]

        with pytest.raises(ValidationError, match="Duplicate date"):
            check_price_date_monotonicity(rows)

    def test_decreasing_dates(self):
        """Descending order fails."""
        rows = [
            {'ticker': 'a', 'date': date(2024, 1, 3)},
            {'ticker': 'a', 'date': date(2024, 1, 2)},
        ]

        with pytest.raises(ValidationError, match="not monotonic"):
            check_price_date_monotonicity(rows)

    def test_empty(self):
        """Nothing to check."""
        check_price_date_monotonicity([])
