"""
Tests for the daily prices DAG - provider is mocked, store is in-memory SQLite.
"""

import pytest
import sqlite3
from unittest.mock import patch
from datetime import date

from pipeline.daily_prices_dag import (
    DailyPricesConfig,
    run_daily_prices,
    PipelineError
)
from ingestion.providers.yfinance_adapter import YFinanceError
from storage.loaders import init_database, fetch_range, get_price


@pytest.fixture
def in_memory_db():
    conn = sqlite3.connect(':memory:')
    init_database(conn)
    yield conn
    conn.close()


RAW_ROWS = [
    {'Date': '2024-01-15', 'Close': 100.0},
    {'Date': '2024-01-16', 'Close': 104.0},
    {'Date': '2024-01-17', 'Close': 110.0},
]


class TestDailyPricesConfig:
    """Tests for pipeline configuration."""

    def test_defaults(self):
        """End defaults to today, start to a year before."""
        config = DailyPricesConfig(ticker='AAPL')

        assert config.end_date == date.today()
        assert config.days_range == 365

    def test_explicit_range(self):
        config = DailyPricesConfig('AAPL', date(2024, 1, 1), date(2024, 1, 31))

        assert config.days_range == 30

    def test_empty_ticker(self):
        with pytest.raises(PipelineError, match="non-empty"):
            DailyPricesConfig(ticker='')

    def test_inverted_range(self):
        with pytest.raises(PipelineError, match="start_date must be <= end_date"):
            DailyPricesConfig('AAPL', date(2024, 2, 1), date(2024, 1, 1))


class TestRunDailyPrices:
    """Tests for run_daily_prices."""

    CONFIG = DailyPricesConfig('AAPL', date(2024, 1, 15), date(2024, 1, 17))

    @patch('pipeline.daily_prices_dag.fetch_prices_window')
    def test_successful_run(self, mock_fetch, in_memory_db):
        """Fetched closes are stored under the lower-case ticker."""
        mock_fetch.return_value = RAW_ROWS

        result = run_daily_prices(self.CONFIG, in_memory_db)

        mock_fetch.assert_called_once_with(ticker='AAPL', start=date(2024, 1, 15), end=date(2024, 1, 17))
        assert result['status'] == 'completed'
        assert result['rows_fetched'] == 3
        assert result['rows_stored'] == 3
        assert result['rows_inserted'] == 3
        assert result['rows_updated'] == 0
        assert result['validation_warnings'] == 0
        assert result['error_message'] is None
        assert result['price_range'] == {
            'min_close': 100.0, 'max_close': 110.0, 'first_close': 100.0, 'last_close': 110.0
        }
        assert result['date_range']['trading_days'] == 3
        assert result['total_return_pct'] == 10.0
        assert result['duration_seconds'] >= 0

        stored = fetch_range(in_memory_db, 'aapl', date(2024, 1, 1), date(2024, 1, 31))
        assert [p.close for p in stored] == [100.0, 104.0, 110.0]

    @patch('pipeline.daily_prices_dag.fetch_prices_window')
    def test_rerun_is_idempotent(self, mock_fetch, in_memory_db):
        """Second run updates rather than duplicates."""
        mock_fetch.return_value = RAW_ROWS
        run_daily_prices(self.CONFIG, in_memory_db)

        result = run_daily_prices(self.CONFIG, in_memory_db)

        assert result['rows_inserted'] == 0
        assert result['rows_updated'] == 3
        count = in_memory_db.execute("SELECT COUNT(*) FROM prices").fetchone()[0]
        assert count == 3

    @patch('pipeline.daily_prices_dag.fetch_prices_window')
    def test_invalid_rows_skipped(self, mock_fetch, in_memory_db):
        """Rows with missing or non-positive closes are warned and skipped."""
        mock_fetch.return_value = [
            {'Date': '2024-01-15', 'Close': 100.0},
            {'Date': '2024-01-16'},
            {'Date': '2024-01-17', 'Close': -1.0},
        ]

        result = run_daily_prices(self.CONFIG, in_memory_db)

        assert result['status'] == 'completed'
        assert result['rows_stored'] == 1
        assert result['validation_warnings'] == 2
        assert 'total_return_pct' not in result
        assert get_price(in_memory_db, 'aapl', date(2024, 1, 15)).close == 100.0

    @patch('pipeline.daily_prices_dag.fetch_prices_window')
    def test_all_rows_invalid(self, mock_fetch, in_memory_db):
        """Nothing valid to store fails the run."""
        mock_fetch.return_value = [{'Date': '2024-01-15', 'Close': 0.0}]

        result = run_daily_prices(self.CONFIG, in_memory_db)

        assert result['status'] == 'failed'
        assert result['error_message'] == "All 1 rows failed validation"
        assert in_memory_db.execute("SELECT COUNT(*) FROM prices").fetchone()[0] == 0

    @patch('pipeline.daily_prices_dag.fetch_prices_window')
    def test_out_of_order_dates(self, mock_fetch, in_memory_db):
        """Provider rows that go back in time fail the run before anything is stored."""
        mock_fetch.return_value = [
            {'Date': '2024-01-16', 'Close': 104.0},
            {'Date': '2024-01-15', 'Close': 100.0},
            {'Date': '2024-01-17', 'Close': 110.0},
        ]

        result = run_daily_prices(self.CONFIG, in_memory_db)

        assert result['status'] == 'failed'
        assert 'not monotonic' in result['error_message']
        assert result['validation_warnings'] == 1
        assert result['rows_stored'] == 0
        assert in_memory_db.execute("SELECT COUNT(*) FROM prices").fetchone()[0] == 0

    @patch('pipeline.daily_prices_dag.fetch_prices_window')
    def test_empty_fetch(self, mock_fetch, in_memory_db):
        """No data is a completed run with nothing stored."""
        mock_fetch.return_value = []

        result = run_daily_prices(self.CONFIG, in_memory_db)

        assert result['status'] == 'completed'
        assert result['rows_fetched'] == 0
        assert result['rows_stored'] == 0

    @patch('pipeline.daily_prices_dag.fetch_prices_window')
    def test_provider_error(self, mock_fetch, in_memory_db):
        """Provider failure is reported, not raised."""
        mock_fetch.side_effect = YFinanceError("Failed to fetch prices for AAPL: timeout")

        result = run_daily_prices(self.CONFIG, in_memory_db)

        assert result['status'] == 'failed'
        assert 'timeout' in result['error_message']
        assert result['rows_fetched'] == 0
