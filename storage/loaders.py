"""
Price store - SQLite persistence for daily close records.
Thin IO layer: CRUD by (ticker, date), range queries, idempotent upserts.
"""

import os
import sqlite3
import logging
from datetime import date, datetime
from typing import Dict, Any, List, Tuple, Optional, Callable

from storage.models import PricePoint

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = './data/prices.db'


class PriceStoreError(Exception):
    """Base class for price store failures."""
    pass


class PriceNotFoundError(PriceStoreError):
    """Raised when no record exists for the requested (ticker, date)."""
    pass


class PriceAlreadyExistsError(PriceStoreError):
    """Raised when adding a record whose (ticker, date) is already stored."""
    pass


def init_database(conn: sqlite3.Connection) -> None:
    """
    Initialize database with the prices table.
    Idempotent - safe to call multiple times.

    Args:
        conn: SQLite connection
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS prices (
            ticker TEXT NOT NULL,
            date DATE NOT NULL,
            close REAL NOT NULL,
            source TEXT NOT NULL,
            ingested_at DATETIME NOT NULL,
            PRIMARY KEY (ticker, date)
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_prices_date ON prices(date)")

    conn.commit()


def get_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """
    Get SQLite connection with proper configuration.

    Args:
        db_path: Path to SQLite database file (defaults to $TICKER_DB_PATH)

    Returns:
        Configured SQLite connection
    """
    if db_path is None:
        db_path = os.getenv('TICKER_DB_PATH', DEFAULT_DB_PATH)

    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def _key(ticker: str) -> str:
    return ticker.strip().lower()


def _to_point(row: Tuple[str, str, float]) -> PricePoint:
    return PricePoint(ticker=row[0], date=date.fromisoformat(row[1]), close=float(row[2]))


def _select_one(conn: sqlite3.Connection, ticker: str, day: date) -> Optional[PricePoint]:
    cursor = conn.execute(
        "SELECT ticker, date, close FROM prices WHERE ticker = ? AND date = ?",
        (_key(ticker), day.isoformat())
    )
    row = cursor.fetchone()
    return _to_point(row) if row is not None else None


def add_price(
    conn: sqlite3.Connection,
    ticker: str,
    day: date,
    close: float,
    source: str = 'manual',
    ingested_at: Optional[datetime] = None
) -> PricePoint:
    """
    Insert a new close record.

    Args:
        conn: SQLite connection
        ticker: Ticker name (case-insensitive)
        day: Trading date
        close: Close price
        source: Origin of the record
        ingested_at: Insert timestamp (defaults to now)

    Returns:
        The stored PricePoint

    Raises:
        PriceAlreadyExistsError: If (ticker, day) is already stored
    """
    if ingested_at is None:
        ingested_at = datetime.now()

    key = _key(ticker)

    try:
        conn.execute("""
            INSERT INTO prices (ticker, date, close, source, ingested_at)
            VALUES (?, ?, ?, ?, ?)
        """, (key, day.isoformat(), float(close), source, ingested_at.isoformat()))
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise PriceAlreadyExistsError(f"Price for {key} on {day.isoformat()} already exists") from e
    conn.commit()

    return PricePoint(ticker=key, date=day, close=float(close))


def get_price(conn: sqlite3.Connection, ticker: str, day: date) -> PricePoint:
    """
    Look up the close record for (ticker, day).

    Raises:
        PriceNotFoundError: If no record exists
    """
    point = _select_one(conn, ticker, day)
    if point is None:
        raise PriceNotFoundError(f"No price for {_key(ticker)} on {day.isoformat()}")
    return point


def remove_price(conn: sqlite3.Connection, ticker: str, day: date) -> PricePoint:
    """
    Delete the record for (ticker, day) and return what was removed.

    Raises:
        PriceNotFoundError: If no record exists
    """
    point = get_price(conn, ticker, day)
    conn.execute(
        "DELETE FROM prices WHERE ticker = ? AND date = ?",
        (point.ticker, day.isoformat())
    )
    conn.commit()
    return point


def update_price(conn: sqlite3.Connection, ticker: str, day: date, close: float) -> PricePoint:
    """
    Amend the close price of an existing record.

    Args:
        conn: SQLite connection
        ticker: Ticker name
        day: Trading date
        close: Replacement close price

    Returns:
        The amended PricePoint

    Raises:
        PriceNotFoundError: If no record exists
    """
    point = get_price(conn, ticker, day)
    conn.execute(
        "UPDATE prices SET close = ? WHERE ticker = ? AND date = ?",
        (float(close), point.ticker, day.isoformat())
    )
    conn.commit()
    return PricePoint(ticker=point.ticker, date=day, close=float(close))


def fetch_range(
    conn: sqlite3.Connection,
    ticker: str,
    date_from: date,
    date_to: date
) -> List[PricePoint]:
    """
    Fetch closes for a ticker within [date_from, date_to], ascending by date.
    An empty list means no data, not an error.

    Args:
        conn: SQLite connection
        ticker: Ticker name
        date_from: First date (inclusive)
        date_to: Last date (inclusive)

    Returns:
        List of PricePoint ordered by date
    """
    cursor = conn.execute("""
        SELECT ticker, date, close FROM prices
        WHERE ticker = ? AND date >= ? AND date <= ?
        ORDER BY date ASC
    """, (_key(ticker), date_from.isoformat(), date_to.isoformat()))

    points = [_to_point(row) for row in cursor.fetchall()]
    logger.debug(f"Fetched {len(points)} prices for {_key(ticker)} in [{date_from}, {date_to}]")
    return points


def price_provider(conn: sqlite3.Connection) -> Callable[[str, date, date], List[PricePoint]]:
    """Bind a connection to the fetch_range(ticker, date_from, date_to) contract."""
    def _fetch(ticker: str, date_from: date, date_to: date) -> List[PricePoint]:
        return fetch_range(conn, ticker, date_from, date_to)

    return _fetch


def _find_extreme(
    conn: sqlite3.Connection,
    ticker: str,
    date_from: date,
    date_to: date,
    order: str
) -> PricePoint:
    # Ties go to the earliest date
    cursor = conn.execute(f"""
        SELECT ticker, date, close FROM prices
        WHERE ticker = ? AND date >= ? AND date <= ?
        ORDER BY close {order}, date ASC
        LIMIT 1
    """, (_key(ticker), date_from.isoformat(), date_to.isoformat()))

    row = cursor.fetchone()
    if row is None:
        raise PriceNotFoundError(
            f"No prices for {_key(ticker)} between {date_from.isoformat()} and {date_to.isoformat()}"
        )
    return _to_point(row)


def find_max_price(conn: sqlite3.Connection, ticker: str, date_from: date, date_to: date) -> PricePoint:
    """
    Highest close for a ticker within [date_from, date_to].

    Raises:
        PriceNotFoundError: If the range holds no prices
    """
    return _find_extreme(conn, ticker, date_from, date_to, 'DESC')


def find_min_price(conn: sqlite3.Connection, ticker: str, date_from: date, date_to: date) -> PricePoint:
    """
    Lowest close for a ticker within [date_from, date_to].

    Raises:
        PriceNotFoundError: If the range holds no prices
    """
    return _find_extreme(conn, ticker, date_from, date_to, 'ASC')


def upsert_prices(conn: sqlite3.Connection, rows: List[Dict[str, Any]]) -> Tuple[int, int]:
    """
    Upsert canonical price rows into database.
    Idempotent - can be called multiple times with same data.

    Args:
        conn: SQLite connection
        rows: List of canonical price dictionaries
            (ticker, date, close, source, ingested_at)

    Returns:
        Tuple of (inserted_count, updated_count)
    """
    if not rows:
        return (0, 0)

    inserted = 0
    updated = 0

    for row in rows:
        ticker = _key(row['ticker'])
        day = row['date'].isoformat()

        cursor = conn.execute(
            "SELECT COUNT(*) FROM prices WHERE ticker = ? AND date = ?",
            (ticker, day)
        )
        exists = cursor.fetchone()[0] > 0

        if exists:
            conn.execute("""
                UPDATE prices SET close = ?, source = ?, ingested_at = ?
                WHERE ticker = ? AND date = ?
            """, (
                float(row['close']), row['source'], row['ingested_at'].isoformat(),
                ticker, day
            ))
            updated += 1
        else:
            conn.execute("""
                INSERT INTO prices (ticker, date, close, source, ingested_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                ticker, day, float(row['close']), row['source'],
                row['ingested_at'].isoformat()
            ))
            inserted += 1

    conn.commit()
    return (inserted, updated)
