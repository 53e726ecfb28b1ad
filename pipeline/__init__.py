"""
Pipeline Module

Ingestion DAGs that populate the price store:
- daily_prices: yfinance closes → normalize → validate → upsert
"""

__version__ = "0.1.0"
