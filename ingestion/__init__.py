"""
Data Ingestion Module

Handles fetching, normalizing and validating daily closes:
- yfinance for historical close prices
- Ticker and date normalization for user input
"""

__version__ = "0.1.0"
