"""
Storage Module

SQLite price store:
- Daily close records keyed by (ticker, date)
- Range queries consumed by the analysis engines
"""

__version__ = "0.1.0"
