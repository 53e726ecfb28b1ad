"""
Analysis Engine Module

Calculates statistics from stored daily closes:
- Rolling holding-period returns (min/max/avg annualized, revenue)
- Pairwise close-price correlation
"""

__version__ = "0.1.0"
