"""
Error types raised by the analysis engines.
Engines raise these to the immediate caller; nothing is retried or defaulted.
"""


class AnalyticsError(Exception):
    """Base class for analysis engine failures."""
    pass


class InvalidArgumentError(AnalyticsError, ValueError):
    """Raised for non-positive term/period lengths or other bad parameters."""
    pass


class InsufficientDataError(AnalyticsError):
    """Raised when the range holds no data or too few points to form a window."""
    pass


class ResolutionBoundError(AnalyticsError):
    """Raised when nearest-prior-date search passes its lower bound."""
    pass


class DegenerateInputError(AnalyticsError):
    """Raised when a series has zero variance and correlation is undefined."""
    pass
