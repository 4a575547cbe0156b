"""
Exceptions
==========

Error types raised by the scoring and calibration core.
"""


class FraudScoreError(Exception):
    """Base class for fraudscore errors."""


class EmptyBatchError(FraudScoreError):
    """Raised when a batch holds no transactions to compute statistics from."""


class ConfigurationError(FraudScoreError):
    """Raised when thresholds, feature indices or amount sets are unusable."""
