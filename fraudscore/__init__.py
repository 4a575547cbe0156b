"""
Fraud Scoring Package
=====================

Statistical fraud scoring and decision-threshold calibration for batches
of card transactions.

Modules:
    - statistics: Population mean/std per feature, mergeable across partitions
    - scoring: Per-feature z-scores and composite anomaly scores
    - detection: Interchangeable detection methods (amount, outlier, pattern)
    - calibration: Precision-maximizing threshold sweeps against fraud labels
    - classifier: Four-tier action classification
    - comparison: Side-by-side precision/recall of detection methods
    - feature_selection: Discovery of the dominant feature and pattern amounts
    - reporting: Hour-of-day, amount-segment and tier breakdowns
    - evaluation: Metrics, plots and result export
    - data_loading: Configuration and CSV import
"""

from .classifier import Classification, Classifier, ClassifierConfig
from .exceptions import ConfigurationError, EmptyBatchError, FraudScoreError
from .scoring import AnomalyScorer, ScoredTransaction
from .statistics import FeatureStatistics, compute_feature_statistics
from .transactions import LabeledTransaction, Transaction

__version__ = "1.0.0"

__all__ = [
    "AnomalyScorer",
    "Classification",
    "Classifier",
    "ClassifierConfig",
    "ConfigurationError",
    "EmptyBatchError",
    "FeatureStatistics",
    "FraudScoreError",
    "LabeledTransaction",
    "ScoredTransaction",
    "Transaction",
    "compute_feature_statistics",
]
