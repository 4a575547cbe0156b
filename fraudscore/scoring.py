"""
Anomaly Scoring Module
======================

Per-transaction z-scores against batch population statistics.

Two composite scores are produced for every transaction:
    - average_score: mean z-score over a configured feature subset
    - pattern_score: z-score of one designated feature
"""

from dataclasses import dataclass
from typing import Sequence

from .exceptions import ConfigurationError
from .statistics import FeatureStatistics
from .transactions import LabeledTransaction, Transaction


DEFAULT_AVERAGE_FEATURES = (1, 2, 3, 4, 5)
DEFAULT_PATTERN_FEATURE = 3


def z_score(value: float, mean: float, std: float) -> float:
    """Absolute deviation in standard-deviation units; 0.0 when std is zero."""
    if std == 0:
        return 0.0
    return abs(value - mean) / std


@dataclass(frozen=True)
class ScoredTransaction:
    """A transaction with its per-feature z-scores and composite scores."""

    transaction: Transaction
    z_scores: tuple
    average_score: float
    pattern_score: float
    amount_score: float

    @property
    def transaction_id(self):
        return self.transaction.transaction_id

    @property
    def amount(self) -> float:
        return self.transaction.amount

    @property
    def elapsed_seconds(self) -> float:
        return self.transaction.elapsed_seconds

    def z(self, index: int) -> float:
        """Z-score of feature ``index`` (1-based)."""
        if index < 1 or index > len(self.z_scores):
            raise IndexError(f"Feature index {index} out of range 1..{len(self.z_scores)}")
        return self.z_scores[index - 1]


class AnomalyScorer:
    """
    Scores transactions against one batch's FeatureStatistics.

    The scorer holds no mutable state: rescoring the same transaction with
    the same statistics always gives the same result.
    """

    def __init__(self, statistics: FeatureStatistics,
                 average_features: Sequence[int] = DEFAULT_AVERAGE_FEATURES,
                 pattern_feature: int = DEFAULT_PATTERN_FEATURE):
        """
        Initialize the scorer.

        Args:
            statistics: Population statistics of the batch being scored
            average_features: 1-based feature indices averaged by average_score
            pattern_feature: 1-based index of the single feature used by pattern_score
        """
        average_features = tuple(int(i) for i in average_features)
        if not average_features:
            raise ConfigurationError("average_features must name at least one feature")
        for index in average_features + (int(pattern_feature),):
            if index < 1 or index > statistics.n_features:
                raise ConfigurationError(
                    f"Feature index {index} out of range 1..{statistics.n_features}"
                )

        self.statistics = statistics
        self.average_features = average_features
        self.pattern_feature = int(pattern_feature)

    def feature_z_scores(self, transaction) -> tuple:
        stats = self.statistics
        if transaction.n_features != stats.n_features:
            raise ValueError(
                f"Transaction {transaction.transaction_id} has {transaction.n_features} "
                f"features, statistics cover {stats.n_features}"
            )
        return tuple(
            z_score(value, mean, std)
            for value, mean, std in zip(transaction.features, stats.feature_means, stats.feature_stds)
        )

    def average_score(self, transaction) -> float:
        """Mean z-score over the configured feature subset."""
        total = sum(
            z_score(transaction.feature(i), self.statistics.mean(i), self.statistics.std(i))
            for i in self.average_features
        )
        return total / len(self.average_features)

    def pattern_score(self, transaction) -> float:
        """Z-score of the designated pattern feature."""
        i = self.pattern_feature
        return z_score(transaction.feature(i), self.statistics.mean(i), self.statistics.std(i))

    def amount_score(self, transaction) -> float:
        """Signed amount deviation from the batch mean, in std units."""
        if self.statistics.amount_std == 0:
            return 0.0
        return (transaction.amount - self.statistics.amount_mean) / self.statistics.amount_std

    def score(self, transaction) -> ScoredTransaction:
        if isinstance(transaction, LabeledTransaction):
            transaction = transaction.transaction

        z_scores = self.feature_z_scores(transaction)
        average = sum(z_scores[i - 1] for i in self.average_features) / len(self.average_features)

        return ScoredTransaction(
            transaction=transaction,
            z_scores=z_scores,
            average_score=average,
            pattern_score=z_scores[self.pattern_feature - 1],
            amount_score=self.amount_score(transaction),
        )

    def score_batch(self, transactions: Sequence) -> list:
        return [self.score(txn) for txn in transactions]
