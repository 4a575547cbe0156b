"""
Detection Methods
=================

Interchangeable scoring strategies compared by the calibrator and the
method comparator. Every method exposes the same capability:

    score(transaction) -> float
    flag(transaction, threshold) -> bool

Methods:
    - AmountDeviationMethod: amount above the batch mean, in std units
    - StatisticalOutlierMethod: mean z-score of a feature subset
    - PatternMethod: z-score of one feature, optionally gated on exact amounts
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from .scoring import AnomalyScorer, z_score


def to_cents(amount: float) -> int:
    """Round an amount to integer cents for exact matching."""
    return int(round(float(amount) * 100))


class DetectionMethod(ABC):
    """Capability shared by all detection methods."""

    name = 'detection_method'

    @abstractmethod
    def score(self, transaction) -> float:
        """Return the method's anomaly score for a transaction."""

    def eligible(self, transaction) -> bool:
        """Whether the transaction can be flagged at all, independent of score."""
        return True

    def flag(self, transaction, threshold: float) -> bool:
        return self.score(transaction) > threshold and self.eligible(transaction)

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"


class AmountDeviationMethod(DetectionMethod):
    """Flags amounts more than ``threshold`` standard deviations above the mean."""

    name = 'amount_deviation'

    def __init__(self, scorer: AnomalyScorer):
        self.scorer = scorer

    def score(self, transaction) -> float:
        return self.scorer.amount_score(transaction)


class StatisticalOutlierMethod(DetectionMethod):
    """Flags transactions whose average feature z-score exceeds ``threshold``."""

    name = 'statistical_outlier'

    def __init__(self, scorer: AnomalyScorer):
        self.scorer = scorer

    def score(self, transaction) -> float:
        return self.scorer.average_score(transaction)


class PatternMethod(DetectionMethod):
    """
    Single-feature pattern detection.

    Scores by the z-score of the scorer's pattern feature (or an explicit
    ``feature``). When ``pattern_amounts`` is given, only transactions whose
    amount matches one of them to the cent can be flagged.
    """

    name = 'pattern'

    def __init__(self, scorer: AnomalyScorer, feature: Optional[int] = None,
                 pattern_amounts: Optional[Iterable[float]] = None):
        self.scorer = scorer
        self.feature = scorer.pattern_feature if feature is None else int(feature)
        self.pattern_cents = (
            frozenset(to_cents(a) for a in pattern_amounts) if pattern_amounts is not None else None
        )
        if feature is not None:
            self.name = f"pattern_v{self.feature}"

    def score(self, transaction) -> float:
        if self.feature == self.scorer.pattern_feature:
            return self.scorer.pattern_score(transaction)
        stats = self.scorer.statistics
        return z_score(transaction.feature(self.feature), stats.mean(self.feature), stats.std(self.feature))

    def eligible(self, transaction) -> bool:
        if self.pattern_cents is None:
            return True
        return to_cents(transaction.amount) in self.pattern_cents


def build_detection_methods(scorer: AnomalyScorer,
                            pattern_amounts: Optional[Iterable[float]] = None) -> list:
    """
    Build the three standard detection methods over one scorer.

    Args:
        scorer: Scorer bound to the current batch statistics
        pattern_amounts: Exact amounts gating the pattern method (None = ungated)

    Returns:
        [AmountDeviationMethod, StatisticalOutlierMethod, PatternMethod]
    """
    return [
        AmountDeviationMethod(scorer),
        StatisticalOutlierMethod(scorer),
        PatternMethod(scorer, pattern_amounts=pattern_amounts),
    ]
