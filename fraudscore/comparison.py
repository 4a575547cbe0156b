"""
Method Comparison Module
========================

Runs several detection methods over the same labeled batch, each at its own
threshold, and reports comparative precision and recall. Performs no
classification; it only tells an operator which method to deploy.
"""

from dataclasses import asdict, dataclass
from typing import Mapping, Optional, Sequence

import pandas as pd

from .calibration import ThresholdCalibrator
from .detection import DetectionMethod
from .exceptions import ConfigurationError


@dataclass(frozen=True)
class MethodReport:
    """Performance of one method at its operating threshold."""

    method: str
    threshold: float
    total_flagged: int
    true_positives: int
    false_positives: int
    precision: Optional[float]
    recall: Optional[float]

    def to_dict(self) -> dict:
        return asdict(self)


class MethodComparator:
    """
    Compares an open set of detection methods.

    Any object implementing the DetectionMethod capability can be added
    without changing the comparison logic.
    """

    def __init__(self, thresholds: Mapping[DetectionMethod, float]):
        """
        Initialize the comparator.

        Args:
            thresholds: Operating threshold per detection method
        """
        if not thresholds:
            raise ConfigurationError("MethodComparator needs at least one method")
        self.thresholds = dict(thresholds)

    def compare(self, batch: Sequence) -> list:
        """
        Evaluate every method on the batch.

        Args:
            batch: Labeled transactions

        Returns:
            MethodReport list ordered by precision (undefined last), then recall
        """
        batch = list(batch)
        reports = []
        for method, threshold in self.thresholds.items():
            sweep = ThresholdCalibrator(method).sweep(batch, [threshold])
            result = sweep.results[0]
            reports.append(MethodReport(
                method=method.name,
                threshold=result.threshold,
                total_flagged=result.flagged,
                true_positives=result.true_positives,
                false_positives=result.false_positives,
                precision=result.precision,
                recall=result.recall,
            ))

        reports.sort(key=lambda r: (
            r.precision is None, -(r.precision or 0.0), -(r.recall or 0.0), r.method
        ))
        return reports


def recommend(reports: Sequence[MethodReport]) -> Optional[MethodReport]:
    """Highest-precision method with a defined precision, if any."""
    defined = [r for r in reports if r.precision is not None]
    if not defined:
        return None
    return min(defined, key=lambda r: (-r.precision, -(r.recall or 0.0), r.method))


def reports_to_frame(reports: Sequence[MethodReport]) -> pd.DataFrame:
    return pd.DataFrame(
        [r.to_dict() for r in reports],
        columns=['method', 'threshold', 'total_flagged', 'true_positives',
                 'false_positives', 'precision', 'recall'],
    ).astype({'precision': float, 'recall': float})
