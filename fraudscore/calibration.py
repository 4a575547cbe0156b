"""
Threshold Calibration Module
============================

Sweeps candidate thresholds for a detection method against ground-truth
fraud labels and picks the operating point with the highest precision.

Ranking order:
    1. precision, descending (undefined precision ranks last)
    2. recall, descending
    3. threshold, ascending (prefer broader detection)
"""

from dataclasses import asdict, dataclass
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .detection import DetectionMethod
from .exceptions import ConfigurationError, EmptyBatchError


@dataclass(frozen=True)
class CalibrationResult:
    """Confusion-matrix outcome of one candidate threshold."""

    method: str
    threshold: float
    flagged: int
    true_positives: int
    false_positives: int
    precision: Optional[float]
    recall: Optional[float]

    def to_dict(self) -> dict:
        return asdict(self)


def rank_key(result: CalibrationResult) -> tuple:
    """Sort key implementing precision desc, recall desc, threshold asc."""
    precision_missing = result.precision is None
    recall_missing = result.recall is None
    return (
        precision_missing,
        -(result.precision or 0.0),
        recall_missing,
        -(result.recall or 0.0),
        result.threshold,
    )


@dataclass(frozen=True)
class CalibrationSweep:
    """Ranked results of one sweep, with the selected operating point."""

    method: str
    results: tuple
    total_fraud: int

    @property
    def best(self) -> Optional[CalibrationResult]:
        for result in self.results:
            if result.precision is not None:
                return result
        return None

    @property
    def best_threshold(self) -> Optional[float]:
        best = self.best
        return None if best is None else best.threshold

    def to_frame(self) -> pd.DataFrame:
        """Ranked results as a DataFrame; undefined values are NaN."""
        return pd.DataFrame(
            [r.to_dict() for r in self.results],
            columns=['method', 'threshold', 'flagged', 'true_positives',
                     'false_positives', 'precision', 'recall'],
        ).astype({'precision': float, 'recall': float})


def _evaluate_candidate(method_name: str, threshold: float, scores: np.ndarray,
                        eligible: np.ndarray, labels: np.ndarray,
                        total_fraud: int) -> CalibrationResult:
    flagged_mask = (scores > threshold) & eligible
    flagged = int(flagged_mask.sum())
    true_positives = int((flagged_mask & labels).sum())
    false_positives = flagged - true_positives

    precision = true_positives / flagged if flagged > 0 else None
    recall = true_positives / total_fraud if total_fraud > 0 else None

    return CalibrationResult(
        method=method_name,
        threshold=float(threshold),
        flagged=flagged,
        true_positives=true_positives,
        false_positives=false_positives,
        precision=precision,
        recall=recall,
    )


class ThresholdCalibrator:
    """
    Precision-maximizing threshold search for one detection method.

    Nothing is cached between sweeps: scores are recomputed from the batch
    and the method (and therefore the statistics it was built on) every time.
    """

    def __init__(self, method: DetectionMethod, n_jobs: int = 1):
        """
        Initialize the calibrator.

        Args:
            method: Detection method whose threshold is calibrated
            n_jobs: Parallel workers for candidate evaluation (joblib semantics)
        """
        self.method = method
        self.n_jobs = n_jobs

    def sweep(self, batch: Sequence, candidates: Iterable[float]) -> CalibrationSweep:
        """
        Evaluate every candidate threshold on a labeled batch.

        Args:
            batch: Labeled transactions
            candidates: Candidate threshold values

        Returns:
            CalibrationSweep with results ranked best-first

        Raises:
            EmptyBatchError: If the batch is empty
            ConfigurationError: If no candidates are given
        """
        batch = list(batch)
        candidates = [float(c) for c in candidates]
        if not batch:
            raise EmptyBatchError("Cannot calibrate thresholds on an empty batch")
        if not candidates:
            raise ConfigurationError(f"No candidate thresholds given for {self.method.name}")

        scores = np.array([self.method.score(t) for t in batch], dtype=np.float64)
        eligible = np.array([self.method.eligible(t) for t in batch], dtype=bool)
        labels = np.array([bool(t.is_fraud) for t in batch], dtype=bool)
        total_fraud = int(labels.sum())

        if self.n_jobs == 1:
            results = [
                _evaluate_candidate(self.method.name, c, scores, eligible, labels, total_fraud)
                for c in candidates
            ]
        else:
            results = Parallel(n_jobs=self.n_jobs)(
                delayed(_evaluate_candidate)(self.method.name, c, scores, eligible, labels, total_fraud)
                for c in candidates
            )

        return CalibrationSweep(
            method=self.method.name,
            results=tuple(sorted(results, key=rank_key)),
            total_fraud=total_fraud,
        )


def calibrate_methods(methods: Sequence[DetectionMethod], batch: Sequence,
                      candidate_sets: dict, n_jobs: int = 1,
                      verbose: bool = True) -> dict:
    """
    Sweep each method over its own candidate set.

    Args:
        methods: Detection methods to calibrate
        batch: Labeled transactions
        candidate_sets: Candidate thresholds keyed by method name
        n_jobs: Parallel workers per sweep
        verbose: Print the selected threshold per method

    Returns:
        Dictionary of CalibrationSweep keyed by method name
    """
    batch = list(batch)
    sweeps = {}
    for method in methods:
        if method.name not in candidate_sets:
            raise ConfigurationError(f"No candidate thresholds configured for {method.name}")
        sweep = ThresholdCalibrator(method, n_jobs=n_jobs).sweep(batch, candidate_sets[method.name])
        sweeps[method.name] = sweep

        if verbose:
            best = sweep.best
            if best is None:
                print(f"  {method.name}: no candidate flagged any transaction")
            else:
                print(f"  {method.name}: optimal threshold {best.threshold:g} "
                      f"(precision: {best.precision:.4f}, recall: {best.recall or 0.0:.4f})")
    return sweeps


def precision_recall_table(sweep: CalibrationSweep) -> pd.DataFrame:
    """Sweep results ordered by descending threshold, for trade-off curves."""
    return sweep.to_frame().sort_values('threshold', ascending=False).reset_index(drop=True)
