"""
Feature Selection Module
========================

Data-driven discovery of the classifier's configuration inputs:
    - the single most discriminative feature for pattern scoring
    - the exact transaction amounts most associated with fraud

Both are re-derived from a labeled batch instead of being assumed.
"""

from typing import Sequence

import pandas as pd

from .calibration import ThresholdCalibrator, rank_key
from .detection import PatternMethod, to_cents
from .exceptions import EmptyBatchError
from .scoring import AnomalyScorer
from .statistics import FeatureStatistics


def rank_features(batch: Sequence, statistics: FeatureStatistics,
                  candidates: Sequence[float], min_flagged: int = 1,
                  verbose: bool = True) -> pd.DataFrame:
    """
    Rank features by the best precision a single-feature threshold achieves.

    Args:
        batch: Labeled transactions
        statistics: Population statistics of the batch
        candidates: Candidate z-score thresholds tried per feature
        min_flagged: Ignore operating points flagging fewer transactions
        verbose: Print the top features

    Returns:
        DataFrame with feature, best_threshold, precision, recall, flagged,
        ranked best-first
    """
    batch = list(batch)
    if not batch:
        raise EmptyBatchError("Cannot rank features on an empty batch")

    if verbose:
        print(f"Ranking {statistics.n_features} features over {len(candidates)} thresholds...")

    # any valid indices; each PatternMethod below scores its own feature
    scorer = AnomalyScorer(statistics, average_features=(1,), pattern_feature=1)
    best_per_feature = []
    for index in range(1, statistics.n_features + 1):
        method = PatternMethod(scorer, feature=index)
        sweep = ThresholdCalibrator(method).sweep(batch, candidates)
        usable = [r for r in sweep.results if r.precision is not None and r.flagged >= min_flagged]
        if usable:
            best_per_feature.append((index, usable[0]))

    best_per_feature.sort(key=lambda item: rank_key(item[1]) + (item[0],))

    importance_df = pd.DataFrame([
        {
            'feature': index,
            'best_threshold': result.threshold,
            'precision': result.precision,
            'recall': result.recall,
            'flagged': result.flagged,
        }
        for index, result in best_per_feature
    ], columns=['feature', 'best_threshold', 'precision', 'recall', 'flagged'])

    if verbose and len(importance_df):
        top = importance_df.head(5)
        print(f"  Top features: {[f'V{i}' for i in top['feature']]}")

    return importance_df


def select_pattern_feature(batch: Sequence, statistics: FeatureStatistics,
                           candidates: Sequence[float], min_flagged: int = 1,
                           verbose: bool = True) -> int:
    """
    Return the 1-based index of the most discriminative feature.

    Falls back to the lowest index with signal when no feature flags
    ``min_flagged`` transactions at any candidate.
    """
    importance_df = rank_features(batch, statistics, candidates, min_flagged, verbose=verbose)
    if len(importance_df):
        return int(importance_df.iloc[0]['feature'])

    for index in range(1, statistics.n_features + 1):
        if statistics.std(index) > 0:
            return index
    return 1


def discover_pattern_amounts(batch: Sequence, top_n: int = 3,
                             min_occurrences: int = 5, verbose: bool = True) -> list:
    """
    Find exact amounts with the highest fraud rate.

    Args:
        batch: Labeled transactions
        top_n: Number of amounts to return
        min_occurrences: Minimum times an amount must appear to be considered
        verbose: Print the discovered amounts

    Returns:
        Amounts (rounded to the cent) ordered by fraud rate, then fraud count,
        then amount; only amounts with at least one fraud case are returned
    """
    df = pd.DataFrame({
        'cents': [to_cents(t.amount) for t in batch],
        'is_fraud': [bool(t.is_fraud) for t in batch],
    }, columns=['cents', 'is_fraud'])

    amounts_df = df.groupby('cents').agg(
        total=('is_fraud', 'size'),
        fraud=('is_fraud', 'sum'),
    ).reset_index()
    amounts_df['fraud_rate'] = amounts_df['fraud'] / amounts_df['total']

    amounts_df = amounts_df[
        (amounts_df['total'] >= min_occurrences) & (amounts_df['fraud'] > 0)
    ].sort_values(['fraud_rate', 'fraud', 'cents'], ascending=[False, False, True]).head(top_n)

    if verbose:
        for row in amounts_df.itertuples():
            print(f"  Amount {row.cents / 100:.2f}: {row.fraud}/{row.total} fraud "
                  f"({row.fraud_rate:.2%})")

    return [int(cents) / 100 for cents in amounts_df['cents']]
