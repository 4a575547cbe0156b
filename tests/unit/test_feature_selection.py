"""
Unit Tests for Feature Selection
================================
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from conftest import make_labeled
from fraudscore.exceptions import EmptyBatchError
from fraudscore.feature_selection import (
    discover_pattern_amounts,
    rank_features,
    select_pattern_feature,
)
from fraudscore.statistics import compute_feature_statistics


@pytest.fixture
def two_feature_batch():
    """Feature 2 separates fraud; feature 1 is noise."""
    batch = []
    for i in range(40):
        sign = 1.0 if i % 2 == 0 else -1.0
        batch.append(make_labeled(i, 20.0, [sign, 0.1 * sign]))
    for i in range(40, 43):
        batch.append(make_labeled(i, 1.0, [0.0, 10.0], is_fraud=True))
    return batch


class TestRankFeatures:
    """Tests for rank_features and select_pattern_feature."""

    def test_separating_feature_ranks_first(self, two_feature_batch):
        stats = compute_feature_statistics(two_feature_batch)
        ranking = rank_features(two_feature_batch, stats, [0.5, 1.0, 2.0, 3.0], verbose=False)

        assert list(ranking.columns) == ['feature', 'best_threshold', 'precision', 'recall', 'flagged']
        assert ranking.iloc[0]['feature'] == 2
        assert ranking.iloc[0]['precision'] == 1.0
        assert ranking.iloc[0]['recall'] == 1.0

    def test_select_pattern_feature(self, two_feature_batch):
        stats = compute_feature_statistics(two_feature_batch)

        assert select_pattern_feature(two_feature_batch, stats, [0.5, 1.0, 2.0, 3.0], verbose=False) == 2

    def test_injected_feature_found(self, random_batch):
        """Test V3 is discovered in the seeded batch."""
        stats = compute_feature_statistics(random_batch)

        assert select_pattern_feature(random_batch, stats, [2.0, 3.0, 4.0], verbose=False) == 3

    def test_min_flagged_filters_operating_points(self, two_feature_batch):
        stats = compute_feature_statistics(two_feature_batch)
        ranking = rank_features(two_feature_batch, stats, [2.0, 3.0], min_flagged=10, verbose=False)

        assert len(ranking) == 0

    def test_fallback_when_nothing_flags(self, two_feature_batch):
        stats = compute_feature_statistics(two_feature_batch)

        assert select_pattern_feature(two_feature_batch, stats, [100.0], verbose=False) == 1

    def test_empty_batch_raises(self, random_batch):
        stats = compute_feature_statistics(random_batch)

        with pytest.raises(EmptyBatchError):
            rank_features([], stats, [1.0], verbose=False)

    def test_single_feature_batch(self):
        """Test ranking works when the batch has fewer features than the scorer defaults."""
        batch = [make_labeled(i, 20.0, [0.1 if i % 2 else -0.1]) for i in range(30)]
        batch += [make_labeled(i, 1.0, [10.0], is_fraud=True) for i in range(30, 32)]
        stats = compute_feature_statistics(batch)

        ranking = rank_features(batch, stats, [1.0, 2.0], verbose=False)

        assert list(ranking['feature']) == [1]
        assert ranking.iloc[0]['precision'] == 1.0
        assert select_pattern_feature(batch, stats, [1.0, 2.0], verbose=False) == 1


class TestDiscoverPatternAmounts:
    """Tests for exact-amount discovery."""

    @pytest.fixture
    def amount_batch(self):
        batch = []
        counter = iter(range(1000))

        def add(amount, total, fraud):
            for k in range(total):
                batch.append(make_labeled(next(counter), amount, [0.0], is_fraud=k < fraud))

        add(1.00, 6, 5)
        add(99.99, 5, 2)
        add(25.00, 10, 0)
        add(0.01, 2, 2)
        return batch

    def test_ranked_by_fraud_rate(self, amount_batch):
        assert discover_pattern_amounts(amount_batch, top_n=3, min_occurrences=5, verbose=False) == [1.0, 99.99]

    def test_support_threshold(self, amount_batch):
        amounts = discover_pattern_amounts(amount_batch, top_n=3, min_occurrences=2, verbose=False)

        assert amounts == [0.01, 1.0, 99.99]

    def test_top_n_limits_result(self, amount_batch):
        assert discover_pattern_amounts(amount_batch, top_n=1, min_occurrences=1, verbose=False) == [0.01]

    def test_no_fraud_gives_empty(self):
        batch = [make_labeled(i, 1.0, [0.0]) for i in range(10)]

        assert discover_pattern_amounts(batch, verbose=False) == []

    def test_empty_batch_gives_empty(self):
        assert discover_pattern_amounts([], verbose=False) == []

    def test_amounts_matched_to_the_cent(self):
        """Test float noise in amounts groups into one exact amount."""
        batch = [make_labeled(i, 0.1 + 0.2, [0.0], is_fraud=True) for i in range(3)]
        batch += [make_labeled(3, 0.30, [0.0])]

        assert discover_pattern_amounts(batch, min_occurrences=4, verbose=False) == [0.3]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
