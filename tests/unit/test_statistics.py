"""
Unit Tests for Feature Statistics
=================================
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from conftest import make_labeled
from fraudscore.exceptions import EmptyBatchError
from fraudscore.statistics import compute_feature_statistics


class TestComputeFeatureStatistics:
    """Tests for population statistics."""

    def test_scenario_values(self, scenario_batch):
        """Test mean and population std on the three-transaction batch."""
        stats = compute_feature_statistics(scenario_batch)

        assert stats.count == 3
        assert stats.mean(1) == pytest.approx(50.0 / 3)
        assert stats.std(1) == pytest.approx(23.5702, rel=1e-4)
        assert stats.amount_mean == pytest.approx((1.0 + 50.0 + 1200.0) / 3)

    def test_population_not_sample_std(self):
        """Test the std divides by n, not n - 1."""
        batch = [make_labeled(i, 0.0, [v]) for i, v in enumerate([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0])]
        stats = compute_feature_statistics(batch)

        assert stats.std(1) == pytest.approx(2.0)

    def test_mean_times_count_equals_sum(self, random_batch):
        """Test sum of mean x count reproduces the raw sums."""
        stats = compute_feature_statistics(random_batch)
        values = np.array([t.features for t in random_batch])

        for i in range(1, stats.n_features + 1):
            raw_sum = values[:, i - 1].sum()
            assert stats.mean(i) * stats.count == pytest.approx(raw_sum, rel=1e-6, abs=1e-9)

        amount_sum = sum(t.amount for t in random_batch)
        assert stats.amount_mean * stats.count == pytest.approx(amount_sum, rel=1e-6)

    def test_empty_batch_raises(self):
        """Test empty batch is fatal rather than zeroed statistics."""
        with pytest.raises(EmptyBatchError):
            compute_feature_statistics([])

    def test_constant_feature_has_zero_std(self):
        """Test a constant feature yields std exactly zero."""
        batch = [make_labeled(i, 10.0 + i, [3.5, float(i)]) for i in range(10)]
        stats = compute_feature_statistics(batch)

        assert stats.std(1) == 0.0
        assert stats.std(2) > 0.0

    def test_all_stds_non_negative(self, random_batch):
        """Test standard deviations are never negative."""
        stats = compute_feature_statistics(random_batch)

        assert stats.amount_std >= 0
        assert all(s >= 0 for s in stats.feature_stds)

    def test_ragged_features_rejected(self):
        """Test a batch with inconsistent feature counts is rejected."""
        batch = [make_labeled(1, 1.0, [0.0, 1.0]), make_labeled(2, 1.0, [0.0])]

        with pytest.raises(ValueError):
            compute_feature_statistics(batch)

    def test_feature_index_is_one_based(self, scenario_batch):
        """Test accessors reject index 0 and indices past N."""
        stats = compute_feature_statistics(scenario_batch)

        with pytest.raises(IndexError):
            stats.mean(0)
        with pytest.raises(IndexError):
            stats.std(2)


class TestPartitionedStatistics:
    """Tests for merging partial accumulators."""

    @pytest.mark.parametrize("n_partitions", [2, 3, 7, 205])
    def test_partition_count_does_not_change_result(self, random_batch, n_partitions):
        """Test partitioned statistics match a single pass within rounding."""
        single = compute_feature_statistics(random_batch)
        merged = compute_feature_statistics(random_batch, n_partitions=n_partitions)

        assert merged.count == single.count
        np.testing.assert_allclose(merged.feature_means, single.feature_means, rtol=1e-9, atol=1e-12)
        np.testing.assert_allclose(merged.feature_stds, single.feature_stds, rtol=1e-9)
        assert merged.amount_std == pytest.approx(single.amount_std, rel=1e-9)

    def test_more_partitions_than_rows(self, scenario_batch):
        """Test partition count is capped at the batch size."""
        stats = compute_feature_statistics(scenario_batch, n_partitions=10)

        assert stats.count == 3
        assert stats.mean(1) == pytest.approx(50.0 / 3)

    def test_parallel_partitions(self, random_batch):
        """Test joblib-parallel reduction matches sequential reduction."""
        sequential = compute_feature_statistics(random_batch, n_partitions=4)
        parallel = compute_feature_statistics(random_batch, n_partitions=4, n_jobs=2)

        np.testing.assert_allclose(parallel.feature_means, sequential.feature_means, rtol=1e-12)
        np.testing.assert_allclose(parallel.feature_stds, sequential.feature_stds, rtol=1e-12)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
