"""
Unit Tests for Detection Methods
================================
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from conftest import make_labeled
from fraudscore.detection import (
    AmountDeviationMethod,
    DetectionMethod,
    PatternMethod,
    StatisticalOutlierMethod,
    build_detection_methods,
    to_cents,
)
from fraudscore.scoring import AnomalyScorer
from fraudscore.statistics import compute_feature_statistics


@pytest.fixture
def scorer(scenario_batch):
    stats = compute_feature_statistics(scenario_batch)
    return AnomalyScorer(stats, average_features=(1,), pattern_feature=1)


class TestToCents:

    def test_exact_cents(self):
        assert to_cents(1.00) == 100
        assert to_cents(99.99) == 9999
        assert to_cents(0.01) == 1

    def test_float_noise_rounds(self):
        """Test binary float noise does not break exact matching."""
        assert to_cents(0.1 + 0.2) == 30
        assert to_cents(99.989999999) == 9999


class TestDetectionMethods:
    """Tests for the three standard methods."""

    def test_build_returns_three_named_methods(self, scorer):
        methods = build_detection_methods(scorer)

        assert [m.name for m in methods] == ['amount_deviation', 'statistical_outlier', 'pattern']
        assert all(isinstance(m, DetectionMethod) for m in methods)

    def test_amount_deviation_is_one_sided(self, scorer, scenario_batch):
        """Test only amounts above the mean can be flagged."""
        method = AmountDeviationMethod(scorer)

        assert not method.flag(scenario_batch[0], 0.5)
        assert method.flag(scenario_batch[2], 0.5)

    def test_statistical_outlier_uses_average(self, scorer, scenario_batch):
        method = StatisticalOutlierMethod(scorer)

        assert method.score(scenario_batch[2]) == pytest.approx(scorer.average_score(scenario_batch[2]))

    def test_flag_is_strictly_greater(self, scorer, scenario_batch):
        """Test a score equal to the threshold is not flagged."""
        method = PatternMethod(scorer)
        score = method.score(scenario_batch[2])

        assert not method.flag(scenario_batch[2], score)
        assert method.flag(scenario_batch[2], score - 1e-9)

    def test_pattern_gated_by_amount(self, scorer, scenario_batch):
        """Test the pattern method only flags configured amounts."""
        gated = PatternMethod(scorer, pattern_amounts=[1.00, 99.99])
        ungated = PatternMethod(scorer)

        assert ungated.flag(scenario_batch[2], 1.0)
        assert not gated.flag(scenario_batch[2], 1.0)
        assert gated.eligible(scenario_batch[0])

    def test_pattern_explicit_feature_name(self, random_batch):
        stats = compute_feature_statistics(random_batch)
        scorer = AnomalyScorer(stats)
        method = PatternMethod(scorer, feature=4)

        assert method.name == 'pattern_v4'
        assert method.score(random_batch[0]) == pytest.approx(scorer.score(random_batch[0]).z(4))

    def test_custom_method_plugs_in(self):
        """Test a new method only needs a score implementation."""

        class FixedMethod(DetectionMethod):
            name = 'fixed'

            def score(self, transaction):
                return transaction.amount

        method = FixedMethod()
        txn = make_labeled(1, 5.0, [0.0])

        assert method.flag(txn, 4.0)
        assert not method.flag(txn, 5.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
