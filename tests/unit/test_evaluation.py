"""
Unit Tests for Evaluation Module
================================
"""

import json
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from fraudscore.calibration import ThresholdCalibrator
from fraudscore.classifier import Classification
from fraudscore.comparison import MethodReport, reports_to_frame
from fraudscore.detection import PatternMethod
from fraudscore.evaluation import (
    compute_metrics,
    plot_method_comparison,
    plot_threshold_sweep,
    print_results,
    save_results,
)
from fraudscore.scoring import AnomalyScorer
from fraudscore.statistics import compute_feature_statistics


class TestComputeMetrics:
    """Tests for metrics computation."""

    def test_perfect_predictions(self):
        """Test metrics for perfect predictions."""
        y_true = np.array([0, 0, 1, 1, 0, 1])
        y_pred = np.array([0, 0, 1, 1, 0, 1])

        metrics = compute_metrics(y_true, y_pred)

        assert metrics["precision"] == 1.0
        assert metrics["recall"] == 1.0
        assert metrics["total_flagged"] == 3

    def test_confusion_matrix(self):
        """Test confusion matrix computation."""
        y_true = np.array([0, 0, 1, 1, 0, 1])
        y_pred = np.array([0, 1, 1, 1, 0, 0])

        cm = compute_metrics(y_true, y_pred)["confusion_matrix"]

        assert cm == {
            "true_negatives": 2,
            "false_positives": 1,
            "false_negatives": 1,
            "true_positives": 2,
        }

    def test_nothing_flagged(self):
        """Test precision is undefined, not zero, when nothing is flagged."""
        metrics = compute_metrics(np.array([0, 1, 0]), np.array([0, 0, 0]))

        assert metrics["precision"] is None
        assert metrics["recall"] == 0.0

    def test_no_fraud(self):
        """Test recall is undefined when there is no fraud."""
        metrics = compute_metrics(np.array([0, 0]), np.array([1, 0]))

        assert metrics["recall"] is None
        assert metrics["precision"] == 0.0

    def test_print_results(self, capsys):
        print_results(compute_metrics(np.array([0, 1]), np.array([0, 0])), title="Pattern")
        out = capsys.readouterr().out

        assert "Pattern" in out
        assert "n/a" in out


class TestSaveResults:
    """Tests for JSON export."""

    def test_converts_domain_types(self, tmp_path):
        results = {
            "tier": Classification.IMMEDIATE_BLOCK,
            "report": MethodReport("pattern", 3.0, 2, 2, 0, 1.0, None),
            "frame": pd.DataFrame({"a": [1, 2], "b": [np.nan, 0.5]}),
            "amounts": frozenset({1.0}),
            "count": np.int64(4),
        }

        path = save_results(results, str(tmp_path), filename="out.json")
        with open(path) as f:
            loaded = json.load(f)

        assert loaded["tier"] == "IMMEDIATE_BLOCK"
        assert loaded["report"]["recall"] is None
        assert loaded["frame"][0]["b"] is None
        assert loaded["amounts"] == [1.0]
        assert loaded["count"] == 4


class TestPlots:
    """Tests for plot output."""

    def test_threshold_sweep_plot(self, tmp_path, random_batch):
        stats = compute_feature_statistics(random_batch)
        sweep = ThresholdCalibrator(PatternMethod(AnomalyScorer(stats))).sweep(random_batch, [1.0, 2.0, 3.0])
        save_path = tmp_path / "sweep.png"

        plot_threshold_sweep(sweep, str(save_path))

        assert save_path.exists()

    def test_method_comparison_plot(self, tmp_path):
        reports = [
            MethodReport("pattern", 3.0, 5, 5, 0, 1.0, 1.0),
            MethodReport("amount_deviation", 2.0, 0, 0, 0, None, 0.0),
        ]
        save_path = tmp_path / "comparison.png"

        plot_method_comparison(reports_to_frame(reports), str(save_path))

        assert save_path.exists()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
