"""
Calibration Pipeline
====================

Prefect flow for offline threshold calibration and method comparison.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from prefect import flow, task
from prefect.logging import get_run_logger

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fraudscore.calibration import calibrate_methods
from fraudscore.comparison import MethodComparator, recommend
from fraudscore.data_loading import frame_to_transactions, load_config, load_transactions
from fraudscore.detection import build_detection_methods
from fraudscore.evaluation import plot_threshold_sweep, save_results
from fraudscore.feature_selection import discover_pattern_amounts, rank_features
from fraudscore.scoring import AnomalyScorer
from fraudscore.statistics import FeatureStatistics, compute_feature_statistics


@task(name="load_labeled_batch")
def load_labeled_batch(config: dict[str, Any]) -> list:
    """Load and convert the labeled transaction batch."""
    logger = get_run_logger()
    data_cfg = config['data']
    logger.info(f"Loading labeled batch from {data_cfg['transactions']}")

    df = load_transactions(
        data_cfg['transactions'],
        sample_size=data_cfg.get('sample_size'),
        random_state=data_cfg.get('random_state', 42),
        require_labels=True,
    )
    batch = frame_to_transactions(df)

    logger.info(f"Loaded {len(batch)} transactions, {sum(t.is_fraud for t in batch)} fraud")
    return batch


@task(name="compute_statistics")
def compute_statistics(batch: list, n_partitions: int = 1, n_jobs: int = 1) -> FeatureStatistics:
    """Compute population statistics for the batch."""
    logger = get_run_logger()
    statistics = compute_feature_statistics(batch, n_partitions=n_partitions, n_jobs=n_jobs)
    logger.info(
        f"Statistics over {statistics.count} transactions: "
        f"amount mean={statistics.amount_mean:.2f}, std={statistics.amount_std:.2f}"
    )
    return statistics


@task(name="discover_configuration")
def discover_configuration(
    batch: list,
    statistics: FeatureStatistics,
    candidates: list[float],
    min_flagged: int = 1,
    top_n: int = 3,
    min_occurrences: int = 5
) -> dict[str, Any]:
    """Re-derive the dominant feature and the pattern amounts from labels."""
    logger = get_run_logger()

    importance_df = rank_features(batch, statistics, candidates, min_flagged=min_flagged)
    amounts = discover_pattern_amounts(batch, top_n=top_n, min_occurrences=min_occurrences)

    pattern_feature = int(importance_df.iloc[0]['feature']) if len(importance_df) else None
    logger.info(f"Dominant feature: V{pattern_feature}, pattern amounts: {amounts}")

    return {
        "pattern_feature": pattern_feature,
        "pattern_amounts": amounts,
        "feature_ranking": importance_df,
    }


@task(name="calibrate_thresholds")
def calibrate_thresholds(
    batch: list,
    statistics: FeatureStatistics,
    config: dict[str, Any],
    pattern_feature: int,
    pattern_amounts: list[float]
) -> tuple:
    """Sweep candidate thresholds for every detection method."""
    logger = get_run_logger()
    scoring_cfg = config.get('scoring', {})
    calibration_cfg = config.get('calibration', {})

    scorer = AnomalyScorer(
        statistics,
        average_features=scoring_cfg.get('average_features', (1, 2, 3, 4, 5)),
        pattern_feature=pattern_feature,
    )
    methods = build_detection_methods(scorer, pattern_amounts=pattern_amounts)
    sweeps = calibrate_methods(
        methods, batch, calibration_cfg['candidates'],
        n_jobs=calibration_cfg.get('n_jobs', 1),
    )

    for name, sweep in sweeps.items():
        if sweep.best is None:
            logger.warning(f"{name}: no candidate threshold flagged any transaction")
        else:
            logger.info(f"{name}: threshold={sweep.best.threshold:g}, precision={sweep.best.precision:.4f}")

    return methods, sweeps


@task(name="compare_methods")
def compare_methods(batch: list, methods: list, sweeps: dict, candidates: dict) -> list:
    """Compare every method at its calibrated threshold."""
    logger = get_run_logger()

    thresholds = {}
    for method in methods:
        best = sweeps[method.name].best_threshold
        thresholds[method] = best if best is not None else max(candidates[method.name])

    reports = MethodComparator(thresholds).compare(batch)
    recommended = recommend(reports)
    logger.info(f"Recommended method: {recommended.method if recommended else 'none'}")
    return reports


@task(name="export_calibration")
def export_calibration(results: dict[str, Any], sweeps: dict, output_dir: str) -> str:
    """Save calibration results and sweep plots."""
    logger = get_run_logger()

    run_dir = Path(output_dir) / f"calibration_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
    path = save_results(results, str(run_dir), filename='calibration.json')
    for name, sweep in sweeps.items():
        plot_threshold_sweep(sweep, str(run_dir / f"sweep_{name}.png"))

    logger.info(f"Calibration results saved to {run_dir}")
    return str(path)


@flow(name="fraud-threshold-calibration", log_prints=True)
def calibration_flow(config_path: Optional[str] = None, discover: bool = True) -> dict[str, Any]:
    """
    Offline calibration flow.

    Args:
        config_path: Path to configuration file
        discover: Re-derive the pattern feature and amounts from labels

    Returns:
        Dictionary with calibration results
    """
    logger = get_run_logger()
    logger.info("Starting threshold calibration pipeline")

    config = load_config(config_path or "config/params.yaml")
    stats_cfg = config.get('statistics', {})
    calibration_cfg = config.get('calibration', {})
    classifier_cfg = config.get('classifier', {})
    candidates = calibration_cfg['candidates']

    batch = load_labeled_batch(config)
    statistics = compute_statistics(
        batch,
        n_partitions=stats_cfg.get('n_partitions', 1),
        n_jobs=stats_cfg.get('n_jobs', 1),
    )

    pattern_feature = config.get('scoring', {}).get('pattern_feature', 3)
    pattern_amounts = classifier_cfg.get('pattern_amounts', [])
    feature_ranking = None
    if discover:
        discovered = discover_configuration(
            batch, statistics, candidates['pattern'],
            min_flagged=calibration_cfg.get('min_flagged', 1),
            top_n=classifier_cfg.get('discovery_top_n', 3),
            min_occurrences=classifier_cfg.get('discovery_min_occurrences', 5),
        )
        pattern_feature = discovered['pattern_feature'] or pattern_feature
        pattern_amounts = discovered['pattern_amounts'] or pattern_amounts
        feature_ranking = discovered['feature_ranking']

    methods, sweeps = calibrate_thresholds(batch, statistics, config, pattern_feature, pattern_amounts)
    reports = compare_methods(batch, methods, sweeps, candidates)

    results = {
        "pattern_feature": pattern_feature,
        "pattern_amounts": pattern_amounts,
        "feature_ranking": feature_ranking,
        "thresholds": {name: sweep.best_threshold for name, sweep in sweeps.items()},
        "sweeps": {name: sweep.to_frame() for name, sweep in sweeps.items()},
        "comparison": reports,
    }

    output_dir = config.get('output', {}).get('results_dir', 'results')
    results["output_path"] = export_calibration(results, sweeps, output_dir)

    logger.info("Calibration pipeline complete")
    return results


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Fraud Threshold Calibration Pipeline")
    parser.add_argument(
        "--config",
        type=str,
        default="config/params.yaml",
        help="Path to configuration file (default: config/params.yaml)",
    )
    parser.add_argument(
        "--no-discovery",
        action="store_true",
        help="Use the configured pattern feature and amounts as-is",
    )
    args = parser.parse_args()

    result = calibration_flow(config_path=args.config, discover=not args.no_discovery)

    print("\nCalibration Results:")
    print(f"  Pattern feature: V{result['pattern_feature']}")
    print(f"  Pattern amounts: {result['pattern_amounts']}")
    for name, threshold in result['thresholds'].items():
        print(f"  {name}: {threshold}")
    print(f"  Output: {result['output_path']}")
