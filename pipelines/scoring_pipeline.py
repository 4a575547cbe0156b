"""
Scoring Pipeline
================

Prefect flow for batch scoring, action-tier classification and reporting.
Labels are optional: an unlabeled batch is scored and classified, and gets
the tier breakdown only.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from prefect import flow, task
from prefect.logging import get_run_logger

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fraudscore.classifier import Classifier, ClassifierConfig, tier_counts
from fraudscore.data_loading import frame_to_transactions, load_config, load_transactions
from fraudscore.evaluation import plot_hourly_fraud_rate, save_results
from fraudscore.reporting import batch_reports, build_report_frame
from fraudscore.scoring import AnomalyScorer
from fraudscore.statistics import compute_feature_statistics
from fraudscore.transactions import has_labels, labels_of, unlabel


@task(name="load_batch")
def load_batch(data_path: str, sample_size: Optional[int] = None, random_state: int = 42) -> list:
    """Load the transaction batch to score."""
    logger = get_run_logger()
    logger.info(f"Loading batch from {data_path}")

    df = load_transactions(data_path, sample_size=sample_size, random_state=random_state)
    batch = frame_to_transactions(df)

    logger.info(f"Loaded {len(batch)} records ({'labeled' if has_labels(batch) else 'unlabeled'})")
    return batch


@task(name="score_batch")
def score_batch(batch: list, scoring_cfg: dict[str, Any], n_partitions: int = 1) -> list:
    """Compute statistics for this batch and score every transaction."""
    logger = get_run_logger()

    statistics = compute_feature_statistics(batch, n_partitions=n_partitions)
    scorer = AnomalyScorer(
        statistics,
        average_features=scoring_cfg.get('average_features', (1, 2, 3, 4, 5)),
        pattern_feature=scoring_cfg.get('pattern_feature', 3),
    )
    scored = scorer.score_batch(unlabel(batch))

    logger.info(f"Scored {len(scored)} transactions against V{scorer.pattern_feature}")
    return scored


@task(name="classify_batch")
def classify_batch(scored: list, classifier: Classifier) -> list:
    """Assign an action tier to every scored transaction."""
    logger = get_run_logger()

    classifications = classifier.classify_batch(scored)
    for tier, count in tier_counts(classifications).items():
        logger.info(f"{tier.name}: {count}")

    return classifications


@task(name="build_reports")
def build_reports(scored: list, classifications: list, labels: Optional[list] = None) -> dict[str, Any]:
    """Aggregate scores and tiers into reporting tables."""
    logger = get_run_logger()

    frame = build_report_frame(scored, classifications, labels=labels)
    reports = batch_reports(frame)
    reports["frame"] = frame

    if "summary" in reports:
        logger.info(f"Fraud loss: {reports['summary']['fraud_loss']:.2f}")
    else:
        logger.info("Unlabeled batch: tier breakdown only")
    return reports


@task(name="save_scored_batch")
def save_scored_batch(frame: pd.DataFrame, output_path: str) -> str:
    """Save per-transaction scores and tiers to CSV."""
    logger = get_run_logger()

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(output_path, index=False)
    logger.info(f"Scored batch saved to {output_path}")

    return output_path


@flow(name="fraud-batch-scoring", log_prints=True)
def scoring_flow(
    data_path: Optional[str] = None,
    config_path: Optional[str] = None,
    output_dir: Optional[str] = None,
    sample_size: Optional[int] = None
) -> dict[str, Any]:
    """
    Batch scoring flow.

    Args:
        data_path: Path to input CSV (defaults to the configured batch)
        config_path: Path to configuration file
        output_dir: Directory for scored CSV and report JSON
        sample_size: Stratified sample size (None for the full batch)

    Returns:
        Dictionary with output paths and the executive summary (None when
        the batch is unlabeled)
    """
    logger = get_run_logger()
    logger.info("Starting fraud batch scoring pipeline")

    config = load_config(config_path or "config/params.yaml")
    data_path = data_path or config['data']['transactions']
    output_dir = Path(output_dir or config.get('output', {}).get('results_dir', 'results'))

    # Fail on bad thresholds before touching the batch
    classifier = Classifier(ClassifierConfig.from_dict(config['classifier']))

    data_cfg = config.get('data', {})
    batch = load_batch(
        data_path,
        sample_size=sample_size if sample_size is not None else data_cfg.get('sample_size'),
        random_state=data_cfg.get('random_state', 42),
    )
    scored = score_batch(
        batch, config.get('scoring', {}),
        n_partitions=config.get('statistics', {}).get('n_partitions', 1),
    )
    classifications = classify_batch(scored, classifier)
    labels = labels_of(batch) if has_labels(batch) else None
    reports = build_reports(scored, classifications, labels)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    scored_path = save_scored_batch(reports["frame"], str(output_dir / f"scored_{timestamp}.csv"))
    report_path = save_results(
        {key: value for key, value in reports.items() if key != "frame"},
        str(output_dir),
        filename=f"scoring_report_{timestamp}.json",
    )
    if "hourly" in reports:
        plot_hourly_fraud_rate(reports["hourly"], str(output_dir / f"hourly_fraud_rate_{timestamp}.png"))

    logger.info("Scoring pipeline complete")

    return {
        "scored_path": scored_path,
        "report_path": str(report_path),
        "summary": reports.get("summary"),
        "total_processed": len(batch),
    }


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Fraud Batch Scoring Pipeline")
    parser.add_argument(
        "--data-path",
        type=str,
        default=None,
        help="Path to input CSV (default: data.transactions from the config)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config/params.yaml",
        help="Path to configuration file (default: config/params.yaml)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Output directory (default: output.results_dir from the config)",
    )
    parser.add_argument(
        "--sample-size",
        type=int,
        default=0,
        help="Number of rows to sample (default: 0, the full batch)",
    )
    args = parser.parse_args()

    result = scoring_flow(
        data_path=args.data_path,
        config_path=args.config,
        output_dir=args.output_dir,
        sample_size=args.sample_size or None,
    )

    print("\nScoring Results:")
    print(f"  Scored batch: {result['scored_path']}")
    print(f"  Report: {result['report_path']}")
    print(f"  Total processed: {result['total_processed']}")
    if result['summary'] is not None:
        print(f"  Fraud loss: {result['summary']['fraud_loss']:.2f}")
