"""
Main Pipeline
=============

End-to-end batch run: population statistics, data-driven discovery of the
pattern feature and amounts, threshold calibration for every detection
method, method comparison, action-tier classification and reporting.

Usage:
    python -m fraudscore.main [--config config/params.yaml] [--no-plots]
"""

import sys
import time
from pathlib import Path

from .calibration import calibrate_methods
from .classifier import Classifier, ClassifierConfig, tier_counts
from .comparison import MethodComparator, recommend, reports_to_frame
from .data_loading import frame_to_transactions, load_config, load_transactions
from .detection import build_detection_methods
from .evaluation import (
    compute_metrics,
    plot_hourly_fraud_rate,
    plot_method_comparison,
    plot_threshold_sweep,
    print_comparison,
    print_results,
    print_sweep,
    save_results,
)
from .feature_selection import discover_pattern_amounts, select_pattern_feature
from .reporting import (
    build_report_frame,
    executive_summary,
    hourly_analysis,
    hourly_breakdown,
    segment_breakdown,
    tier_breakdown,
    time_period_breakdown,
)
from .scoring import AnomalyScorer
from .statistics import compute_feature_statistics
from .transactions import has_labels, labels_of, unlabel


def resolve_classifier_config(config: dict, batch: list, verbose: bool = True) -> ClassifierConfig:
    """Classifier config from YAML, optionally re-deriving the pattern amounts."""
    classifier_cfg = dict(config.get('classifier', {}))
    if classifier_cfg.get('auto_discover_amounts'):
        if verbose:
            print("  Discovering pattern amounts from labels...")
        amounts = discover_pattern_amounts(
            batch,
            top_n=classifier_cfg.get('discovery_top_n', 3),
            min_occurrences=classifier_cfg.get('discovery_min_occurrences', 5),
            verbose=verbose,
        )
        if amounts:
            classifier_cfg['pattern_amounts'] = amounts
    return ClassifierConfig.from_dict(classifier_cfg)


def analyze_batch(batch: list, config: dict, verbose: bool = True) -> dict:
    """
    Run the full analysis over one labeled batch.

    Args:
        batch: LabeledTransaction list
        config: Parsed configuration dictionary
        verbose: Print progress and tables

    Returns:
        Dictionary with statistics, sweeps, comparison reports, classifier
        config, classifications, report frame and breakdown tables
    """
    stats_cfg = config.get('statistics', {})
    scoring_cfg = config.get('scoring', {})
    calibration_cfg = config.get('calibration', {})
    reporting_cfg = config.get('reporting', {})
    if batch and not has_labels(batch):
        raise ValueError("Calibration needs labeled transactions; the batch has no Class labels")

    # Classifier configuration is validated before any scoring
    classifier_config = resolve_classifier_config(config, batch, verbose=verbose)
    classifier = Classifier(classifier_config)

    if verbose:
        print("\n[1/5] Computing population statistics...")
    statistics = compute_feature_statistics(
        batch,
        n_partitions=stats_cfg.get('n_partitions', 1),
        n_jobs=stats_cfg.get('n_jobs', 1),
    )
    if verbose:
        print(f"      {statistics.count:,} transactions, {statistics.n_features} features, "
              f"amount mean {statistics.amount_mean:.2f} (std {statistics.amount_std:.2f})")

    candidate_sets = calibration_cfg.get('candidates', {})
    pattern_feature = scoring_cfg.get('pattern_feature', 3)
    if scoring_cfg.get('auto_select_feature'):
        if verbose:
            print("\n      Selecting the most discriminative feature...")
        pattern_feature = select_pattern_feature(
            batch, statistics, candidate_sets.get('pattern', [3.0, 5.0, 10.0]),
            min_flagged=calibration_cfg.get('min_flagged', 1), verbose=verbose,
        )
        if verbose:
            print(f"      Pattern feature: V{pattern_feature}")

    scorer = AnomalyScorer(
        statistics,
        average_features=scoring_cfg.get('average_features', (1, 2, 3, 4, 5)),
        pattern_feature=pattern_feature,
    )
    methods = build_detection_methods(scorer, pattern_amounts=classifier_config.pattern_amounts)

    if verbose:
        print("\n[2/5] Calibrating thresholds...")
    sweeps = calibrate_methods(
        methods, batch, candidate_sets,
        n_jobs=calibration_cfg.get('n_jobs', 1), verbose=verbose,
    )
    if verbose:
        for sweep in sweeps.values():
            print_sweep(sweep, limit=5)

    if verbose:
        print("\n[3/5] Comparing detection methods...")
    thresholds = {}
    for method in methods:
        best = sweeps[method.name].best_threshold
        thresholds[method] = best if best is not None else max(candidate_sets[method.name])
    reports = MethodComparator(thresholds).compare(batch)
    recommended = recommend(reports)
    recommended_metrics = None
    if recommended is not None:
        method = next(m for m in methods if m.name == recommended.method)
        flags = [method.flag(t, recommended.threshold) for t in batch]
        recommended_metrics = compute_metrics(labels_of(batch), flags)
    if verbose:
        print_comparison(reports)
        if recommended is not None:
            print(f"  Recommended method: {recommended.method}")
            print_results(recommended_metrics,
                          title=f"{recommended.method} @ {recommended.threshold:g}")

    if verbose:
        print("\n[4/5] Classifying transactions...")
    scored = scorer.score_batch(unlabel(batch))
    classifications = classifier.classify_batch(scored)
    if verbose:
        for tier, count in tier_counts(classifications).items():
            print(f"      {tier.name:<22} {count:>8,}")

    if verbose:
        print("\n[5/5] Building reports...")
    frame = build_report_frame(scored, classifications, labels=labels_of(batch))

    return {
        'statistics': statistics,
        'pattern_feature': pattern_feature,
        'classifier_config': classifier_config,
        'sweeps': sweeps,
        'comparison': reports,
        'recommended_method': recommended.method if recommended else None,
        'recommended_metrics': recommended_metrics,
        'classifications': classifications,
        'report_frame': frame,
        'hourly': hourly_breakdown(frame),
        'hourly_window': hourly_analysis(
            frame,
            start_hour=reporting_cfg.get('start_hour', 0),
            end_hour=reporting_cfg.get('end_hour', 23),
            high_risk_threshold=reporting_cfg.get('high_risk_threshold', 10.0),
        ),
        'segments': segment_breakdown(frame),
        'time_periods': time_period_breakdown(frame),
        'tiers': tier_breakdown(frame),
        'summary': executive_summary(frame),
    }


def export_results(results: dict, output_dir: str, save_plots: bool = True) -> Path:
    """Write JSON results (and optionally plots) to ``output_dir``."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    payload = {
        'summary': results['summary'],
        'statistics': results['statistics'].to_dict(),
        'pattern_feature': results['pattern_feature'],
        'classifier_config': results['classifier_config'].to_dict(),
        'calibration': {name: sweep.to_frame() for name, sweep in results['sweeps'].items()},
        'comparison': results['comparison'],
        'recommended_method': results['recommended_method'],
        'recommended_metrics': results['recommended_metrics'],
        'hourly': results['hourly'],
        'segments': results['segments'],
        'time_periods': results['time_periods'],
        'tiers': results['tiers'],
    }
    path = save_results(payload, str(output_dir), filename='fraud_analysis.json')

    if save_plots:
        for name, sweep in results['sweeps'].items():
            plot_threshold_sweep(sweep, str(output_dir / f'sweep_{name}.png'))
        plot_method_comparison(reports_to_frame(results['comparison']),
                               str(output_dir / 'method_comparison.png'))
        plot_hourly_fraud_rate(results['hourly'], str(output_dir / 'hourly_fraud_rate.png'))

    return path


def main(config_path: str = "config/params.yaml", save_plots: bool = True):
    """
    Run the complete analysis from a config file.

    Args:
        config_path: Path to YAML configuration
        save_plots: Whether to write PNG plots
    """
    print("=" * 60)
    print("  Fraud Scoring & Threshold Calibration")
    print("=" * 60)

    config = load_config(config_path)
    data_cfg = config.get('data', {})
    output_cfg = config.get('output', {})

    start_time = time.time()
    df = load_transactions(
        data_cfg['transactions'],
        sample_size=data_cfg.get('sample_size'),
        random_state=data_cfg.get('random_state', 42),
        require_labels=True,
    )
    batch = frame_to_transactions(df)

    results = analyze_batch(batch, config)
    export_results(results, output_cfg.get('results_dir', 'results'),
                   save_plots=save_plots and output_cfg.get('save_plots', True))

    summary = results['summary']
    print("\n" + "=" * 60)
    print("  Analysis Complete!")
    print("=" * 60)
    print(f"  Transactions: {summary['total_transactions']:,}")
    print(f"  Fraud cases:  {summary['fraud_cases']:,}")
    print(f"  Fraud loss:   {summary['fraud_loss']:,.2f}")
    print(f"  Recommended:  {results['recommended_method']}")
    print(f"  Elapsed:      {time.time() - start_time:.2f}s")
    print("=" * 60)

    return results


def print_usage():
    print("Usage: python -m fraudscore.main [options]")
    print("\nOptions:")
    print("  --config PATH   Configuration file (default: config/params.yaml)")
    print("  --no-plots      Skip plot generation")
    print("  --help, -h      Show this help message")


def parse_args(argv: list) -> tuple:
    """
    Parse runner arguments.

    Returns:
        (config_path, save_plots)

    Raises:
        SystemExit: On --help (status 0) or --config without a path (status 2)
    """
    if '--help' in argv or '-h' in argv:
        print_usage()
        sys.exit(0)

    config_path = "config/params.yaml"
    if '--config' in argv:
        position = argv.index('--config') + 1
        if position >= len(argv) or argv[position].startswith('--'):
            print("Error: --config requires a path")
            print_usage()
            sys.exit(2)
        config_path = argv[position]

    return config_path, '--no-plots' not in argv


if __name__ == "__main__":
    config_path, save_plots = parse_args(sys.argv[1:])
    main(config_path=config_path, save_plots=save_plots)
