"""
Evaluation Module
=================

Metrics computation, console tables, plots and result export for
threshold sweeps and method comparisons.
"""

import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path

import matplotlib

matplotlib.use('Agg')

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.metrics import confusion_matrix


def compute_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> dict:
    """
    Compute confusion-matrix metrics for binary fraud flags.

    Precision is None when nothing was flagged and recall is None when the
    batch holds no fraud; neither is coerced to zero.

    Args:
        y_true: True labels
        y_pred: Predicted flags

    Returns:
        Dictionary of metrics
    """
    y_true = np.asarray(y_true, dtype=bool)
    y_pred = np.asarray(y_pred, dtype=bool)

    cm = confusion_matrix(y_true, y_pred, labels=[False, True])
    tn, fp, fn, tp = (int(v) for v in cm.ravel())

    flagged = tp + fp
    positives = tp + fn

    return {
        'precision': tp / flagged if flagged else None,
        'recall': tp / positives if positives else None,
        'total_flagged': flagged,
        'confusion_matrix': {
            'true_negatives': tn,
            'false_positives': fp,
            'false_negatives': fn,
            'true_positives': tp,
        },
    }


def _pct(value) -> str:
    return "   n/a" if value is None or (isinstance(value, float) and np.isnan(value)) else f"{value:6.2%}"


def print_results(metrics: dict, title: str = "Detection Results"):
    """Print formatted results."""
    print("=" * 60)
    print(f"  {title}")
    print("=" * 60)
    print(f"  Precision:  {_pct(metrics['precision'])}")
    print(f"  Recall:     {_pct(metrics['recall'])}")
    print(f"  Flagged:    {metrics['total_flagged']}")
    print("-" * 60)
    print("  Confusion Matrix:")
    cm = metrics['confusion_matrix']
    print(f"    TN: {cm['true_negatives']:>8}  |  FP: {cm['false_positives']:>8}")
    print(f"    FN: {cm['false_negatives']:>8}  |  TP: {cm['true_positives']:>8}")
    print("=" * 60)


def print_sweep(sweep, limit: int = 10):
    """Print the top of a ranked calibration sweep."""
    print("=" * 60)
    print(f"  Threshold sweep: {sweep.method} ({sweep.total_fraud} fraud cases)")
    print("=" * 60)
    print(f"  {'Threshold':>10} {'Flagged':>9} {'TP':>7} {'Precision':>10} {'Recall':>8}")
    print("-" * 60)
    for result in sweep.results[:limit]:
        print(f"  {result.threshold:>10g} {result.flagged:>9} {result.true_positives:>7} "
              f"{_pct(result.precision):>10} {_pct(result.recall):>8}")
    print("=" * 60)


def print_comparison(reports):
    """Print the method comparison table."""
    print("=" * 72)
    print("  Detection Method Comparison")
    print("=" * 72)
    print(f"  {'Method':<22} {'Thresh':>7} {'Flagged':>8} {'TP':>6} {'FP':>7} "
          f"{'Prec':>8} {'Recall':>8}")
    print("-" * 72)
    for r in reports:
        print(f"  {r.method:<22} {r.threshold:>7g} {r.total_flagged:>8} {r.true_positives:>6} "
              f"{r.false_positives:>7} {_pct(r.precision):>8} {_pct(r.recall):>8}")
    print("=" * 72)


def plot_threshold_sweep(sweep, save_path: str = None):
    """Plot precision and recall against threshold for one sweep."""
    df = sweep.to_frame().sort_values('threshold')

    plt.figure(figsize=(8, 6))
    plt.plot(df['threshold'], df['precision'], marker='o', color='blue', lw=2, label='Precision')
    plt.plot(df['threshold'], df['recall'], marker='s', color='orange', lw=2, label='Recall')
    if sweep.best is not None:
        plt.axvline(sweep.best.threshold, color='gray', lw=1, linestyle='--',
                    label=f'Selected ({sweep.best.threshold:g})')
    plt.ylim([0.0, 1.05])
    plt.xlabel('Threshold')
    plt.ylabel('Score')
    plt.title(f'Threshold Sweep: {sweep.method}')
    plt.legend(loc='best')
    plt.grid(True, alpha=0.3)
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Saved: {save_path}")
    plt.close()


def plot_method_comparison(reports_df: pd.DataFrame, save_path: str = None):
    """Grouped bar chart of precision and recall per method."""
    long_df = reports_df.melt(id_vars='method', value_vars=['precision', 'recall'],
                              var_name='metric', value_name='value')

    plt.figure(figsize=(8, 6))
    sns.barplot(data=long_df, x='method', y='value', hue='metric')
    plt.ylim([0.0, 1.05])
    plt.xlabel('Detection Method')
    plt.ylabel('Score')
    plt.title('Detection Method Comparison')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Saved: {save_path}")
    plt.close()


def plot_hourly_fraud_rate(hourly_df: pd.DataFrame, save_path: str = None):
    """Bar chart of fraud rate by hour of day."""
    df = hourly_df.sort_values('hour_of_day')

    plt.figure(figsize=(10, 5))
    sns.barplot(data=df, x='hour_of_day', y='fraud_rate_percentage', color='steelblue')
    plt.xlabel('Hour of Day')
    plt.ylabel('Fraud Rate (%)')
    plt.title('Fraud Rate by Hour of Day')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Saved: {save_path}")
    plt.close()


def _convert(obj):
    if isinstance(obj, Enum):
        return obj.name
    if is_dataclass(obj) and not isinstance(obj, type):
        return _convert(asdict(obj))
    if isinstance(obj, pd.DataFrame):
        return _convert(obj.to_dict(orient='records'))
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return None if np.isnan(obj) else float(obj)
    if isinstance(obj, float) and np.isnan(obj):
        return None
    if isinstance(obj, np.ndarray):
        return _convert(obj.tolist())
    if isinstance(obj, dict):
        return {str(_convert(k)): _convert(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [_convert(v) for v in obj]
    return obj


def save_results(results: dict, output_dir: str = 'results', filename: str = 'metrics.json') -> Path:
    """Save results to a JSON file."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    output_path = output_dir / filename
    with open(output_path, 'w') as f:
        json.dump(_convert(results), f, indent=2)

    print(f"Results saved to {output_path}")
    return output_path
