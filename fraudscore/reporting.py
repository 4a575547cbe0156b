"""
Reporting Module
================

Hour-of-day, amount-segment and action-tier breakdowns built from scored
and classified transactions. Pure aggregation; no decision logic.
"""

from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .classifier import Classification

SECONDS_PER_DAY = 86400
SECONDS_PER_HOUR = 3600

# (label, inclusive upper bound); the last segment is unbounded
AMOUNT_SEGMENTS = (
    ('Micro', 10.0),
    ('Small', 50.0),
    ('Medium', 200.0),
    ('Large', 1000.0),
    ('Premium', None),
)
SEGMENT_ORDER = [label for label, _ in AMOUNT_SEGMENTS]

# Six 4-hour blocks of the day, in day order
TIME_PERIODS = (
    'Early Morning (00:00-03:59)',
    'Morning (04:00-07:59)',
    'Business Hours (08:00-11:59)',
    'Afternoon (12:00-15:59)',
    'Evening (16:00-19:59)',
    'Night (20:00-23:59)',
)
HOURS_PER_PERIOD = 4

# (label, inclusive upper bound) for the volume-trend value mix
VALUE_CATEGORIES = (
    ('Low', 50.0),
    ('Medium', 500.0),
    ('High', None),
)


def hour_of_day(elapsed_seconds: float) -> int:
    """Hour bucket in [0, 23] for any non-negative elapsed time."""
    if elapsed_seconds < 0:
        raise ValueError(f"elapsed_seconds must be non-negative, got {elapsed_seconds}")
    return int((elapsed_seconds % SECONDS_PER_DAY) // SECONDS_PER_HOUR)


def amount_segment(amount: float) -> str:
    """Segment label; each upper bound belongs to its own segment."""
    for label, upper in AMOUNT_SEGMENTS:
        if upper is None or amount <= upper:
            return label
    return AMOUNT_SEGMENTS[-1][0]


def time_period(elapsed_seconds: float) -> str:
    """4-hour block of the day the transaction falls in."""
    return TIME_PERIODS[hour_of_day(elapsed_seconds) // HOURS_PER_PERIOD]


def value_category(amount: float) -> str:
    for label, upper in VALUE_CATEGORIES:
        if upper is None or amount <= upper:
            return label
    return VALUE_CATEGORIES[-1][0]


def build_report_frame(scored: Sequence, classifications: Sequence[Classification],
                       labels: Optional[Sequence[bool]] = None) -> pd.DataFrame:
    """
    Flatten scored transactions into a reporting DataFrame.

    Args:
        scored: ScoredTransaction values
        classifications: Tier per scored transaction, same order
        labels: Optional fraud labels, same order

    Returns:
        DataFrame with transaction_id, amount, elapsed_seconds, hour_of_day,
        amount_segment, average_score, pattern_score, amount_score,
        classification and (when labels are given) is_fraud
    """
    if len(scored) != len(classifications):
        raise ValueError(
            f"Length mismatch: scored={len(scored)}, classifications={len(classifications)}"
        )
    if labels is not None and len(labels) != len(scored):
        raise ValueError(f"Length mismatch: scored={len(scored)}, labels={len(labels)}")

    frame = pd.DataFrame({
        'transaction_id': [s.transaction_id for s in scored],
        'amount': [s.amount for s in scored],
        'elapsed_seconds': [s.elapsed_seconds for s in scored],
        'average_score': [s.average_score for s in scored],
        'pattern_score': [s.pattern_score for s in scored],
        'amount_score': [s.amount_score for s in scored],
        'classification': [c.name for c in classifications],
    })
    frame['hour_of_day'] = [hour_of_day(s.elapsed_seconds) for s in scored]
    frame['amount_segment'] = [amount_segment(s.amount) for s in scored]
    if labels is not None:
        frame['is_fraud'] = [bool(v) for v in labels]
    return frame


def _rate(numerator, denominator):
    return np.where(denominator > 0, numerator * 100.0 / np.where(denominator > 0, denominator, 1), np.nan)


def _require_labels(frame: pd.DataFrame):
    if 'is_fraud' not in frame.columns:
        raise ValueError("Report frame has no 'is_fraud' column; build it with labels")


def hourly_breakdown(frame: pd.DataFrame) -> pd.DataFrame:
    """Per-hour fraud statistics, highest fraud rate first."""
    _require_labels(frame)
    total_fraud = int(frame['is_fraud'].sum())
    fraud_amount = frame['amount'].where(frame['is_fraud'], 0.0)

    grouped = frame.assign(fraud_amount=fraud_amount).groupby('hour_of_day')
    hourly = pd.DataFrame({
        'total_transactions': grouped.size(),
        'fraud_count': grouped['is_fraud'].sum().astype(int),
        'total_volume': grouped['amount'].sum(),
        'fraud_loss': grouped['fraud_amount'].sum(),
    })
    hourly['normal_count'] = hourly['total_transactions'] - hourly['fraud_count']
    hourly['fraud_rate_percentage'] = _rate(hourly['fraud_count'], hourly['total_transactions'])
    hourly['fraud_distribution_percentage'] = _rate(hourly['fraud_count'], np.full(len(hourly), total_fraud))
    hourly['fraud_loss_ratio_percentage'] = _rate(hourly['fraud_loss'], hourly['total_volume'])

    return (hourly.reset_index()
            .sort_values(['fraud_rate_percentage', 'hour_of_day'], ascending=[False, True])
            .reset_index(drop=True))


def hourly_analysis(frame: pd.DataFrame, start_hour: int = 0, end_hour: int = 23,
                    high_risk_threshold: float = 10.0) -> pd.DataFrame:
    """
    Per-hour table restricted to an hour window, with high-risk counts.

    Args:
        frame: Report frame with labels
        start_hour: First hour included
        end_hour: Last hour included
        high_risk_threshold: Pattern score above which a transaction is high risk

    Returns:
        DataFrame ordered by hour_of_day
    """
    _require_labels(frame)
    if not 0 <= start_hour <= end_hour <= 23:
        raise ValueError(f"Invalid hour window {start_hour}..{end_hour}")

    window = frame[(frame['hour_of_day'] >= start_hour) & (frame['hour_of_day'] <= end_hour)]
    grouped = window.assign(
        high_risk=window['pattern_score'] > high_risk_threshold
    ).groupby('hour_of_day')

    table = pd.DataFrame({
        'total_transactions': grouped.size(),
        'fraud_count': grouped['is_fraud'].sum().astype(int),
        'high_risk_transactions': grouped['high_risk'].sum().astype(int),
    })
    table['fraud_rate'] = _rate(table['fraud_count'], table['total_transactions'])
    return table.reset_index().sort_values('hour_of_day').reset_index(drop=True)


def segment_breakdown(frame: pd.DataFrame) -> pd.DataFrame:
    """Per amount-segment fraud statistics, smallest segment first."""
    _require_labels(frame)
    fraud_amount = frame['amount'].where(frame['is_fraud'], 0.0)
    grouped = frame.assign(fraud_amount=fraud_amount).groupby('amount_segment')

    segments = pd.DataFrame({
        'transactions': grouped.size(),
        'fraud_count': grouped['is_fraud'].sum().astype(int),
        'volume': grouped['amount'].sum(),
        'fraud_volume': grouped['fraud_amount'].sum(),
        'avg_amount': grouped['amount'].mean(),
    })
    segments['fraud_rate'] = _rate(segments['fraud_count'], segments['transactions'])
    segments['loss_rate'] = _rate(segments['fraud_volume'], segments['volume'])
    segments['transaction_share_percentage'] = _rate(
        segments['transactions'], np.full(len(segments), len(frame))
    )

    order = [s for s in SEGMENT_ORDER if s in segments.index]
    return segments.loc[order].rename_axis('amount_segment').reset_index()


def time_period_breakdown(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Volume and fraud per 4-hour period of the day, with the value mix.

    Args:
        frame: Report frame with labels

    Returns:
        DataFrame in day order with total_transactions, fraud_count,
        fraud_rate_percentage, total_volume, fraud_loss,
        avg_transaction_amount, low/medium/high_value_percentage,
        high_value_fraud and high_value_fraud_rate (0 when no high-value
        transactions fall in the period)
    """
    _require_labels(frame)
    high_value = frame['amount'] > VALUE_CATEGORIES[1][1]
    periods = frame.assign(
        time_period=[TIME_PERIODS[h // HOURS_PER_PERIOD] for h in frame['hour_of_day']],
        value_category=[value_category(a) for a in frame['amount']],
        fraud_amount=frame['amount'].where(frame['is_fraud'], 0.0),
        high_value_fraud=high_value & frame['is_fraud'],
    )
    grouped = periods.groupby('time_period')

    table = pd.DataFrame({
        'total_transactions': grouped.size(),
        'fraud_count': grouped['is_fraud'].sum().astype(int),
        'total_volume': grouped['amount'].sum(),
        'fraud_loss': grouped['fraud_amount'].sum(),
        'avg_transaction_amount': grouped['amount'].mean(),
        'high_value_fraud': grouped['high_value_fraud'].sum().astype(int),
    })
    table['fraud_rate_percentage'] = _rate(table['fraud_count'], table['total_transactions'])

    mix = pd.crosstab(periods['time_period'], periods['value_category']).reindex(
        index=table.index, columns=[label for label, _ in VALUE_CATEGORIES], fill_value=0
    )
    for label, _ in VALUE_CATEGORIES:
        table[f'{label.lower()}_value_percentage'] = _rate(mix[label], table['total_transactions'])
    table['high_value_fraud_rate'] = table['high_value_fraud'] * 100.0 / mix['High'].clip(lower=1)

    order = [p for p in TIME_PERIODS if p in table.index]
    return table.loc[order].rename_axis('time_period').reset_index()


def tier_breakdown(frame: pd.DataFrame) -> pd.DataFrame:
    """Transaction count and volume per action tier, most severe first."""
    tiers = [tier.name for tier in Classification.by_severity()]
    grouped = frame.groupby('classification')
    table = pd.DataFrame({
        'transactions': grouped.size(),
        'volume': grouped['amount'].sum(),
    }).reindex(tiers, fill_value=0)
    if 'is_fraud' in frame.columns:
        table['fraud_count'] = grouped['is_fraud'].sum().reindex(tiers, fill_value=0).astype(int)
    table['transactions'] = table['transactions'].astype(int)
    return table.rename_axis('classification').reset_index()


def executive_summary(frame: pd.DataFrame) -> dict:
    """Headline KPIs for a labeled batch; ratios are None when undefined."""
    _require_labels(frame)
    total = len(frame)
    fraud = frame[frame['is_fraud']]
    total_volume = float(frame['amount'].sum())
    fraud_loss = float(fraud['amount'].sum())
    # hours touched by the capture window, counting the partial last hour
    capture_hours = int(frame['elapsed_seconds'].max() // SECONDS_PER_HOUR) + 1 if total else 0

    return {
        'total_transactions': total,
        'fraud_cases': int(len(fraud)),
        'fraud_rate_percentage': len(fraud) * 100.0 / total if total else None,
        'total_volume': total_volume,
        'fraud_loss': fraud_loss,
        'loss_percentage': fraud_loss * 100.0 / total_volume if total_volume else None,
        'avg_transaction_amount': total_volume / total if total else None,
        'avg_fraud_amount': fraud_loss / len(fraud) if len(fraud) else None,
        'capture_hours': capture_hours,
        'fraud_loss_per_hour': fraud_loss / capture_hours if capture_hours else None,
    }


def batch_reports(frame: pd.DataFrame) -> dict:
    """
    Every report that applies to the frame.

    Unlabeled frames only get the tier breakdown; labeled frames also get
    the executive summary and the hourly, segment and time-period tables.
    """
    reports = {'tiers': tier_breakdown(frame)}
    if 'is_fraud' in frame.columns:
        reports.update({
            'summary': executive_summary(frame),
            'hourly': hourly_breakdown(frame),
            'segments': segment_breakdown(frame),
            'time_periods': time_period_breakdown(frame),
        })
    return reports
