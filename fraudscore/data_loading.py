"""
Data Loading Module
===================

Configuration loading and import of card transactions from the Kaggle
credit card fraud layout (Time, V1..V28, Amount, Class). The Class label
is optional: labeled frames feed calibration and comparison, unlabeled
frames can only be scored.
"""

from pathlib import Path

import numpy as np
import pandas as pd
import yaml

from .transactions import LabeledTransaction, Transaction

TIME_COLUMN = 'Time'
AMOUNT_COLUMN = 'Amount'
LABEL_COLUMN = 'Class'


def load_config(config_path: str = "config/params.yaml") -> dict:
    """Load configuration from YAML file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f)


def feature_columns(df: pd.DataFrame) -> list:
    """V-columns present in the frame, in index order (V1, V2, ...)."""
    columns = [c for c in df.columns if c.startswith('V') and c[1:].isdigit()]
    return sorted(columns, key=lambda c: int(c[1:]))


def has_label_column(df: pd.DataFrame) -> bool:
    return LABEL_COLUMN in df.columns


def validate_frame(df: pd.DataFrame, require_labels: bool = False) -> list:
    """
    Check the frame has the columns the scoring core needs.

    Args:
        df: Transaction frame
        require_labels: Fail when the Class column is absent

    Returns:
        Feature column names in index order

    Raises:
        ValueError: If required columns are missing, feature indices are not
            contiguous from V1, values are missing or non-finite, or
            amounts/times are negative
    """
    required = [TIME_COLUMN, AMOUNT_COLUMN] + ([LABEL_COLUMN] if require_labels else [])
    missing = [c for c in required if c not in df.columns]
    features = feature_columns(df)
    if not features:
        missing.append('V1')
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    expected = [f"V{i}" for i in range(1, len(features) + 1)]
    if features != expected:
        raise ValueError(f"Feature columns must run V1..V{len(features)}, got {features}")

    numeric = [TIME_COLUMN, AMOUNT_COLUMN] + features
    values = df[numeric].to_numpy(dtype=float)
    bad = [numeric[i] for i in np.flatnonzero(~np.isfinite(values).all(axis=0))]
    if has_label_column(df) and df[LABEL_COLUMN].isna().any():
        bad.append(LABEL_COLUMN)
    if bad:
        raise ValueError(f"Missing or non-finite values in columns: {bad}")

    if (df[AMOUNT_COLUMN] < 0).any():
        raise ValueError("Negative values in Amount column")
    if (df[TIME_COLUMN] < 0).any():
        raise ValueError("Negative values in Time column")

    return features


def stratified_sample(df: pd.DataFrame, sample_size: int,
                      random_state: int = 42) -> pd.DataFrame:
    """Sample rows while preserving the fraud ratio (plain sample when unlabeled)."""
    if len(df) <= sample_size:
        return df
    if not has_label_column(df):
        return df.sample(n=sample_size, random_state=random_state).sort_index()

    fraud = df[df[LABEL_COLUMN] == 1]
    legit = df[df[LABEL_COLUMN] == 0]
    fraud_ratio = len(fraud) / len(df)
    n_fraud = int(round(sample_size * fraud_ratio))
    n_legit = sample_size - n_fraud
    return pd.concat([
        fraud.sample(n=min(n_fraud, len(fraud)), random_state=random_state),
        legit.sample(n=min(n_legit, len(legit)), random_state=random_state)
    ]).sort_index()


def load_transactions(path: str, sample_size: int = None,
                      random_state: int = 42, require_labels: bool = False) -> pd.DataFrame:
    """
    Load a transaction CSV.

    Args:
        path: Path to creditcard.csv (or any file with the same columns)
        sample_size: If set, sample this many rows (stratified when labeled)
        random_state: Random seed for sampling
        require_labels: Fail when the Class column is absent

    Returns:
        Validated DataFrame
    """
    path = Path(path)
    print(f"Loading transactions from {path}...")
    df = pd.read_csv(path)
    validate_frame(df, require_labels=require_labels)

    if sample_size and len(df) > sample_size:
        print(f"Sampling {sample_size:,} rows...")
        df = stratified_sample(df, sample_size, random_state=random_state)

    print(f"Dataset shape: {df.shape}")
    if has_label_column(df):
        print(f"Fraud rate: {df[LABEL_COLUMN].mean()*100:.3f}%")
    else:
        print("No Class column: batch is unlabeled")

    return df


def frame_to_transactions(df: pd.DataFrame, id_column: str = None) -> list:
    """
    Convert a validated frame into transaction records.

    Args:
        df: Frame with Time, V1..VN, Amount and optionally Class
        id_column: Column holding transaction ids (row index when None)

    Returns:
        List of LabeledTransaction in frame order, or plain Transaction
        when the frame has no Class column
    """
    features = validate_frame(df)
    ids = df[id_column].tolist() if id_column else df.index.tolist()
    times = df[TIME_COLUMN].to_numpy(dtype=float)
    amounts = df[AMOUNT_COLUMN].to_numpy(dtype=float)
    values = df[features].to_numpy(dtype=float)

    transactions = [
        Transaction(
            transaction_id=ids[row],
            amount=float(amounts[row]),
            elapsed_seconds=float(times[row]),
            features=tuple(float(v) for v in values[row]),
        )
        for row in range(len(df))
    ]
    if not has_label_column(df):
        return transactions

    labels = df[LABEL_COLUMN].to_numpy()
    return [
        LabeledTransaction(transaction=txn, is_fraud=bool(labels[row] == 1))
        for row, txn in enumerate(transactions)
    ]
