"""
Shared fixtures for fraudscore tests.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fraudscore.transactions import LabeledTransaction, Transaction


def make_labeled(transaction_id, amount, features, is_fraud=False, elapsed_seconds=0.0):
    """Build a LabeledTransaction from plain values."""
    return LabeledTransaction(
        transaction=Transaction(
            transaction_id=transaction_id,
            amount=amount,
            elapsed_seconds=elapsed_seconds,
            features=tuple(features),
        ),
        is_fraud=is_fraud,
    )


@pytest.fixture
def scenario_batch():
    """Three transactions with one feature: values [0, 0, 50]."""
    return [
        make_labeled(1, 1.00, [0.0]),
        make_labeled(2, 50.00, [0.0]),
        make_labeled(3, 1200.00, [50.0]),
    ]


@pytest.fixture
def random_batch():
    """Seeded batch of 200 normal and 5 injected fraud transactions, 6 features."""
    rng = np.random.default_rng(42)
    batch = []
    for i in range(200):
        batch.append(make_labeled(
            i,
            float(round(rng.uniform(1, 300), 2)),
            rng.normal(0, 1, 6).tolist(),
            is_fraud=False,
            elapsed_seconds=float(rng.uniform(0, 172800)),
        ))
    for i in range(200, 205):
        features = rng.normal(0, 1, 6).tolist()
        features[2] = 10.0
        batch.append(make_labeled(i, 1.00, features, is_fraud=True,
                                  elapsed_seconds=float(rng.uniform(0, 172800))))
    return batch


def make_creditcard_frame(n_normal=300, n_fraud=6, n_features=28, seed=7):
    """Synthetic frame in the Kaggle creditcard.csv layout."""
    rng = np.random.default_rng(seed)
    n = n_normal + n_fraud
    data = {'Time': np.sort(rng.uniform(0, 172800, n))}
    for i in range(1, n_features + 1):
        data[f'V{i}'] = rng.normal(0, 1, n)
    data['Amount'] = np.round(rng.uniform(1, 500, n), 2)
    data['Class'] = np.array([0] * n_normal + [1] * n_fraud)

    df = pd.DataFrame(data)
    fraud_rows = df.index[df['Class'] == 1]
    df.loc[fraud_rows, 'V3'] = -12.0
    df.loc[fraud_rows[:3], 'Amount'] = 1.00
    df.loc[fraud_rows[3:], 'Amount'] = 5.50
    return df
