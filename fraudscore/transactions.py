"""
Transaction Records
===================

Immutable transaction records consumed by the scoring core.
"""

import math
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class Transaction:
    """
    A single card transaction.

    Attributes:
        transaction_id: Unique, stable identifier
        amount: Non-negative monetary amount
        elapsed_seconds: Seconds since the start of the capture window
        features: Anonymized numeric features, addressed 1..N
    """

    transaction_id: object
    amount: float
    elapsed_seconds: float
    features: tuple = ()

    def __post_init__(self):
        if not math.isfinite(self.amount) or self.amount < 0:
            raise ValueError(f"Invalid amount for transaction {self.transaction_id}: {self.amount}")
        if not math.isfinite(self.elapsed_seconds) or self.elapsed_seconds < 0:
            raise ValueError(
                f"Invalid elapsed time for transaction {self.transaction_id}: {self.elapsed_seconds}"
            )
        if not isinstance(self.features, tuple):
            object.__setattr__(self, 'features', tuple(float(v) for v in self.features))
        if not all(math.isfinite(v) for v in self.features):
            raise ValueError(f"Non-finite feature value for transaction {self.transaction_id}")

    @property
    def n_features(self) -> int:
        return len(self.features)

    def feature(self, index: int) -> float:
        """Return feature ``index`` (1-based, V1 is index 1)."""
        if index < 1 or index > len(self.features):
            raise IndexError(f"Feature index {index} out of range 1..{len(self.features)}")
        return self.features[index - 1]


@dataclass(frozen=True)
class LabeledTransaction:
    """A transaction paired with its ground-truth fraud flag."""

    transaction: Transaction
    is_fraud: bool

    @property
    def transaction_id(self):
        return self.transaction.transaction_id

    @property
    def amount(self) -> float:
        return self.transaction.amount

    @property
    def elapsed_seconds(self) -> float:
        return self.transaction.elapsed_seconds

    @property
    def features(self) -> tuple:
        return self.transaction.features

    @property
    def n_features(self) -> int:
        return self.transaction.n_features

    def feature(self, index: int) -> float:
        return self.transaction.feature(index)


def unlabel(batch: Sequence) -> list:
    """Strip fraud labels, returning plain transactions."""
    return [t.transaction if isinstance(t, LabeledTransaction) else t for t in batch]


def labels_of(batch: Sequence[LabeledTransaction]) -> list:
    """Return the fraud flags of a labeled batch, in order."""
    return [bool(t.is_fraud) for t in batch]


def has_labels(batch: Sequence) -> bool:
    """True when every record in a non-empty batch carries a fraud label."""
    return bool(batch) and all(isinstance(t, LabeledTransaction) for t in batch)
