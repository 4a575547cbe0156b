"""
Action Tier Classifier
======================

Assigns every scored transaction exactly one action tier using an ordered
decision list over the pattern score and the transaction amount. The first
matching rule wins:

    1. score > block_threshold and amount in pattern_amounts -> IMMEDIATE_BLOCK
    2. score > review_threshold and amount < small_amount_cutoff -> HIGH_PRIORITY_REVIEW
    3. score > monitor_threshold -> MONITOR_CLOSELY
    4. otherwise -> NORMAL_PROCESSING
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence

from .detection import to_cents
from .exceptions import ConfigurationError
from .scoring import ScoredTransaction


class Classification(Enum):
    """Action tiers, valued by severity."""

    NORMAL_PROCESSING = 0
    MONITOR_CLOSELY = 1
    HIGH_PRIORITY_REVIEW = 2
    IMMEDIATE_BLOCK = 3

    @classmethod
    def by_severity(cls) -> list:
        """Tiers from most to least severe."""
        return sorted(cls, key=lambda tier: tier.value, reverse=True)


REQUIRED_KEYS = (
    'block_threshold',
    'review_threshold',
    'monitor_threshold',
    'small_amount_cutoff',
    'pattern_amounts',
)


@dataclass(frozen=True)
class ClassifierConfig:
    """Calibrated thresholds and the exact-amount set used by the classifier."""

    block_threshold: Optional[float]
    review_threshold: Optional[float]
    monitor_threshold: Optional[float]
    small_amount_cutoff: Optional[float]
    pattern_amounts: frozenset = field(default_factory=frozenset)

    def __post_init__(self):
        if self.pattern_amounts is not None and not isinstance(self.pattern_amounts, frozenset):
            object.__setattr__(self, 'pattern_amounts', frozenset(float(a) for a in self.pattern_amounts))

    @property
    def pattern_cents(self) -> frozenset:
        return frozenset(to_cents(a) for a in self.pattern_amounts)

    def validate(self):
        """
        Check the configuration is complete.

        Raises:
            ConfigurationError: If a tier threshold or cutoff is missing,
                or the pattern amount set is empty
        """
        for name in REQUIRED_KEYS[:4]:
            if getattr(self, name) is None:
                raise ConfigurationError(f"Classifier configuration is missing '{name}'")
        if not self.pattern_amounts:
            raise ConfigurationError("Classifier pattern_amounts must not be empty")
        return self

    @classmethod
    def from_dict(cls, config: Mapping) -> 'ClassifierConfig':
        """Build a validated config from a mapping such as the YAML 'classifier' section."""
        missing = [key for key in REQUIRED_KEYS if key not in config or config[key] is None]
        if missing:
            raise ConfigurationError(f"Classifier configuration is missing {missing}")
        return cls(
            block_threshold=float(config['block_threshold']),
            review_threshold=float(config['review_threshold']),
            monitor_threshold=float(config['monitor_threshold']),
            small_amount_cutoff=float(config['small_amount_cutoff']),
            pattern_amounts=frozenset(float(a) for a in config['pattern_amounts']),
        ).validate()

    def to_dict(self) -> dict:
        return {
            'block_threshold': self.block_threshold,
            'review_threshold': self.review_threshold,
            'monitor_threshold': self.monitor_threshold,
            'small_amount_cutoff': self.small_amount_cutoff,
            'pattern_amounts': sorted(self.pattern_amounts),
        }


class Classifier:
    """Stateless decision list over ScoredTransaction values."""

    def __init__(self, config: ClassifierConfig):
        self.config = config.validate()
        self._pattern_cents = config.pattern_cents

    def classify(self, scored: ScoredTransaction) -> Classification:
        config = self.config
        score = scored.pattern_score
        amount = scored.amount

        if score > config.block_threshold and to_cents(amount) in self._pattern_cents:
            return Classification.IMMEDIATE_BLOCK
        if score > config.review_threshold and amount < config.small_amount_cutoff:
            return Classification.HIGH_PRIORITY_REVIEW
        if score > config.monitor_threshold:
            return Classification.MONITOR_CLOSELY
        return Classification.NORMAL_PROCESSING

    def classify_batch(self, scored: Sequence[ScoredTransaction]) -> list:
        return [self.classify(s) for s in scored]


def tier_counts(classifications: Iterable[Classification]) -> dict:
    """Count of transactions per tier, every tier present, most severe first."""
    counts = Counter(classifications)
    return {tier: counts.get(tier, 0) for tier in Classification.by_severity()}
