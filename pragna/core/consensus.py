"""
Weighted Consensus Aggregation

Combines the opinions of the voting scoring units into one
probability / confidence / agreement triple.

The data-quality unit reports on data fitness, not on risk, and is
therefore excluded from the vote.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Tuple

import numpy as np

from pragna.core.units.base import (
    Opinion,
    RiskCategory,
    agreement_score,
    category_from_probability,
    category_label,
)
from pragna.utils import get_logger, ConsensusUnavailable

logger = get_logger(__name__)

# Risk bucket → probability
RISK_PROBABILITY: Dict[RiskCategory, float] = {
    RiskCategory.HIGH: 0.85,
    RiskCategory.MODERATE_HIGH: 0.65,
    RiskCategory.MODERATE: 0.45,
    RiskCategory.LOW_MODERATE: 0.25,
    RiskCategory.LOW: 0.10,
}
UNKNOWN_CATEGORY_PROBABILITY = 0.5

# Top-level vote weights, keyed by unit identifier.
# Not the same table as the risk assessor's internal ENSEMBLE_WEIGHTS.
CONSENSUS_WEIGHTS: Dict[str, float] = {
    "biomarker_analyst": 0.4,
    "clinical_consultant": 0.35,
    "risk_assessor": 0.25,
}
DEFAULT_CONSENSUS_WEIGHT = 0.3

# Units whose opinions never vote
NON_VOTING_UNITS = frozenset({"data_validator"})


def risk_to_probability(category: Any) -> float:
    try:
        return RISK_PROBABILITY[RiskCategory(category)]
    except (KeyError, ValueError):
        return UNKNOWN_CATEGORY_PROBABILITY


@dataclass(frozen=True)
class ConsensusResult:
    """Result of the weighted multi-unit vote."""
    probability: float
    confidence: float
    category: RiskCategory
    agreement: float
    contributors: Tuple[str, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "probability": round(self.probability, 4),
            "probability_percent": round(self.probability * 100),
            "confidence": round(self.confidence, 4),
            "risk_category": self.category.value,
            "agreement": round(self.agreement, 4),
            "contributors": list(self.contributors),
            "timestamp": self.created_at.isoformat(),
        }


class ConsensusAggregator:
    """
    Weighted consensus over unit opinions.

    Stateless; the same instance may serve concurrent requests.
    """

    def __init__(
        self,
        weights: Mapping[str, float] = CONSENSUS_WEIGHTS,
        default_weight: float = DEFAULT_CONSENSUS_WEIGHT,
    ):
        self.weights = dict(weights)
        self.default_weight = default_weight

    def weight_for(self, unit: str) -> float:
        return self.weights.get(unit, self.default_weight)

    @staticmethod
    def voting_opinions(opinions: Iterable[Opinion]) -> List[Opinion]:
        return [op for op in opinions if op.unit not in NON_VOTING_UNITS]

    def aggregate(self, opinions: Iterable[Opinion]) -> ConsensusResult:
        """
        Compute the consensus of the voting opinions.

        Args:
            opinions: Successful opinions in any order. Non-voting units
                      are filtered out here.

        Returns:
            ConsensusResult

        Raises:
            ConsensusUnavailable: if no voting opinion remains.
        """
        voters = self.voting_opinions(opinions)
        if not voters:
            raise ConsensusUnavailable()

        # Fixed summation order makes the result independent of completion order
        voters.sort(key=lambda op: (
            op.unit,
            risk_to_probability(op.category),
            category_label(op.category),
            op.confidence,
        ))

        weights = np.array([self.weight_for(op.unit) for op in voters], dtype=float)
        probabilities = np.array([risk_to_probability(op.category) for op in voters], dtype=float)
        confidences = np.array([op.confidence for op in voters], dtype=float)

        if len(voters) == 1:
            probability = float(probabilities[0])
            confidence = float(confidences[0])
        else:
            # Dividing by the weights actually present normalises implicitly
            total_weight = float(weights.sum())
            probability = float(np.dot(weights, probabilities)) / total_weight
            confidence = float(np.dot(weights, confidences)) / total_weight

        # Guard the [0, 1] bounds against floating-point drift
        probability = min(1.0, max(0.0, probability))
        confidence = min(1.0, max(0.0, confidence))

        result = ConsensusResult(
            probability=probability,
            confidence=confidence,
            category=category_from_probability(probability),
            agreement=agreement_score(probabilities.tolist()),
            contributors=tuple(sorted(op.unit for op in voters)),
        )
        logger.info(
            f"Consensus from {len(voters)} opinion(s): {result.category.value} "
            f"p={result.probability:.3f} conf={result.confidence:.3f} "
            f"agreement={result.agreement:.3f}"
        )
        return result
