"""
Biomarker Analysis Unit

Scores lactic-acid molecular vibration patterns with a fixed
piecewise-linear model, then cross-checks the result against three
metabolic pattern signatures.
"""
from typing import Dict, List, Optional

from pragna.core.observation import Observation
from pragna.utils import get_logger
from .base import (
    InitializationGate,
    LatencyHook,
    Opinion,
    RiskCategory,
    no_delay,
)

logger = get_logger(__name__)

# ── Reference parameters: (threshold, baseline, weight) ─────────────────────
_REFERENCE_PATTERNS: Dict[str, Dict[str, float]] = {
    "carbonyl": {"threshold": 1.6, "baseline": 1.2, "weight": 1.3},
    "hydroxyl": {"threshold": 2.8, "baseline": 2.2, "weight": 1.2},
    "metabolic_imbalance": {"threshold": 0.5, "weight": 1.1},
    "carbon_oxygen": {"threshold": 3.2, "baseline": 2.8, "weight": 0.8},
}

# Score → category (strict lower bounds, checked in order)
_SCORE_BUCKETS = (
    (2.5, RiskCategory.HIGH),
    (1.5, RiskCategory.MODERATE_HIGH),
    (0.8, RiskCategory.MODERATE),
    (0.3, RiskCategory.LOW_MODERATE),
)

CONFIDENCE_CAP = 0.95


def metabolic_imbalance(observation: Observation) -> float:
    """|carbonyl/1.2 - methyl/1.8|, the normalised channel 0/1 mismatch."""
    return abs(observation.carbonyl / 1.2 - observation.methyl / 1.8)


class BiomarkerUnit:
    """
    Piecewise-linear biomarker scorer.

    Stateless after initialization; safe for concurrent requests.
    """

    name = "biomarker_analyst"
    display_name = "Biomarker Analyst"
    specialty = "Lactic Acid Molecular Pattern Analysis"

    def __init__(
        self,
        latency: Optional[LatencyHook] = None,
        init_latency: Optional[LatencyHook] = None,
    ):
        self._latency = latency or no_delay
        self._init_latency = init_latency or no_delay
        self._gate = InitializationGate(self.name)
        self._patterns: Dict[str, Dict[str, float]] = {}

    @property
    def is_initialized(self) -> bool:
        return self._gate.is_open

    async def initialize(self) -> None:
        await self._gate.open(self._load_reference_patterns)

    async def _load_reference_patterns(self) -> None:
        await self._init_latency(f"{self.name}.initialize")
        self._patterns = {key: dict(params) for key, params in _REFERENCE_PATTERNS.items()}

    async def analyze(self, observation: Observation) -> Opinion:
        self._gate.require()
        await self._latency(self.name)

        score = self.calculate_score(observation)
        pattern_match = self.pattern_consistency(observation)
        data_quality = 0.9 if observation.readings_in_range else 0.6
        strength = self.biomarker_strength(observation)
        confidence = min(
            CONFIDENCE_CAP,
            pattern_match * 0.4 + data_quality * 0.3 + strength * 0.3
        )
        category = self.score_to_category(score)
        logger.debug(f"{self.name}: score={score:.3f} pattern={pattern_match:.2f} -> {category.value}")

        return Opinion(
            unit=self.name,
            category=category,
            confidence=confidence,
            rationale=self._reasoning(observation, pattern_match),
            summary=f"Biomarker analysis complete - {category.value} risk identified",
            auxiliary={
                "score": score,
                "pattern_match": pattern_match,
                "data_quality": data_quality,
                "biomarker_strength": strength,
            },
        )

    def calculate_score(self, observation: Observation) -> float:
        """Sum the four threshold-gated contributions, floored at zero."""
        p = self._patterns
        score = 0.0

        carbonyl = p["carbonyl"]
        if observation.carbonyl > carbonyl["threshold"]:
            score += (observation.carbonyl - carbonyl["baseline"]) * carbonyl["weight"]

        hydroxyl = p["hydroxyl"]
        if observation.hydroxyl > hydroxyl["threshold"]:
            score += (observation.hydroxyl - hydroxyl["baseline"]) * hydroxyl["weight"]

        imbalance = metabolic_imbalance(observation)
        if imbalance > p["metabolic_imbalance"]["threshold"]:
            score += imbalance * p["metabolic_imbalance"]["weight"]

        carbon_oxygen = p["carbon_oxygen"]
        if observation.carbon_oxygen > carbon_oxygen["threshold"]:
            score += (observation.carbon_oxygen - carbon_oxygen["baseline"]) * carbon_oxygen["weight"]

        return max(0.0, score)

    @staticmethod
    def pattern_consistency(observation: Observation) -> float:
        """Fraction of the three metabolic signatures present: 0, 1/3, 2/3 or 1."""
        patterns = [
            observation.carbonyl > 1.5 and observation.hydroxyl > 2.5,      # Warburg effect
            observation.carbonyl > 1.3 and observation.carbon_oxygen > 3.0,  # metabolic stress
            metabolic_imbalance(observation) > 0.6,                          # imbalance
        ]
        return sum(patterns) / len(patterns)

    @staticmethod
    def biomarker_strength(observation: Observation) -> float:
        strength = 0.0
        strong_carbonyl = observation.carbonyl > 1.8
        strong_hydroxyl = observation.hydroxyl > 3.0
        if strong_carbonyl:
            strength += 0.4
        if strong_hydroxyl:
            strength += 0.4
        if strong_carbonyl and strong_hydroxyl:
            strength += 0.2
        return strength

    @staticmethod
    def score_to_category(score: float) -> RiskCategory:
        for threshold, category in _SCORE_BUCKETS:
            if score > threshold:
                return category
        return RiskCategory.LOW

    @staticmethod
    def _reasoning(observation: Observation, pattern_match: float) -> str:
        reasons: List[str] = []

        if observation.carbonyl > 1.6:
            reasons.append(
                f"Elevated carbonyl stretch ({observation.carbonyl} MHz) indicates potential Warburg effect"
            )
        if observation.hydroxyl > 2.8:
            reasons.append(
                f"High hydroxyl vibration ({observation.hydroxyl} MHz) suggests metabolic stress"
            )
        if pattern_match > 0.6:
            reasons.append(
                f"Strong pattern consistency ({round(pattern_match * 100)}%) with cancer metabolic signatures"
            )

        return ". ".join(reasons) if reasons else "No significant cancer biomarkers detected"
