"""
Probabilistic Risk Assessment Unit

Runs an internal ensemble of three sub-models concurrently and combines
them with its own weighted vote:

- Logistic:           sigmoid of a fixed linear model over the readings
- Threshold-rule:     additive feature bonuses with an interaction term
- Iterative-residual: five shrinkage steps toward a rule-based target
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
from scipy.special import expit

from pragna.core.observation import Observation
from pragna.utils import get_logger
from .base import (
    InitializationGate,
    LatencyHook,
    Opinion,
    agreement_score,
    category_from_probability,
    no_delay,
)

logger = get_logger(__name__)

# Internal ensemble vote, keyed by sub-model.
# Not the same table as consensus.CONSENSUS_WEIGHTS.
ENSEMBLE_WEIGHTS: Dict[str, float] = {
    "logistic_regression": 0.4,
    "threshold_rule": 0.35,
    "iterative_residual": 0.25,
}
DEFAULT_ENSEMBLE_WEIGHT = 0.33

_LOGISTIC_WEIGHTS = (0.35, 0.25, 0.20, 0.20)
_LOGISTIC_INTERCEPT = -2.5
_RESIDUAL_LEARNING_RATE = 0.1
_RESIDUAL_ITERATIONS = 5

# Static feature contribution estimate reported alongside the prediction
FEATURE_CONTRIBUTIONS: Dict[str, float] = {
    "carbonyl": 0.35,
    "hydroxyl": 0.28,
    "carbon_oxygen": 0.22,
    "methyl": 0.15,
}

CONFIDENCE_CAP = 0.95


@dataclass(frozen=True)
class SubModelPrediction:
    """Output of one ensemble member."""
    model: str
    probability: float
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "probability": round(self.probability, 4),
            "confidence": self.confidence,
        }


def logistic_probability(observation: Observation) -> float:
    linear = float(np.dot(_LOGISTIC_WEIGHTS, observation.readings)) + _LOGISTIC_INTERCEPT
    return float(expit(linear))


def threshold_rule_probability(observation: Observation) -> float:
    probability = 0.0

    if observation.carbonyl > 1.7:
        probability += 0.4
    elif observation.carbonyl > 1.3:
        probability += 0.2

    if observation.hydroxyl > 3.0:
        probability += 0.3
    elif observation.hydroxyl > 2.4:
        probability += 0.15

    # Interaction
    if observation.carbonyl > 1.7 and observation.hydroxyl > 3.0:
        probability += 0.2

    probability += 0.05  # base rate
    return min(0.95, probability)


def iterative_residual_probability(observation: Observation) -> float:
    target = (0.8 if observation.carbonyl > 1.6 else 0.2) + (0.6 if observation.hydroxyl > 2.8 else 0.2)
    prediction = 0.0
    for _ in range(_RESIDUAL_ITERATIONS):
        prediction += _RESIDUAL_LEARNING_RATE * (target - prediction)
    return float(expit(prediction))


class ProbabilisticRiskUnit:
    """Ensemble risk model with a second, internal weighted vote."""

    name = "risk_assessor"
    display_name = "Risk Assessor"
    specialty = "Quantitative Risk Modeling and Probability Calculation"

    def __init__(
        self,
        latency: Optional[LatencyHook] = None,
        init_latency: Optional[LatencyHook] = None,
    ):
        self._latency = latency or no_delay
        self._init_latency = init_latency or no_delay
        self._gate = InitializationGate(self.name)
        self._models: Dict[str, Any] = {}

    @property
    def is_initialized(self) -> bool:
        return self._gate.is_open

    async def initialize(self) -> None:
        await self._gate.open(self._load_models)

    async def _load_models(self) -> None:
        await self._init_latency(f"{self.name}.initialize")
        self._models = {
            "logistic_regression": (logistic_probability, 0.85),
            "threshold_rule": (threshold_rule_probability, 0.88),
            "iterative_residual": (iterative_residual_probability, 0.87),
        }

    async def analyze(self, observation: Observation) -> Opinion:
        self._gate.require()

        predictions = await self.run_ensemble(observation)
        probability = self.aggregate(predictions)
        agreement = agreement_score([p.probability for p in predictions])
        confidence = self.model_confidence(predictions, agreement)
        category = category_from_probability(probability)

        logger.debug(
            f"{self.name}: ensemble p={probability:.3f} agreement={agreement:.3f} "
            + ", ".join(f"{p.model}={p.probability:.3f}" for p in predictions)
        )

        return Opinion(
            unit=self.name,
            category=category,
            confidence=confidence,
            rationale=self._reasoning(probability, agreement, predictions),
            summary=f"Risk assessment complete - {round(probability * 100)}% cancer probability",
            auxiliary={
                "probability": probability,
                "model_agreement": agreement,
                "sub_models": [p.to_dict() for p in predictions],
                "feature_contributions": dict(FEATURE_CONTRIBUTIONS),
            },
        )

    async def run_ensemble(self, observation: Observation) -> List[SubModelPrediction]:
        """Run every sub-model as its own task and wait for all of them."""
        tasks = [
            self._run_sub_model(model, observation)
            for model in self._models
        ]
        return list(await asyncio.gather(*tasks))

    async def _run_sub_model(self, model: str, observation: Observation) -> SubModelPrediction:
        predict, base_confidence = self._models[model]
        await self._latency(f"{self.name}.{model}")
        return SubModelPrediction(
            model=model,
            probability=predict(observation),
            confidence=base_confidence,
        )

    @staticmethod
    def aggregate(predictions: List[SubModelPrediction]) -> float:
        weights = np.array(
            [ENSEMBLE_WEIGHTS.get(p.model, DEFAULT_ENSEMBLE_WEIGHT) for p in predictions],
            dtype=float,
        )
        probabilities = np.array([p.probability for p in predictions], dtype=float)
        return float(np.dot(weights, probabilities) / weights.sum())

    @staticmethod
    def model_confidence(predictions: List[SubModelPrediction], agreement: float) -> float:
        base = float(np.mean([p.confidence for p in predictions]))
        return min(CONFIDENCE_CAP, base * 0.7 + agreement * 0.3)

    @staticmethod
    def _reasoning(
        probability: float,
        agreement: float,
        predictions: List[SubModelPrediction],
    ) -> str:
        strongest = max(predictions, key=lambda p: p.probability)
        return (
            f"Ensemble of {len(predictions)} risk models estimates "
            f"{round(probability * 100)}% probability with "
            f"{round(agreement * 100)}% model agreement. "
            f"Highest individual estimate from {strongest.model.replace('_', ' ')} "
            f"({round(strongest.probability * 100)}%)"
        )
