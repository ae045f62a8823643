"""
Clinical Consultation Unit

Correlates the two dominant readings with patient demographics and
produces an ordered list of follow-up recommendations.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pragna.core.observation import Gender, Observation
from pragna.utils import get_logger
from .base import (
    InitializationGate,
    LatencyHook,
    Opinion,
    RiskCategory,
    no_delay,
)

logger = get_logger(__name__)


class Urgency(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class ClinicalContext:
    """Demographic factors feeding the clinical score."""
    age_risk: float
    gender_factor: float
    data_completeness: float
    urgency: Urgency

    def to_dict(self) -> Dict[str, Any]:
        return {
            "age_risk": self.age_risk,
            "gender_factor": self.gender_factor,
            "data_completeness": round(self.data_completeness, 3),
            "urgency": self.urgency.value,
        }


# Clinical score → category (strict lower bounds)
_SCORE_BUCKETS = (
    (0.7, RiskCategory.HIGH),
    (0.5, RiskCategory.MODERATE_HIGH),
    (0.3, RiskCategory.MODERATE),
    (0.15, RiskCategory.LOW_MODERATE),
)

_ROUTINE_RECOMMENDATIONS = [
    "Routine health maintenance",
    "Annual metabolic screening",
]

DEFAULT_RECOMMENDATIONS: Dict[RiskCategory, List[str]] = {
    RiskCategory.HIGH: [
        "Immediate oncology consultation",
        "Comprehensive metabolic panel including LDH",
        "Diagnostic imaging (CT/MRI) within 48 hours",
    ],
    RiskCategory.MODERATE_HIGH: [
        "Specialist referral within 2 weeks",
        "Additional biomarker testing",
        "Follow-up spectroscopy in 1 month",
    ],
    RiskCategory.MODERATE: [
        "Primary care follow-up",
        "Lifestyle and dietary assessment",
        "Repeat screening in 3-6 months",
    ],
    RiskCategory.LOW_MODERATE: _ROUTINE_RECOMMENDATIONS,
    RiskCategory.LOW: _ROUTINE_RECOMMENDATIONS,
}

EXPEDITED_RECOMMENDATION = "Expedited evaluation recommended"
CONFIDENCE_CAP = 0.95


def age_risk(age: Optional[int]) -> float:
    if age is None:
        return 0.2
    if age > 65:
        return 0.8
    if age > 50:
        return 0.6
    if age > 40:
        return 0.4
    return 0.2


def gender_factor(gender: Optional[Gender]) -> float:
    # Female-specific prevalence of the screened cancers
    return 0.6 if gender == Gender.FEMALE else 0.5


def data_completeness(observation: Observation) -> float:
    completeness = 0.5  # readings are always present
    if observation.age is not None:
        completeness += 0.2
    if observation.gender:
        completeness += 0.2
    if observation.medical_history:
        completeness += 0.1
    return min(1.0, completeness)


def determine_urgency(observation: Observation) -> Urgency:
    if observation.carbonyl > 2.0 or observation.hydroxyl > 3.5:
        return Urgency.HIGH
    if observation.carbonyl > 1.6 or observation.hydroxyl > 2.8:
        return Urgency.MEDIUM
    return Urgency.LOW


class ClinicalContextUnit:
    """Clinical correlation of readings with age, gender and data completeness."""

    name = "clinical_consultant"
    display_name = "Clinical Consultant"
    specialty = "Clinical Correlation and Medical Context"

    def __init__(
        self,
        latency: Optional[LatencyHook] = None,
        init_latency: Optional[LatencyHook] = None,
    ):
        self._latency = latency or no_delay
        self._init_latency = init_latency or no_delay
        self._gate = InitializationGate(self.name)
        self._recommendations: Dict[RiskCategory, List[str]] = {}

    @property
    def is_initialized(self) -> bool:
        return self._gate.is_open

    async def initialize(self) -> None:
        await self._gate.open(self._load_guidelines)

    async def _load_guidelines(self) -> None:
        await self._init_latency(f"{self.name}.initialize")
        self._recommendations = {
            category: list(items) for category, items in DEFAULT_RECOMMENDATIONS.items()
        }

    async def analyze(self, observation: Observation) -> Opinion:
        self._gate.require()
        await self._latency(self.name)

        context = self.assess_context(observation)
        score, reasons = self.correlate(observation, context)
        category = self.score_to_category(score)
        if context.urgency == Urgency.HIGH:
            reasons.append("Clinical context suggests urgent evaluation needed")

        recommendations = self.recommendations(category, context.urgency)
        confidence = min(CONFIDENCE_CAP, context.data_completeness * 0.8 + 0.2)

        return Opinion(
            unit=self.name,
            category=category,
            confidence=confidence,
            rationale=". ".join(reasons) if reasons else "No clinically significant correlation found",
            summary=(
                f"Clinical correlation complete - {category.value} risk "
                f"with {len(recommendations)} recommendations"
            ),
            auxiliary={
                "clinical_score": score,
                "clinical_context": context.to_dict(),
                "urgency": context.urgency.value,
                "recommendations": recommendations,
            },
        )

    @staticmethod
    def assess_context(observation: Observation) -> ClinicalContext:
        return ClinicalContext(
            age_risk=age_risk(observation.age),
            gender_factor=gender_factor(observation.gender),
            data_completeness=data_completeness(observation),
            urgency=determine_urgency(observation),
        )

    @staticmethod
    def correlate(observation: Observation, context: ClinicalContext):
        """Return (clinical risk score, reasoning fragments)."""
        score = 0.0
        reasons: List[str] = []

        if observation.carbonyl > 1.8:
            score += 0.4
            reasons.append("Significantly elevated carbonyl suggests strong metabolic alteration")
        elif observation.carbonyl > 1.4:
            score += 0.2
            reasons.append("Moderate carbonyl elevation indicates metabolic changes")

        if observation.hydroxyl > 3.0:
            score += 0.3
            reasons.append("High hydroxyl levels correlate with cancer metabolic stress")

        score += context.age_risk * 0.2
        score += context.gender_factor * 0.1
        return score, reasons

    @staticmethod
    def score_to_category(score: float) -> RiskCategory:
        for threshold, category in _SCORE_BUCKETS:
            if score > threshold:
                return category
        return RiskCategory.LOW

    def recommendations(self, category: RiskCategory, urgency: Urgency) -> List[str]:
        items = list(self._recommendations[category])
        if urgency == Urgency.HIGH:
            items.append(EXPEDITED_RECOMMENDATION)
        return items
