"""
Data Validation Unit

Checks an observation for fitness of use before any risk is scored.
NO risk judgment: the unit's own category is always LOW, and every
finding is reported in-band as a ValidationFailure record.

Four equally weighted sub-scores:
- range:           each reading finite, positive and inside its channel range
- demographics:    age present and within bounds, gender present
- cross_channel:   carbonyl vs carbon-oxygen and carbonyl vs hydroxyl relations
- age_consistency: age-conditioned plausibility of the carbonyl reading
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from pragna.core.observation import CHANNEL_RANGES, Channel, Observation
from pragna.utils import get_logger
from .base import (
    InitializationGate,
    LatencyHook,
    Opinion,
    RiskCategory,
    no_delay,
)

logger = get_logger(__name__)

AGE_BOUNDS = (1, 120)
MAX_CARBONYL_TO_CARBON_OXYGEN = 1.5  # carbonyl may exceed carbon-oxygen by at most 50%
MAX_CARBONYL_HYDROXYL_GAP = 2.0
YOUNG_PATIENT_AGE = 30
YOUNG_PATIENT_MAX_CARBONYL = 2.0
CONFIDENCE_CAP = 0.95


class IssueSeverity(str, Enum):
    """Severity of a data-quality finding."""
    WARNING = "warning"     # plausibility / consistency
    CRITICAL = "critical"   # outside allowed bounds, missing, non-positive


@dataclass(frozen=True)
class ValidationFailure:
    """A single in-band data-quality finding."""
    field: str
    severity: IssueSeverity
    message: str
    actual_value: Optional[Any] = None
    expected_range: Optional[Tuple[float, float]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "severity": self.severity.value,
            "message": self.message,
            "actual_value": self.actual_value,
            "expected_range": list(self.expected_range) if self.expected_range else None,
        }


@dataclass
class QualityAssessment:
    """Sub-scores and findings for one observation."""
    sub_scores: Dict[str, float] = field(default_factory=dict)
    issues: List[ValidationFailure] = field(default_factory=list)

    @property
    def quality_score(self) -> float:
        if not self.sub_scores:
            return 0.0
        return float(np.mean(list(self.sub_scores.values())))

    @property
    def critical_issues(self) -> List[ValidationFailure]:
        return [i for i in self.issues if i.severity == IssueSeverity.CRITICAL]

    @property
    def warnings(self) -> List[ValidationFailure]:
        return [i for i in self.issues if i.severity == IssueSeverity.WARNING]

    @property
    def is_valid(self) -> bool:
        return not self.critical_issues

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quality_score": round(self.quality_score, 3),
            "sub_scores": {k: round(v, 3) for k, v in self.sub_scores.items()},
            "is_valid": self.is_valid,
            "critical_count": len(self.critical_issues),
            "warning_count": len(self.warnings),
            "issues": [i.to_dict() for i in self.issues],
        }


class DataQualityUnit:
    """
    Validates observation data quality.

    Reports on data fitness only; never raises for bad data.
    """

    name = "data_validator"
    display_name = "Data Validator"
    specialty = "Input Data Quality and Plausibility"

    def __init__(
        self,
        latency: Optional[LatencyHook] = None,
        init_latency: Optional[LatencyHook] = None,
    ):
        self._latency = latency or no_delay
        self._init_latency = init_latency or no_delay
        self._gate = InitializationGate(self.name)
        self._ranges: Tuple[Tuple[float, float], ...] = ()

    @property
    def is_initialized(self) -> bool:
        return self._gate.is_open

    async def initialize(self) -> None:
        await self._gate.open(self._load_ranges)

    async def _load_ranges(self) -> None:
        await self._init_latency(f"{self.name}.initialize")
        self._ranges = tuple(CHANNEL_RANGES)

    async def analyze(self, observation: Observation) -> Opinion:
        self._gate.require()
        await self._latency(self.name)

        assessment = self.assess(observation)
        score = assessment.quality_score

        if assessment.issues:
            logger.info(
                f"{self.name}: quality={score:.2f} "
                f"({len(assessment.critical_issues)} critical, {len(assessment.warnings)} warning)"
            )

        return Opinion(
            unit=self.name,
            category=RiskCategory.LOW,
            confidence=min(CONFIDENCE_CAP, score),
            rationale=self._reasoning(assessment),
            summary=(
                f"Data validation complete - quality {round(score * 100)}% "
                f"with {len(assessment.issues)} issue(s)"
            ),
            auxiliary=assessment.to_dict(),
        )

    def assess(self, observation: Observation) -> QualityAssessment:
        assessment = QualityAssessment()
        assessment.sub_scores["range"] = self._check_ranges(observation, assessment.issues)
        assessment.sub_scores["demographics"] = self._check_demographics(observation, assessment.issues)
        assessment.sub_scores["cross_channel"] = self._check_cross_channel(observation, assessment.issues)
        assessment.sub_scores["age_consistency"] = self._check_age_consistency(observation, assessment.issues)
        return assessment

    def _check_ranges(self, observation: Observation, issues: List[ValidationFailure]) -> float:
        passed = 0
        for channel, value, (low, high) in zip(Channel, observation.readings, self._ranges):
            label = channel.name.lower()
            if not math.isfinite(value) or value <= 0:
                issues.append(ValidationFailure(
                    field=label,
                    severity=IssueSeverity.CRITICAL,
                    message=f"{label} reading must be positive, got {value}",
                    actual_value=value,
                    expected_range=(low, high),
                ))
            elif not low <= value <= high:
                issues.append(ValidationFailure(
                    field=label,
                    severity=IssueSeverity.CRITICAL,
                    message=f"{label} reading {value} outside plausible range [{low}, {high}]",
                    actual_value=value,
                    expected_range=(low, high),
                ))
            else:
                passed += 1
        return passed / len(self._ranges)

    @staticmethod
    def _check_demographics(observation: Observation, issues: List[ValidationFailure]) -> float:
        passed = 0
        low, high = AGE_BOUNDS

        if observation.age is None:
            issues.append(ValidationFailure(
                field="age",
                severity=IssueSeverity.CRITICAL,
                message="Patient age is missing",
            ))
        elif not low <= observation.age <= high:
            issues.append(ValidationFailure(
                field="age",
                severity=IssueSeverity.CRITICAL,
                message=f"Patient age {observation.age} outside allowed range [{low}, {high}]",
                actual_value=observation.age,
                expected_range=(low, high),
            ))
        else:
            passed += 1

        if observation.gender is None:
            issues.append(ValidationFailure(
                field="gender",
                severity=IssueSeverity.CRITICAL,
                message="Patient gender is missing",
            ))
        else:
            passed += 1

        return passed / 2

    @staticmethod
    def _check_cross_channel(observation: Observation, issues: List[ValidationFailure]) -> float:
        passed = 0

        if observation.carbonyl > observation.carbon_oxygen * MAX_CARBONYL_TO_CARBON_OXYGEN:
            issues.append(ValidationFailure(
                field="carbonyl_stretch",
                severity=IssueSeverity.WARNING,
                message=(
                    f"Carbonyl reading {observation.carbonyl} exceeds carbon-oxygen "
                    f"reading {observation.carbon_oxygen} by more than 50%"
                ),
                actual_value=observation.carbonyl,
            ))
        else:
            passed += 1

        gap = abs(observation.carbonyl - observation.hydroxyl)
        if gap > MAX_CARBONYL_HYDROXYL_GAP:
            issues.append(ValidationFailure(
                field="hydroxyl_stretch",
                severity=IssueSeverity.WARNING,
                message=f"Carbonyl/hydroxyl gap {gap:.2f} exceeds {MAX_CARBONYL_HYDROXYL_GAP}",
                actual_value=round(gap, 4),
            ))
        else:
            passed += 1

        return passed / 2

    @staticmethod
    def _check_age_consistency(observation: Observation, issues: List[ValidationFailure]) -> float:
        if observation.age is None:
            return 1.0
        if observation.age < YOUNG_PATIENT_AGE and observation.carbonyl > YOUNG_PATIENT_MAX_CARBONYL:
            issues.append(ValidationFailure(
                field="carbonyl_stretch",
                severity=IssueSeverity.WARNING,
                message=(
                    f"Carbonyl reading {observation.carbonyl} is atypical for a patient "
                    f"under {YOUNG_PATIENT_AGE}; consider re-measurement"
                ),
                actual_value=observation.carbonyl,
            ))
            return 0.0
        return 1.0

    @staticmethod
    def _reasoning(assessment: QualityAssessment) -> str:
        if not assessment.issues:
            return "All readings and demographics passed validation"
        parts = [issue.message for issue in assessment.critical_issues]
        parts.extend(issue.message for issue in assessment.warnings)
        return ". ".join(parts)
