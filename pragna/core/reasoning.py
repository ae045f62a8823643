"""
Chain-of-Thought Reasoning

Five-stage explanation of an observation, run after consensus:

    DATA_QUALITY          -> input quality and completeness
    PATTERN_RECOGNITION   -> four molecular vibration signatures
    BIOMARKER_CORRELATION -> carbonyl / hydroxyl significance levels
    METABOLIC_ANALYSIS    -> affected metabolic pathways
    CLINICAL_SIGNIFICANCE -> comprehensive risk, urgency, follow-up

Each stage writes a start and a completion step to the request trace.
The reasoner explains; it never votes and never changes the consensus.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pragna.core.observation import CHANNEL_RANGES, Channel, Observation
from pragna.core.trace import ReasoningTrace
from pragna.core.units.base import LatencyHook, RiskCategory, deep_freeze, no_delay
from pragna.core.units.biomarker import metabolic_imbalance
from pragna.core.units.clinical import (
    DEFAULT_RECOMMENDATIONS,
    EXPEDITED_RECOMMENDATION,
    Urgency,
    data_completeness,
    determine_urgency,
)
from pragna.utils import get_logger

logger = get_logger(__name__)


class ReasoningStage(str, Enum):
    DATA_QUALITY = "DATA_QUALITY"
    PATTERN_RECOGNITION = "PATTERN_RECOGNITION"
    BIOMARKER_CORRELATION = "BIOMARKER_CORRELATION"
    METABOLIC_ANALYSIS = "METABOLIC_ANALYSIS"
    CLINICAL_SIGNIFICANCE = "CLINICAL_SIGNIFICANCE"


STAGE_DESCRIPTIONS: Dict[ReasoningStage, str] = {
    ReasoningStage.DATA_QUALITY: "Assessing input data quality and completeness",
    ReasoningStage.PATTERN_RECOGNITION: "Identifying molecular vibration patterns",
    ReasoningStage.BIOMARKER_CORRELATION: "Correlating patterns with known cancer biomarkers",
    ReasoningStage.METABOLIC_ANALYSIS: "Analyzing implications for cellular metabolism",
    ReasoningStage.CLINICAL_SIGNIFICANCE: "Evaluating clinical relevance and risk assessment",
}

# Fixed per-stage confidence
STAGE_CONFIDENCE: Dict[ReasoningStage, float] = {
    ReasoningStage.DATA_QUALITY: 0.92,
    ReasoningStage.PATTERN_RECOGNITION: 0.88,
    ReasoningStage.BIOMARKER_CORRELATION: 0.85,
    ReasoningStage.METABOLIC_ANALYSIS: 0.83,
    ReasoningStage.CLINICAL_SIGNIFICANCE: 0.90,
}

# Comprehensive risk → category (strict lower bounds)
_RISK_BUCKETS = (
    (0.8, RiskCategory.HIGH),
    (0.6, RiskCategory.MODERATE_HIGH),
    (0.4, RiskCategory.MODERATE),
    (0.2, RiskCategory.LOW_MODERATE),
)


@dataclass(frozen=True)
class StageResult:
    """Outcome of one reasoning stage."""
    stage: ReasoningStage
    description: str
    finding: str
    analysis: Mapping[str, Any]
    confidence: float
    duration_ms: float

    def __post_init__(self):
        object.__setattr__(self, "analysis", deep_freeze(self.analysis))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.stage.value,
            "description": self.description,
            "finding": self.finding,
            "analysis": _plain(self.analysis),
            "confidence": self.confidence,
            "duration_ms": round(self.duration_ms, 3),
        }


@dataclass(frozen=True)
class ReasoningSummary:
    """All stage results of one chain, in execution order."""
    stages: Tuple[StageResult, ...] = field(default_factory=tuple)

    @property
    def total_duration_ms(self) -> float:
        return sum(s.duration_ms for s in self.stages)

    @property
    def final_assessment(self) -> Optional[Mapping[str, Any]]:
        return self.stages[-1].analysis if self.stages else None

    def stage(self, stage: ReasoningStage) -> Optional[StageResult]:
        for result in self.stages:
            if result.stage == stage:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_steps": len(self.stages),
            "total_duration_ms": round(self.total_duration_ms, 3),
            "steps": [s.to_dict() for s in self.stages],
            "final_assessment": _plain(self.final_assessment),
        }


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


# ──────────────────────────────────────────────────────────────────────────
# Stage helpers
# ──────────────────────────────────────────────────────────────────────────

def data_quality_score(observation: Observation) -> float:
    return 0.95 if observation.readings_in_range else 0.75


def data_issues(observation: Observation) -> List[str]:
    issues = []
    for channel, value, (low, high) in zip(Channel, observation.readings, CHANNEL_RANGES):
        if not low <= value <= high:
            issues.append(f"{channel.name.lower()} reading {value} outside [{low}, {high}]")
    if observation.age is None:
        issues.append("age missing")
    if observation.gender is None:
        issues.append("gender missing")
    return issues


def recognize_patterns(observation: Observation) -> Dict[str, bool]:
    """The four metabolic vibration signatures."""
    c0, c2, c3 = observation.carbonyl, observation.carbon_oxygen, observation.hydroxyl
    return {
        "warburg_effect": c0 > 1.6 and c3 > 2.5,
        "metabolic_stress": c0 > 1.4 and c2 > 3.0,
        "energy_imbalance": metabolic_imbalance(observation) > 0.5,
        "oxidative_shift": c3 > 2.8 and c2 > 3.2,
    }


def pattern_strength(patterns: Mapping[str, bool]) -> float:
    if not patterns:
        return 0.0
    return sum(1 for detected in patterns.values() if detected) / len(patterns)


def carbonyl_significance(value: float) -> Tuple[str, str]:
    if value > 1.8:
        return "HIGH", "Strong indicator of Warburg effect"
    if value > 1.5:
        return "MEDIUM", "Moderate metabolic alteration"
    return "LOW", "Within normal metabolic range"


def hydroxyl_significance(value: float) -> Tuple[str, str]:
    if value > 3.0:
        return "HIGH", "Marked hydroxyl vibration suggests metabolic stress"
    if value > 2.8:
        return "MEDIUM", "Mild hydroxyl elevation"
    return "LOW", "Within normal metabolic range"


def affected_pathways(observation: Observation) -> List[str]:
    pathways = []
    glycolytic = observation.carbonyl > 1.6
    oxidative = observation.hydroxyl > 2.8
    if glycolytic:
        pathways.append("Glycolytic Flux")
    if oxidative:
        pathways.append("Oxidative Phosphorylation")
    if glycolytic and oxidative:
        pathways.append("Warburg Metabolism")
    return pathways


def comprehensive_risk(observation: Observation) -> float:
    """
    Weighted blend of carbonyl excess, hydroxyl excess, metabolic
    imbalance and pattern strength, capped at 1.
    """
    risk = max(0.0, (observation.carbonyl - 1.2) / 0.8) * 0.4
    risk += max(0.0, (observation.hydroxyl - 2.2) / 1.0) * 0.3
    risk += min(1.0, metabolic_imbalance(observation)) * 0.2
    risk += pattern_strength(recognize_patterns(observation)) * 0.1
    return min(1.0, risk)


def risk_level(risk: float) -> RiskCategory:
    for threshold, category in _RISK_BUCKETS:
        if risk > threshold:
            return category
    return RiskCategory.LOW


# ──────────────────────────────────────────────────────────────────────────
# Stages: each returns (analysis, one-line finding)
# ──────────────────────────────────────────────────────────────────────────

StageFn = Callable[[Observation], Tuple[Dict[str, Any], str]]


def assess_data_quality(observation: Observation) -> Tuple[Dict[str, Any], str]:
    score = data_quality_score(observation)
    issues = data_issues(observation)
    analysis = {
        "quality_score": score,
        "issues": issues,
        "completeness": data_completeness(observation),
    }
    return analysis, f"quality {round(score * 100)}% with {len(issues)} issue(s)"


def assess_patterns(observation: Observation) -> Tuple[Dict[str, Any], str]:
    patterns = recognize_patterns(observation)
    detected = [name for name, present in patterns.items() if present]
    analysis = {
        "detected_patterns": detected,
        "pattern_strength": pattern_strength(patterns),
    }
    finding = (
        f"detected {', '.join(p.replace('_', ' ') for p in detected)}"
        if detected else "no metabolic signature detected"
    )
    return analysis, finding


def correlate_biomarkers(observation: Observation) -> Tuple[Dict[str, Any], str]:
    levels = {
        "carbonyl": carbonyl_significance(observation.carbonyl),
        "hydroxyl": hydroxyl_significance(observation.hydroxyl),
    }
    significant = [name for name, (level, _) in levels.items() if level != "LOW"]
    analysis = {
        "correlations": {
            name: {"significance": level, "reasoning": reasoning}
            for name, (level, reasoning) in levels.items()
        },
        "metabolic_imbalance": metabolic_imbalance(observation),
        "significant_biomarkers": significant,
        "correlation_strength": len(significant) / len(levels),
    }
    carbonyl_level, carbonyl_reason = levels["carbonyl"]
    return analysis, f"carbonyl significance {carbonyl_level} ({carbonyl_reason})"


def analyze_pathways(observation: Observation) -> Tuple[Dict[str, Any], str]:
    pathways = affected_pathways(observation)
    analysis = {
        "affected_pathways": pathways,
        "metabolic_shift": len(pathways) / 3,
        "energy_production": "glycolysis-dominant" if observation.carbonyl > 1.6 else "balanced",
    }
    finding = ", ".join(pathways) if pathways else "no pathway disruption indicated"
    return analysis, finding


def evaluate_clinical_significance(observation: Observation) -> Tuple[Dict[str, Any], str]:
    risk = comprehensive_risk(observation)
    level = risk_level(risk)
    urgency = determine_urgency(observation)
    actions = list(DEFAULT_RECOMMENDATIONS[level])
    if urgency == Urgency.HIGH:
        actions.append(EXPEDITED_RECOMMENDATION)
    analysis = {
        "comprehensive_risk": risk,
        "risk_level": level,
        "clinical_urgency": urgency,
        "follow_up_actions": actions,
    }
    return analysis, f"{level.value} risk ({round(risk * 100)}%), {urgency.value.lower()} urgency"


REASONING_CHAIN: Tuple[Tuple[ReasoningStage, StageFn], ...] = (
    (ReasoningStage.DATA_QUALITY, assess_data_quality),
    (ReasoningStage.PATTERN_RECOGNITION, assess_patterns),
    (ReasoningStage.BIOMARKER_CORRELATION, correlate_biomarkers),
    (ReasoningStage.METABOLIC_ANALYSIS, analyze_pathways),
    (ReasoningStage.CLINICAL_SIGNIFICANCE, evaluate_clinical_significance),
)


class ChainOfThoughtReasoner:
    """
    Runs the reasoning chain sequentially, tracing every stage.

    Stateless between calls; one instance may serve concurrent requests.
    """

    source = "reasoning_engine"

    def __init__(self, latency: Optional[LatencyHook] = None):
        self._latency = latency or no_delay

    async def explain(self, observation: Observation, trace: ReasoningTrace) -> ReasoningSummary:
        """
        Run all five stages over one observation.

        Args:
            observation: Observation being explained
            trace: Request trace; each stage appends a start and a completion step

        Returns:
            ReasoningSummary with one StageResult per stage
        """
        results = []
        for stage, run_stage in REASONING_CHAIN:
            description = STAGE_DESCRIPTIONS[stage]
            trace.append(self.source, f"{stage.value}: {description}")

            t0 = time.time()
            await self._latency(f"{self.source}.{stage.value.lower()}")
            analysis, finding = run_stage(observation)
            duration_ms = (time.time() - t0) * 1000

            results.append(StageResult(
                stage=stage,
                description=description,
                finding=finding,
                analysis=analysis,
                confidence=STAGE_CONFIDENCE[stage],
                duration_ms=duration_ms,
            ))
            trace.append(self.source, f"{stage.value} completed: {finding}")
            logger.debug(f"{stage.value} completed in {duration_ms:.2f}ms")

        summary = ReasoningSummary(stages=tuple(results))
        logger.info(
            f"Chain-of-thought complete: {len(results)} stage(s), "
            f"{summary.final_assessment['risk_level'].value} comprehensive risk"
        )
        return summary
