"""
Diagnosis Report

Terminal artifact of one request: the consensus, every successful
opinion, every unit failure, the full reasoning trace and, when the
chain-of-thought stage ran, its stage-by-stage explanation.
Built once, then immutable; to_dict() is JSON-serialisable.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from pragna.core.consensus import ConsensusResult
from pragna.core.reasoning import ReasoningSummary
from pragna.core.trace import TraceStep
from pragna.core.units.base import Opinion
from pragna.utils import UnitFailure

RESEARCH_DISCLAIMER = (
    "THIS ANALYSIS IS FOR RESEARCH PURPOSES ONLY - NOT FOR MEDICAL DIAGNOSIS"
)


@dataclass(frozen=True)
class DiagnosisReport:
    """Consensus plus the evidence behind it."""
    consensus: ConsensusResult
    opinions: Tuple[Opinion, ...]
    trace: Tuple[TraceStep, ...]
    system_version: str
    failures: Tuple[Tuple[str, UnitFailure], ...] = ()
    reasoning: Optional[ReasoningSummary] = None
    display_names: Mapping[str, str] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def opinion_for(self, unit: str) -> Optional[Opinion]:
        for opinion in self.opinions:
            if opinion.unit == unit:
                return opinion
        return None

    @property
    def data_quality(self) -> Optional[Mapping[str, Any]]:
        """Data-validator findings, if that unit ran successfully."""
        opinion = self.opinion_for("data_validator")
        return opinion.auxiliary if opinion else None

    def to_dict(self) -> Dict[str, Any]:
        opinions = []
        for opinion in self.opinions:
            entry = opinion.to_dict()
            entry["display_name"] = self.display_names.get(opinion.unit, opinion.unit)
            opinions.append(entry)

        return {
            "risk_category": self.consensus.category.value,
            "probability": round(self.consensus.probability, 4),
            "probability_percent": round(self.consensus.probability * 100),
            "confidence": round(self.consensus.confidence, 4),
            "agreement": round(self.consensus.agreement, 4),
            "consensus": self.consensus.to_dict(),
            "opinions": opinions,
            "failures": {name: err.to_dict() for name, err in self.failures},
            "trace": [step.to_dict() for step in self.trace],
            "reasoning": self.reasoning.to_dict() if self.reasoning is not None else None,
            "system_version": self.system_version,
            "generated_at": self.generated_at.isoformat(),
            "disclaimer": RESEARCH_DISCLAIMER,
        }
