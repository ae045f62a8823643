"""
Scoring Units

Independent analysis procedures, each producing one Opinion.
All units satisfy the ScoringUnit protocol; none share a base class.

Usage:
    from pragna.core.units import default_units

    units = default_units()
    await asyncio.gather(*(u.initialize() for u in units.values()))
    opinion = await units["biomarker_analyst"].analyze(observation)
"""
from typing import Dict, Optional

from .base import (
    InitializationGate,
    LatencyHook,
    Opinion,
    RiskCategory,
    ScoringUnit,
    agreement_score,
    category_from_probability,
    fixed_delay,
    no_delay,
)
from .biomarker import BiomarkerUnit
from .clinical import ClinicalContextUnit, Urgency
from .data_quality import DataQualityUnit, IssueSeverity, ValidationFailure
from .probabilistic import ProbabilisticRiskUnit, ENSEMBLE_WEIGHTS


def default_units(
    latency: Optional[LatencyHook] = None,
    init_latency: Optional[LatencyHook] = None,
) -> Dict[str, ScoringUnit]:
    """Build one instance of every unit, keyed by unit name."""
    units = [
        DataQualityUnit(latency, init_latency),
        BiomarkerUnit(latency, init_latency),
        ClinicalContextUnit(latency, init_latency),
        ProbabilisticRiskUnit(latency, init_latency),
    ]
    return {unit.name: unit for unit in units}


__all__ = [
    "InitializationGate",
    "LatencyHook",
    "Opinion",
    "RiskCategory",
    "ScoringUnit",
    "agreement_score",
    "category_from_probability",
    "fixed_delay",
    "no_delay",
    "BiomarkerUnit",
    "ClinicalContextUnit",
    "Urgency",
    "DataQualityUnit",
    "IssueSeverity",
    "ValidationFailure",
    "ProbabilisticRiskUnit",
    "ENSEMBLE_WEIGHTS",
    "default_units",
]
