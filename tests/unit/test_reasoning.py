"""
Unit Tests for the Chain-of-Thought Reasoner

Pattern recognition, significance levels, pathway analysis and the
comprehensive risk blend, plus the trace steps each stage writes.
"""
import json
from types import MappingProxyType

import pytest

from pragna.core.observation import Observation
from pragna.core.reasoning import (
    ChainOfThoughtReasoner,
    ReasoningStage,
    REASONING_CHAIN,
    STAGE_CONFIDENCE,
    affected_pathways,
    carbonyl_significance,
    comprehensive_risk,
    hydroxyl_significance,
    pattern_strength,
    recognize_patterns,
    risk_level,
)
from pragna.core.trace import ReasoningTrace
from pragna.core.units import RiskCategory
from pragna.core.units.clinical import EXPEDITED_RECOMMENDATION, Urgency


@pytest.fixture
def reasoner() -> ChainOfThoughtReasoner:
    return ChainOfThoughtReasoner()


@pytest.fixture
def trace() -> ReasoningTrace:
    return ReasoningTrace()


class TestPatternRecognition:

    def test_all_four_patterns(self, high_risk_observation):
        patterns = recognize_patterns(high_risk_observation)

        assert patterns == {
            "warburg_effect": True,
            "metabolic_stress": True,
            "energy_imbalance": True,
            "oxidative_shift": True,
        }
        assert pattern_strength(patterns) == 1.0

    def test_no_patterns_at_baseline(self, low_risk_observation):
        patterns = recognize_patterns(low_risk_observation)

        assert not any(patterns.values())
        assert pattern_strength(patterns) == 0.0

    def test_thresholds_are_strict(self):
        observation = Observation(readings=(1.6, 1.2, 3.0, 2.5))
        patterns = recognize_patterns(observation)

        assert patterns["warburg_effect"] is False
        # 1.6 > 1.4 but carbon-oxygen 3.0 is not above 3.0
        assert patterns["metabolic_stress"] is False

    def test_empty_pattern_set(self):
        assert pattern_strength({}) == 0.0


class TestSignificance:

    @pytest.mark.parametrize("value,level", [
        (2.0, "HIGH"),
        (1.8, "MEDIUM"),
        (1.6, "MEDIUM"),
        (1.5, "LOW"),
        (1.0, "LOW"),
    ])
    def test_carbonyl_levels(self, value, level):
        assert carbonyl_significance(value)[0] == level

    @pytest.mark.parametrize("value,level", [
        (3.2, "HIGH"),
        (3.0, "MEDIUM"),
        (2.8, "LOW"),
    ])
    def test_hydroxyl_levels(self, value, level):
        assert hydroxyl_significance(value)[0] == level


class TestPathways:

    def test_warburg_needs_both_pathways(self, high_risk_observation):
        assert affected_pathways(high_risk_observation) == [
            "Glycolytic Flux",
            "Oxidative Phosphorylation",
            "Warburg Metabolism",
        ]

    def test_glycolytic_only(self):
        observation = Observation(readings=(1.7, 1.2, 2.0, 2.5))
        assert affected_pathways(observation) == ["Glycolytic Flux"]

    def test_none_at_baseline(self, low_risk_observation):
        assert affected_pathways(low_risk_observation) == []


class TestComprehensiveRisk:

    def test_high_risk_blend(self, high_risk_observation):
        # 0.75*0.4 + 1.0*0.3 + (5/6)*0.2 + 1.0*0.1
        assert comprehensive_risk(high_risk_observation) == pytest.approx(0.86667, abs=1e-4)

    def test_baseline_is_zero(self, low_risk_observation):
        assert comprehensive_risk(low_risk_observation) == pytest.approx(0.0)

    def test_capped_at_one(self):
        observation = Observation(readings=(4.0, 0.5, 4.0, 4.5))
        assert comprehensive_risk(observation) == 1.0

    def test_non_positive_readings_stay_in_range(self):
        observation = Observation(readings=(0.0, -1.0, -2.0, 0.0))
        assert 0.0 <= comprehensive_risk(observation) <= 1.0

    @pytest.mark.parametrize("risk,category", [
        (0.81, RiskCategory.HIGH),
        (0.8, RiskCategory.MODERATE_HIGH),
        (0.6, RiskCategory.MODERATE),
        (0.4, RiskCategory.LOW_MODERATE),
        (0.2, RiskCategory.LOW),
        (0.0, RiskCategory.LOW),
    ])
    def test_risk_level_bounds_are_strict(self, risk, category):
        assert risk_level(risk) == category


class TestChainOfThoughtReasoner:
    """Tests for ChainOfThoughtReasoner.explain."""

    @pytest.mark.asyncio
    async def test_runs_five_stages_in_order(self, reasoner, trace, high_risk_observation):
        summary = await reasoner.explain(high_risk_observation, trace)

        assert [s.stage for s in summary.stages] == [stage for stage, _ in REASONING_CHAIN]
        assert [s.stage for s in summary.stages] == list(ReasoningStage)
        for result in summary.stages:
            assert result.confidence == STAGE_CONFIDENCE[result.stage]
            assert result.duration_ms >= 0.0

    @pytest.mark.asyncio
    async def test_each_stage_traces_start_and_completion(
        self, reasoner, trace, high_risk_observation
    ):
        await reasoner.explain(high_risk_observation, trace)
        steps = trace.steps()

        assert len(steps) == 10
        assert {step.source for step in steps} == {"reasoning_engine"}
        assert steps[0].description.startswith("DATA_QUALITY:")
        assert steps[1].description.startswith("DATA_QUALITY completed:")
        assert steps[-1].description.startswith("CLINICAL_SIGNIFICANCE completed:")

    @pytest.mark.asyncio
    async def test_high_risk_final_assessment(self, reasoner, trace, high_risk_observation):
        summary = await reasoner.explain(high_risk_observation, trace)
        final = summary.final_assessment

        assert final["comprehensive_risk"] == pytest.approx(0.86667, abs=1e-4)
        assert final["risk_level"] == RiskCategory.HIGH
        assert final["clinical_urgency"] == Urgency.MEDIUM
        assert final["follow_up_actions"][0] == "Immediate oncology consultation"
        assert EXPEDITED_RECOMMENDATION not in final["follow_up_actions"]

    @pytest.mark.asyncio
    async def test_high_urgency_adds_expedited_action(self, reasoner, trace):
        observation = Observation(readings=(2.2, 1.2, 3.3, 3.6), age=60)
        summary = await reasoner.explain(observation, trace)

        assert summary.final_assessment["clinical_urgency"] == Urgency.HIGH
        assert summary.final_assessment["follow_up_actions"][-1] == EXPEDITED_RECOMMENDATION

    @pytest.mark.asyncio
    async def test_stage_lookup(self, reasoner, trace, high_risk_observation):
        summary = await reasoner.explain(high_risk_observation, trace)

        correlation = summary.stage(ReasoningStage.BIOMARKER_CORRELATION)
        assert correlation.analysis["correlations"]["carbonyl"]["significance"] == "MEDIUM"
        assert correlation.analysis["correlations"]["hydroxyl"]["significance"] == "HIGH"

        metabolic = summary.stage(ReasoningStage.METABOLIC_ANALYSIS)
        assert metabolic.analysis["metabolic_shift"] == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_data_quality_stage_flags_gaps(self, reasoner, trace):
        observation = Observation(readings=(0.1, 1.2, 2.0, 2.0))
        summary = await reasoner.explain(observation, trace)

        quality = summary.stage(ReasoningStage.DATA_QUALITY).analysis
        assert quality["quality_score"] == 0.75
        assert "age missing" in quality["issues"]
        assert "gender missing" in quality["issues"]

    @pytest.mark.asyncio
    async def test_baseline_summary(self, reasoner, trace, low_risk_observation):
        summary = await reasoner.explain(low_risk_observation, trace)

        patterns = summary.stage(ReasoningStage.PATTERN_RECOGNITION)
        assert patterns.analysis["detected_patterns"] == ()
        assert patterns.finding == "no metabolic signature detected"
        assert summary.final_assessment["risk_level"] == RiskCategory.LOW

    @pytest.mark.asyncio
    async def test_analysis_is_read_only(self, reasoner, trace, high_risk_observation):
        summary = await reasoner.explain(high_risk_observation, trace)
        final = summary.final_assessment

        assert isinstance(final, MappingProxyType)
        with pytest.raises(TypeError):
            final["comprehensive_risk"] = 0.0
        assert isinstance(final["follow_up_actions"], tuple)

    @pytest.mark.asyncio
    async def test_latency_hook_called_per_stage(self, trace, high_risk_observation):
        labels = []

        async def record(label):
            labels.append(label)

        await ChainOfThoughtReasoner(latency=record).explain(high_risk_observation, trace)

        assert labels == [
            "reasoning_engine.data_quality",
            "reasoning_engine.pattern_recognition",
            "reasoning_engine.biomarker_correlation",
            "reasoning_engine.metabolic_analysis",
            "reasoning_engine.clinical_significance",
        ]

    @pytest.mark.asyncio
    async def test_to_dict_is_json_serialisable(self, reasoner, trace, high_risk_observation):
        summary = await reasoner.explain(high_risk_observation, trace)

        data = json.loads(json.dumps(summary.to_dict()))

        assert data["total_steps"] == 5
        assert data["steps"][0]["type"] == "DATA_QUALITY"
        assert data["final_assessment"]["risk_level"] == "HIGH"
        assert data["final_assessment"]["clinical_urgency"] == "MEDIUM"
        assert len(data["steps"][3]["analysis"]["affected_pathways"]) == 3
