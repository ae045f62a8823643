"""
Core Diagnosis Pipeline

Observation -> validation -> concurrent scoring -> consensus -> explanation -> report.
"""
from .observation import Observation, Gender, Channel, CHANNEL_RANGES
from .consensus import ConsensusAggregator, ConsensusResult, CONSENSUS_WEIGHTS
from .trace import ReasoningTrace, TraceStep, log_step
from .runner import TaskRunner, RunOutcome
from .reasoning import ChainOfThoughtReasoner, ReasoningStage, ReasoningSummary, StageResult
from .report import DiagnosisReport, RESEARCH_DISCLAIMER
from .orchestrator import DiagnosisOrchestrator

__all__ = [
    "Observation",
    "Gender",
    "Channel",
    "CHANNEL_RANGES",
    "ConsensusAggregator",
    "ConsensusResult",
    "CONSENSUS_WEIGHTS",
    "ReasoningTrace",
    "TraceStep",
    "log_step",
    "TaskRunner",
    "RunOutcome",
    "ChainOfThoughtReasoner",
    "ReasoningStage",
    "ReasoningSummary",
    "StageResult",
    "DiagnosisReport",
    "RESEARCH_DISCLAIMER",
    "DiagnosisOrchestrator",
]
