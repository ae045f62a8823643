"""
Diagnosis Orchestrator

Top-level controller that runs one diagnosis request end to end:

    1. Data validation     - data_validator alone
    2. Parallel analysis   - every voting unit, concurrently
    3. Consensus           - weighted vote over the successful opinions
    4. Explanation         - five-stage chain-of-thought over the readings
    5. Report assembly     - opinions, failures and the full trace

Each request gets its own ReasoningTrace, so concurrent requests never
interleave their steps. The orchestrator holds no other per-request state.
"""
import asyncio
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from pragna.config import Settings, settings as default_settings
from pragna.core.consensus import ConsensusAggregator, NON_VOTING_UNITS
from pragna.core.observation import Observation
from pragna.core.reasoning import ChainOfThoughtReasoner
from pragna.core.report import DiagnosisReport
from pragna.core.runner import TaskRunner
from pragna.core.trace import ReasoningTrace, TraceObserver, log_step
from pragna.core.units import default_units, fixed_delay
from pragna.core.units.base import LatencyHook, ScoringUnit
from pragna.utils import get_logger, ConsensusUnavailable, UninitializedError

logger = get_logger(__name__)

SYSTEM_SOURCE = "system"


class DiagnosisOrchestrator:
    """
    Sequences validation, parallel analysis, consensus and reporting.

    Usage:
        orchestrator = DiagnosisOrchestrator()
        await orchestrator.initialize()
        report = await orchestrator.diagnose(observation)
    """

    def __init__(
        self,
        units: Optional[Mapping[str, ScoringUnit]] = None,
        runner: Optional[TaskRunner] = None,
        aggregator: Optional[ConsensusAggregator] = None,
        observers: Iterable[TraceObserver] = (),
        latency: Optional[LatencyHook] = None,
        reasoner: Optional[ChainOfThoughtReasoner] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self._latency = latency or fixed_delay(self.settings.simulated_latency_ms)

        if units is None:
            units = default_units(
                latency=self._latency,
                init_latency=fixed_delay(self.settings.init_latency_ms),
            )
        self.units: Dict[str, ScoringUnit] = dict(units)
        self.runner = runner or TaskRunner()
        self.aggregator = aggregator or ConsensusAggregator()
        if reasoner is None and self.settings.chain_of_thought:
            reasoner = ChainOfThoughtReasoner(self._latency)
        self.reasoner = reasoner

        self._observers = list(observers)
        if self.settings.log_trace_steps:
            self._observers.append(log_step)

        self._ready = False
        self._init_lock = asyncio.Lock()

        logger.info(
            f"DiagnosisOrchestrator created with {len(self.units)} unit(s): "
            f"{', '.join(self.units)}"
        )

    @property
    def is_initialized(self) -> bool:
        return self._ready

    @property
    def validation_units(self) -> Dict[str, ScoringUnit]:
        return {n: u for n, u in self.units.items() if n in NON_VOTING_UNITS}

    @property
    def analysis_units(self) -> Dict[str, ScoringUnit]:
        return {n: u for n, u in self.units.items() if n not in NON_VOTING_UNITS}

    async def initialize(self) -> None:
        """
        Initialize every unit concurrently. Idempotent.

        A unit whose initialize() raises stays uninitialized; its later
        analyze() calls then surface as UnitFailure in each report.
        """
        if self._ready:
            return
        async with self._init_lock:
            if self._ready:
                return

            names = list(self.units)
            results = await asyncio.gather(
                *(self.units[name].initialize() for name in names),
                return_exceptions=True,
            )
            for name, result in zip(names, results):
                if isinstance(result, Exception):
                    logger.error(f"Unit {name} failed to initialize: {result}")
                elif isinstance(result, BaseException):
                    raise result

            self._ready = True
            ready = sum(1 for u in self.units.values() if u.is_initialized)
            logger.info(f"DiagnosisOrchestrator initialized ({ready}/{len(names)} units ready)")

    async def diagnose(
        self,
        observation: Union[Observation, Mapping[str, Any]],
    ) -> DiagnosisReport:
        """
        Run one full diagnosis.

        Args:
            observation: An Observation, or a raw payload accepted by
                         Observation.from_payload

        Returns:
            DiagnosisReport

        Raises:
            UninitializedError: if initialize() has not completed
            InvalidObservationError: if a raw payload fails validation
            ConsensusUnavailable: if every voting unit failed
        """
        if not self._ready:
            raise UninitializedError("DiagnosisOrchestrator not initialized", unit="orchestrator")

        if not isinstance(observation, Observation):
            observation = Observation.from_payload(observation)

        trace = ReasoningTrace()
        for observer in self._observers:
            trace.subscribe(observer)

        trace.append(SYSTEM_SOURCE, "Starting agentic analysis")

        # Stage 1: validation
        trace.append(SYSTEM_SOURCE, "Validating input data quality")
        validation = await self.runner.run(self.validation_units, observation, trace)

        # Stage 2: parallel analysis
        analysis_units = self.analysis_units
        trace.append(
            SYSTEM_SOURCE,
            f"Initiating parallel analysis across {len(analysis_units)} unit(s)",
        )
        analysis = await self.runner.run(analysis_units, observation, trace)

        failures = validation.failures + analysis.failures

        # Stage 3: consensus
        trace.append("consensus", "Building multi-unit consensus")
        try:
            consensus = self.aggregator.aggregate(analysis.opinions)
        except ConsensusUnavailable as e:
            trace.append("consensus", "Consensus unavailable: no voting unit produced an opinion")
            logger.error(f"Diagnosis aborted: {e.message}")
            raise ConsensusUnavailable(failures=failures) from e

        trace.append(
            "consensus",
            f"Consensus reached: {consensus.category.value} risk "
            f"({round(consensus.probability * 100)}% probability, "
            f"agreement {consensus.agreement:.2f})",
        )

        # Stage 4: explanation
        reasoning = None
        if self.reasoner is not None:
            trace.append(SYSTEM_SOURCE, "Running chain-of-thought analysis")
            reasoning = await self.reasoner.explain(observation, trace)

        # Stage 5: report
        trace.append("report_generator", "Compiling diagnostic report")
        await self._latency("report_generator")
        trace.append("report_generator", "Report compiled")

        report = DiagnosisReport(
            consensus=consensus,
            opinions=tuple(validation.opinions + analysis.opinions),
            trace=trace.steps(),
            system_version=self.settings.system_version,
            failures=tuple(failures),
            reasoning=reasoning,
            display_names={name: unit.display_name for name, unit in self.units.items()},
        )

        logger.info(
            f"Diagnosis complete: {consensus.category.value} "
            f"({len(report.opinions)} opinion(s), {len(failures)} failure(s), "
            f"{len(report.trace)} trace step(s))"
        )
        return report
