"""
Task Runner

Fan-out / fan-in over scoring units: every unit's analyze() runs as an
independent task, and the runner waits until all of them have settled.
It never fails fast. A unit failure is captured as a UnitFailure,
recorded in the trace, and never cancels or aborts its siblings.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from pragna.core.observation import Observation
from pragna.core.trace import ReasoningTrace
from pragna.core.units.base import Opinion, ScoringUnit, category_label
from pragna.utils import get_logger, UnitFailure

logger = get_logger(__name__)


@dataclass
class RunOutcome:
    """Partitioned result of one fan-out, in input order."""
    successes: List[Tuple[str, Opinion]] = field(default_factory=list)
    failures: List[Tuple[str, UnitFailure]] = field(default_factory=list)

    @property
    def opinions(self) -> List[Opinion]:
        return [opinion for _, opinion in self.successes]

    @property
    def all_failed(self) -> bool:
        return not self.successes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": [name for name, _ in self.successes],
            "failed": {name: err.to_dict() for name, err in self.failures},
        }


class TaskRunner:
    """Runs a set of named scoring units concurrently over one observation."""

    async def run(
        self,
        units: Mapping[str, ScoringUnit],
        observation: Observation,
        trace: ReasoningTrace,
    ) -> RunOutcome:
        """
        Launch every unit and collect whatever settles.

        Args:
            units: Unit name → scoring unit
            observation: The observation each unit analyzes
            trace: Request trace; each settled task appends one step

        Returns:
            RunOutcome with (name, Opinion) successes and
            (name, UnitFailure) failures
        """
        names = list(units)
        tasks = [
            asyncio.ensure_future(self._run_one(name, units[name], observation, trace))
            for name in names
        ]
        # return_exceptions keeps one failure from cancelling the rest
        settled = await asyncio.gather(*tasks, return_exceptions=True)

        outcome = RunOutcome()
        for name, result in zip(names, settled):
            if isinstance(result, Opinion):
                outcome.successes.append((name, result))
            elif isinstance(result, UnitFailure):
                outcome.failures.append((name, result))
            elif isinstance(result, Exception):
                outcome.failures.append((name, UnitFailure(name, result)))
            else:
                # CancelledError, KeyboardInterrupt and friends are not unit failures
                raise result

        logger.info(
            f"TaskRunner: {len(outcome.successes)}/{len(names)} unit(s) succeeded"
            + (f", failed: {', '.join(n for n, _ in outcome.failures)}" if outcome.failures else "")
        )
        return outcome

    @staticmethod
    async def _run_one(
        name: str,
        unit: ScoringUnit,
        observation: Observation,
        trace: ReasoningTrace,
    ) -> Opinion:
        try:
            opinion = await unit.analyze(observation)
            if not isinstance(opinion, Opinion):
                raise TypeError(f"{name} returned {type(opinion).__name__}, expected Opinion")
        except Exception as e:
            failure = UnitFailure(name, e)
            logger.warning(f"Unit {name} failed: {type(e).__name__}: {e}")
            trace.append(name, f"Failed: {type(e).__name__}: {e}")
            raise failure from e

        trace.append(name, f"Completed: {opinion.summary or category_label(opinion.category)}")
        return opinion
