"""
Reasoning Trace

Ordered, append-only explanation log for one diagnosis request.

Sequence numbers are assigned under a lock at append time, so they are
strictly increasing and gap-free no matter which concurrent task (or
thread) appends. Observers receive steps in sequence order.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Tuple

from pragna.utils import get_logger

logger = get_logger(__name__)

TraceObserver = Callable[["TraceStep"], None]


@dataclass(frozen=True)
class TraceStep:
    """One entry in the reasoning trace."""
    sequence: int
    source: str
    description: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.sequence,
            "source": self.source,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
        }


class ReasoningTrace:
    """
    Append-only step log with observer notification.

    There is no removal operation. A new top-level request starts a new
    trace instead of resetting an old one.
    """

    def __init__(self):
        self._steps: List[TraceStep] = []
        self._observers: List[TraceObserver] = []
        self._lock = threading.RLock()

    def append(self, source: str, description: str) -> TraceStep:
        """Record a step and notify observers. Safe from any task or thread."""
        with self._lock:
            step = TraceStep(
                sequence=len(self._steps) + 1,
                source=source,
                description=description,
            )
            self._steps.append(step)
            # Notify under the lock so observers see steps in sequence order
            for observer in list(self._observers):
                try:
                    observer(step)
                except Exception as e:
                    logger.error(f"Trace observer {observer!r} failed on step {step.sequence}: {e}")
        return step

    def subscribe(self, observer: TraceObserver) -> Callable[[], None]:
        """Register an observer; returns a callable that unsubscribes it."""
        with self._lock:
            self._observers.append(observer)

        def _unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return _unsubscribe

    def steps(self) -> Tuple[TraceStep, ...]:
        """Immutable snapshot; always a prefix of any later snapshot."""
        with self._lock:
            return tuple(self._steps)

    def __len__(self) -> int:
        with self._lock:
            return len(self._steps)

    def to_list(self) -> List[Dict[str, Any]]:
        return [step.to_dict() for step in self.steps()]


def log_step(step: TraceStep, log: logging.Logger = logger) -> None:
    """Trace observer that writes each step to the application log."""
    log.info(f"[trace {step.sequence:03d}] {step.source}: {step.description}")
