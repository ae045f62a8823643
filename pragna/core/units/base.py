"""
Scoring Unit Contract

Defines the data contracts every scoring unit produces and the
capability protocol the orchestrator depends on:

- RiskCategory: totally ordered five-bucket risk enumeration
- Opinion: one unit's immutable judgment
- ScoringUnit: structural protocol (initialize + analyze)
- InitializationGate: one-time, concurrency-safe readiness gate
- LatencyHook: injectable simulated-delay coroutine
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import (
    Any, Awaitable, Callable, Dict, Mapping, Protocol, Sequence, TYPE_CHECKING, Union, runtime_checkable,
)

import numpy as np

from pragna.utils import get_logger, UninitializedError

if TYPE_CHECKING:
    from pragna.core.observation import Observation

logger = get_logger(__name__)


class RiskCategory(str, Enum):
    """Risk bucket. Ordered LOW < LOW_MODERATE < MODERATE < MODERATE_HIGH < HIGH."""
    LOW = "LOW"
    LOW_MODERATE = "LOW_MODERATE"
    MODERATE = "MODERATE"
    MODERATE_HIGH = "MODERATE_HIGH"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _CATEGORY_RANK[self]

    # str already defines comparisons (alphabetical), so override all four
    def __lt__(self, other):
        if isinstance(other, RiskCategory):
            return self.rank < other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, RiskCategory):
            return self.rank <= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, RiskCategory):
            return self.rank > other.rank
        return NotImplemented

    def __ge__(self, other):
        if isinstance(other, RiskCategory):
            return self.rank >= other.rank
        return NotImplemented


_CATEGORY_RANK = {category: i for i, category in enumerate(RiskCategory)}
_CATEGORY_BY_LABEL = {category.value: category for category in RiskCategory}


def category_from_probability(probability: float) -> RiskCategory:
    """Map a probability to a risk bucket (inclusive lower bounds)."""
    if probability >= 0.8:
        return RiskCategory.HIGH
    if probability >= 0.6:
        return RiskCategory.MODERATE_HIGH
    if probability >= 0.4:
        return RiskCategory.MODERATE
    if probability >= 0.2:
        return RiskCategory.LOW_MODERATE
    return RiskCategory.LOW


def agreement_score(values: Sequence[float]) -> float:
    """
    1 - population standard deviation, floored at 0.

    A single value (or none) is in perfect agreement with itself.
    """
    if len(values) <= 1:
        return 1.0
    variance = float(np.var(np.asarray(values, dtype=float)))
    return max(0.0, 1.0 - float(np.sqrt(variance)))


@dataclass(frozen=True)
class Opinion:
    """
    Result produced by one scoring unit.

    Attributes:
        unit:        Identifier of the producing unit (e.g. "biomarker_analyst")
        category:    Risk bucket (an unrecognised label is kept as a str)
        confidence:  0-1
        rationale:   Free-text reasoning
        summary:     One-line completion message
        auxiliary:   Unit-specific fields (raw score, sub-model breakdown, ...)
        created_at:  UTC creation time
    """
    unit: str
    category: Union[RiskCategory, str]
    confidence: float
    rationale: str
    summary: str = ""
    auxiliary: Mapping[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")
        # Known labels become RiskCategory; anything else is kept as given
        # and votes with the unknown-category probability
        if isinstance(self.category, str) and self.category in _CATEGORY_BY_LABEL:
            object.__setattr__(self, "category", _CATEGORY_BY_LABEL[self.category])
        object.__setattr__(self, "auxiliary", deep_freeze(self.auxiliary))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit": self.unit,
            "category": category_label(self.category),
            "confidence": round(self.confidence, 3),
            "rationale": self.rationale,
            "summary": self.summary,
            "auxiliary": _jsonable(self.auxiliary),
            "created_at": self.created_at.isoformat(),
        }


def category_label(category: Any) -> str:
    """Plain label for a category, known or not."""
    if isinstance(category, Enum):
        return category.value
    return str(category)


def deep_freeze(value: Any) -> Any:
    """Read-only deep copy: mappings become proxies, sequences become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: deep_freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(deep_freeze(v) for v in value)
    return value


def _jsonable(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, float):
        return round(value, 4)
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


# ──────────────────────────────────────────────────────────────────────────
# Simulated latency
# ──────────────────────────────────────────────────────────────────────────

LatencyHook = Callable[[str], Awaitable[None]]


async def no_delay(label: str) -> None:
    """Default latency hook: yields to the event loop without sleeping."""
    await asyncio.sleep(0)


def fixed_delay(milliseconds: float) -> LatencyHook:
    """Build a latency hook that sleeps a fixed time at every suspension point."""
    if milliseconds <= 0:
        return no_delay

    seconds = milliseconds / 1000.0

    async def _delay(label: str) -> None:
        await asyncio.sleep(seconds)

    return _delay


# ──────────────────────────────────────────────────────────────────────────
# Initialization gate
# ──────────────────────────────────────────────────────────────────────────

class InitializationGate:
    """
    One-time readiness gate: a flag guarded by an asyncio lock.

    open() runs the loader at most once even when awaited concurrently;
    later calls return immediately.
    """

    def __init__(self, owner: str):
        self.owner = owner
        self._ready = False
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._ready

    async def open(self, loader: Callable[[], Awaitable[None]]) -> None:
        if self._ready:
            return
        async with self._lock:
            if self._ready:
                return
            await loader()
            self._ready = True
            logger.info(f"{self.owner} initialized")

    def require(self) -> None:
        """Raise UninitializedError unless open() has completed."""
        if not self._ready:
            raise UninitializedError(
                f"{self.owner} not initialized",
                unit=self.owner
            )


@runtime_checkable
class ScoringUnit(Protocol):
    """Capability shared by every scoring unit."""

    name: str
    display_name: str

    @property
    def is_initialized(self) -> bool: ...

    async def initialize(self) -> None: ...

    async def analyze(self, observation: "Observation") -> Opinion: ...
