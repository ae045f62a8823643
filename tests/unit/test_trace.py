"""
Unit Tests for the Reasoning Trace
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from pragna.core.trace import ReasoningTrace, TraceStep, log_step


@pytest.fixture
def trace() -> ReasoningTrace:
    return ReasoningTrace()


class TestReasoningTrace:
    """Tests for ReasoningTrace."""

    def test_sequence_starts_at_one(self, trace):
        first = trace.append("system", "Starting")
        second = trace.append("system", "Next")

        assert first.sequence == 1
        assert second.sequence == 2
        assert len(trace) == 2

    def test_snapshot_is_prefix_of_later_snapshot(self, trace):
        trace.append("a", "one")
        early = trace.steps()
        trace.append("b", "two")
        later = trace.steps()

        assert isinstance(early, tuple)
        assert later[:len(early)] == early

    def test_contiguous_under_threads(self, trace):
        def worker(n):
            for i in range(100):
                trace.append(f"worker-{n}", f"step {i}")

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(worker, range(8)))

        sequences = [step.sequence for step in trace.steps()]
        assert sequences == list(range(1, 801))

    @pytest.mark.asyncio
    async def test_contiguous_under_tasks(self, trace):
        async def worker(n):
            for i in range(20):
                trace.append(f"task-{n}", f"step {i}")
                await asyncio.sleep(0)

        await asyncio.gather(*(worker(n) for n in range(10)))

        sequences = [step.sequence for step in trace.steps()]
        assert sequences == list(range(1, 201))

    def test_observers_receive_steps_in_order(self, trace):
        seen = []
        trace.subscribe(lambda step: seen.append(step.sequence))

        for i in range(5):
            trace.append("system", f"step {i}")

        assert seen == [1, 2, 3, 4, 5]

    def test_unsubscribe(self, trace):
        seen = []
        unsubscribe = trace.subscribe(seen.append)
        trace.append("system", "one")
        unsubscribe()
        trace.append("system", "two")

        assert len(seen) == 1

    def test_failing_observer_does_not_break_trace(self, trace):
        seen = []

        def broken(step):
            raise RuntimeError("observer down")

        trace.subscribe(broken)
        trace.subscribe(seen.append)
        trace.append("system", "one")

        assert len(trace) == 1
        assert len(seen) == 1

    def test_append_only_surface(self, trace):
        trace.append("system", "one")

        assert not hasattr(trace, "clear")
        assert not hasattr(trace, "remove")
        assert trace.steps()[0].sequence == 1

    def test_to_list(self, trace):
        trace.append("biomarker_analyst", "Completed")
        data = trace.to_list()

        assert data[0]["step"] == 1
        assert data[0]["source"] == "biomarker_analyst"
        assert "timestamp" in data[0]


class TestLogStep:

    def test_writes_to_log(self, caplog):
        step = TraceStep(sequence=3, source="consensus", description="Building consensus")
        with caplog.at_level(logging.INFO, logger="pragna.core.trace"):
            log_step(step)

        assert "consensus: Building consensus" in caplog.text
