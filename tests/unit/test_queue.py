"""Unit tests for the batch queue."""

import asyncio

import pytest

from aizu.models import DeliveryOutcome
from aizu.queue import BatchQueue

from conftest import RecordingEngine, make_event


def names(batch):
    return [event.properties["event_name"] for event in batch]


class TestThreshold:
    """Tests for size-triggered sends."""

    @pytest.mark.asyncio
    async def test_sends_when_batch_size_reached(self):
        """Test the queue sends exactly batch_size events."""
        engine = RecordingEngine()
        queue = BatchQueue(engine, batch_size=3, flush_interval=60000)

        assert await queue.enqueue(make_event("a")) is None
        assert await queue.enqueue(make_event("b")) is None
        result = await queue.enqueue(make_event("c"))
        await queue.stop_timer()

        assert result.event_count == 3
        assert [names(b) for b in engine.batches] == [["a", "b", "c"]]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_below_threshold_waits(self):
        engine = RecordingEngine()
        queue = BatchQueue(engine, batch_size=20, flush_interval=60000)

        for i in range(5):
            await queue.enqueue(make_event(f"e{i}"))
        await queue.stop_timer()

        assert engine.batches == []
        assert queue.size() == 5

    @pytest.mark.asyncio
    async def test_batching_disabled_sends_single_events(self):
        """Test each event is its own request when batching is off."""
        engine = RecordingEngine()
        queue = BatchQueue(engine, enable_batching=False)

        await queue.enqueue(make_event("a"))
        await queue.enqueue(make_event("b"))

        assert [names(b) for b in engine.batches] == [["a"], ["b"]]
        assert engine.single_flags == [True, True]
        assert not queue.timer_running


class TestFlush:
    """Tests for explicit draining."""

    @pytest.mark.asyncio
    async def test_flush_empty_queue(self):
        engine = RecordingEngine()
        queue = BatchQueue(engine)

        assert await queue.flush() == []
        assert engine.batches == []

    @pytest.mark.asyncio
    async def test_flush_splits_large_queues(self):
        """Test requests never exceed the per-request maximum."""
        engine = RecordingEngine()
        queue = BatchQueue(engine, batch_size=5000, flush_interval=60000)
        for i in range(2500):
            queue._events.append(make_event(f"e{i}"))

        results = await queue.flush()

        assert [len(b) for b in engine.batches] == [1000, 1000, 500]
        assert len(results) == 3
        assert names(engine.batches[0])[0] == "e0"
        assert names(engine.batches[2])[-1] == "e2499"

    @pytest.mark.asyncio
    async def test_enqueue_many_drains_everything(self):
        """Test pre-built events bypass the threshold and are split."""
        engine = RecordingEngine()
        queue = BatchQueue(engine, batch_size=20)

        results = await queue.enqueue_many(make_event(f"e{i}") for i in range(1001))

        assert [len(b) for b in engine.batches] == [1000, 1]
        assert len(results) == 2
        assert names(engine.batches[1]) == ["e1000"]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_queue_emptied_on_failure(self):
        """Test failed batches are not re-queued."""
        engine = RecordingEngine(outcome=DeliveryOutcome.EXHAUSTED)
        queue = BatchQueue(engine, batch_size=10, flush_interval=60000)
        await queue.enqueue(make_event("a"))

        results = await queue.flush()
        await queue.stop_timer()

        assert not results[0].success
        assert len(queue) == 0


class TestFlushTimer:
    """Tests for the periodic flush task."""

    @pytest.mark.asyncio
    async def test_timer_flushes_queue(self):
        """Test queued events are sent after the interval."""
        engine = RecordingEngine()
        queue = BatchQueue(engine, batch_size=10, flush_interval=20)

        await queue.enqueue(make_event("a"))
        assert queue.timer_running

        await asyncio.sleep(0.1)
        await queue.stop_timer()

        assert [names(b) for b in engine.batches] == [["a"]]

    @pytest.mark.asyncio
    async def test_stop_timer(self):
        """Test a stopped timer no longer flushes."""
        engine = RecordingEngine()
        queue = BatchQueue(engine, batch_size=10, flush_interval=20)
        queue.start_timer()

        await queue.stop_timer()
        queue._events.append(make_event("late"))
        await asyncio.sleep(0.06)

        assert not queue.timer_running
        assert engine.batches == []

    @pytest.mark.asyncio
    async def test_timer_not_restarted_after_stop(self):
        queue = BatchQueue(RecordingEngine(), flush_interval=20)

        await queue.stop_timer()
        queue.start_timer()

        assert not queue.timer_running

    def test_no_timer_without_running_loop(self):
        """Test construction outside a loop does not start a task."""
        queue = BatchQueue(RecordingEngine())

        queue.start_timer()

        assert not queue.timer_running
