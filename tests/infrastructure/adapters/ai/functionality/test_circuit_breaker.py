# tests/infrastructure/adapters/ai/functionality/test_circuit_breaker.py

import asyncio

import pytest

from codelens.core.exceptions import CircuitOpenError, UpstreamError, UpstreamTimeoutError
from codelens.infrastructure.adapters.ai.functionality import CircuitBreaker, with_timeout
from codelens.infrastructure.adapters.ai.models import CircuitEventType, CircuitState


async def succeed():
    return "ok"


async def fail():
    raise UpstreamError("boom")


async def run(breaker, operation):
    """Execute and swallow the operation's own failure"""
    try:
        return await breaker.execute(operation)
    except UpstreamError:
        return None


class CountingOperation:
    """Counts invocations"""

    def __init__(self, error=None):
        self.calls = 0
        self.error = error

    async def __call__(self):
        self.calls += 1
        if self.error:
            raise self.error
        return "ok"


class TestCircuitBreaker:

    @pytest.fixture
    def breaker(self, clock):
        return CircuitBreaker(name="test", recovery_timeout=60.0, clock=clock)

    @pytest.fixture
    def tripped(self, clock):
        return CircuitBreaker(
            name="test",
            failure_threshold=1,
            minimum_throughput=1,
            recovery_timeout=60.0,
            clock=clock
        )

    async def _trip(self, breaker):
        await run(breaker, fail)
        assert breaker.get_state() == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_starts_closed(self, breaker):
        assert breaker.get_state() == CircuitState.CLOSED
        assert breaker.get_metrics().total_requests == 0

    @pytest.mark.asyncio
    async def test_success_returns_result(self, breaker):
        assert await breaker.execute(succeed) == "ok"
        metrics = breaker.get_metrics()
        assert metrics.success_count == 1
        assert metrics.total_requests == 1
        assert metrics.last_success_time is not None

    @pytest.mark.asyncio
    async def test_failure_threshold_alone_does_not_trip(self, breaker):
        """5 failures out of 5 requests: minimum throughput (10) not met."""
        for _ in range(5):
            await run(breaker, fail)

        metrics = breaker.get_metrics()
        assert breaker.get_state() == CircuitState.CLOSED
        assert metrics.failure_count == 5
        assert metrics.total_requests == 5

    @pytest.mark.asyncio
    async def test_trips_when_all_thresholds_met_on_tenth_call(self, breaker):
        for _ in range(5):
            await run(breaker, succeed)
        for _ in range(4):
            await run(breaker, fail)

        assert breaker.get_state() == CircuitState.CLOSED

        await run(breaker, fail)

        metrics = breaker.get_metrics()
        assert breaker.get_state() == CircuitState.OPEN
        assert metrics.failure_count == 5
        assert metrics.total_requests == 10
        assert metrics.total_trips == 1

    @pytest.mark.asyncio
    async def test_trip_only_evaluated_on_failure(self, breaker):
        """Failures 1-5 then successes 6-10 keep the circuit closed."""
        for _ in range(5):
            await run(breaker, fail)
        for _ in range(5):
            await run(breaker, succeed)

        assert breaker.get_state() == CircuitState.CLOSED

        await run(breaker, fail)
        assert breaker.get_state() == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_error_rate_below_expected_does_not_trip(self, breaker):
        for _ in range(10):
            await run(breaker, succeed)
        for _ in range(6):
            await run(breaker, fail)

        metrics = breaker.get_metrics()
        assert metrics.error_rate < 0.5
        assert breaker.get_state() == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_open_rejects_without_invoking(self, tripped):
        await self._trip(tripped)
        operation = CountingOperation()

        for _ in range(3):
            with pytest.raises(CircuitOpenError) as exc_info:
                await tripped.execute(operation)

        assert operation.calls == 0
        assert exc_info.value.next_attempt_in == pytest.approx(60.0)

    @pytest.mark.asyncio
    async def test_rejections_do_not_count_as_requests(self, tripped):
        await self._trip(tripped)
        with pytest.raises(CircuitOpenError):
            await tripped.execute(succeed)

        assert tripped.get_metrics().total_requests == 1

    @pytest.mark.asyncio
    async def test_recovery_timeout_moves_to_half_open_and_invokes(self, tripped, clock):
        await self._trip(tripped)
        transitions = []
        tripped.subscribe(
            lambda event: transitions.append(event.new_state)
            if event.kind == CircuitEventType.STATE_CHANGE else None
        )
        operation = CountingOperation()

        clock.advance(60.0)
        await tripped.execute(operation)

        assert operation.calls == 1
        assert transitions == [CircuitState.HALF_OPEN, CircuitState.CLOSED]

    @pytest.mark.asyncio
    async def test_half_open_success_closes_and_resets_counters(self, tripped, clock):
        await self._trip(tripped)
        clock.advance(60.0)

        await tripped.execute(succeed)

        metrics = tripped.get_metrics()
        assert tripped.get_state() == CircuitState.CLOSED
        assert metrics.failure_count == 0
        assert metrics.success_count == 0
        assert metrics.total_requests == 0
        assert metrics.opened_at is None

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens_and_reschedules(self, tripped, clock):
        await self._trip(tripped)
        clock.advance(60.0)

        await run(tripped, fail)
        assert tripped.get_state() == CircuitState.OPEN
        assert tripped.get_metrics().total_trips == 2

        clock.advance(30.0)
        with pytest.raises(CircuitOpenError):
            await tripped.execute(succeed)

        clock.advance(30.0)
        assert await tripped.execute(succeed) == "ok"
        assert tripped.get_state() == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_concurrent_half_open_probes_allowed_by_default(self, tripped, clock):
        await self._trip(tripped)
        clock.advance(60.0)
        release = asyncio.Event()
        invoked = []

        async def slow_probe(should_fail):
            invoked.append(should_fail)
            await release.wait()
            if should_fail:
                raise UpstreamError("probe failed")
            return "ok"

        first = asyncio.ensure_future(tripped.execute(lambda: slow_probe(False)))
        second = asyncio.ensure_future(tripped.execute(lambda: slow_probe(True)))
        await asyncio.sleep(0)
        assert tripped.get_state() == CircuitState.HALF_OPEN
        assert len(invoked) == 2

        release.set()
        results = await asyncio.gather(first, second, return_exceptions=True)

        assert results[0] == "ok"
        assert isinstance(results[1], UpstreamError)
        assert tripped.get_state() == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_half_open_max_calls_limits_probes(self, clock):
        breaker = CircuitBreaker(
            name="hardened",
            failure_threshold=1,
            minimum_throughput=1,
            half_open_max_calls=1,
            clock=clock
        )
        await run(breaker, fail)
        clock.advance(60.0)
        release = asyncio.Event()

        async def slow_probe():
            await release.wait()
            return "ok"

        probe = asyncio.ensure_future(breaker.execute(slow_probe))
        await asyncio.sleep(0)

        extra = CountingOperation()
        with pytest.raises(CircuitOpenError):
            await breaker.execute(extra)
        assert extra.calls == 0

        release.set()
        assert await probe == "ok"
        assert breaker.get_state() == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_call_from_earlier_half_open_window_does_not_free_slot(self, clock):
        breaker = CircuitBreaker(
            name="hardened",
            failure_threshold=1,
            minimum_throughput=1,
            half_open_max_calls=1,
            clock=clock
        )
        await run(breaker, fail)
        clock.advance(60.0)

        old_release = asyncio.Event()
        new_release = asyncio.Event()

        async def wait_for(event):
            await event.wait()
            return "ok"

        old_call = asyncio.ensure_future(breaker.execute(lambda: wait_for(old_release)))
        await asyncio.sleep(0)

        breaker.force_open()
        clock.advance(60.0)
        new_call = asyncio.ensure_future(breaker.execute(lambda: wait_for(new_release)))
        await asyncio.sleep(0)
        assert breaker.get_state() == CircuitState.HALF_OPEN

        old_release.set()
        assert await old_call == "ok"
        assert breaker.get_state() == CircuitState.HALF_OPEN

        extra = CountingOperation()
        with pytest.raises(CircuitOpenError):
            await breaker.execute(extra)
        assert extra.calls == 0

        new_release.set()
        assert await new_call == "ok"
        assert breaker.get_state() == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_synchronous_raise_counts_as_failure(self, breaker):
        def explode():
            raise ValueError("sync failure")

        with pytest.raises(ValueError):
            await breaker.execute(explode)

        assert breaker.get_metrics().failure_count == 1

    @pytest.mark.asyncio
    async def test_plain_callable_result_returned(self, breaker):
        assert await breaker.execute(lambda: 42) == 42
        assert breaker.get_metrics().success_count == 1

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, breaker):
        with pytest.raises(UpstreamTimeoutError):
            await breaker.execute(lambda: with_timeout(asyncio.sleep(1.0), timeout=0.01))

        assert breaker.get_metrics().failure_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_calls_recorded_exactly_once(self, breaker):
        async def tiny():
            await asyncio.sleep(0)
            return "ok"

        await asyncio.gather(*(breaker.execute(tiny) for _ in range(50)))

        metrics = breaker.get_metrics()
        assert metrics.total_requests == 50
        assert metrics.success_count == 50

    @pytest.mark.asyncio
    async def test_events_emitted(self, tripped):
        events = []
        tripped.subscribe(events.append)

        await run(tripped, fail)

        kinds = [event.kind for event in events]
        assert kinds == [CircuitEventType.STATE_CHANGE, CircuitEventType.FAILURE]
        assert events[0].previous_state == CircuitState.CLOSED
        assert events[0].new_state == CircuitState.OPEN
        assert events[1].metrics.failure_count == 1

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_calls(self, breaker):
        def broken(event):
            raise RuntimeError("listener bug")

        received = []
        breaker.subscribe(broken)
        breaker.subscribe(received.append)

        assert await breaker.execute(succeed) == "ok"
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self, breaker):
        received = []
        breaker.subscribe(received.append)
        breaker.unsubscribe(received.append)

        await breaker.execute(succeed)
        assert received == []

    @pytest.mark.asyncio
    async def test_metrics_snapshot_is_a_copy(self, breaker):
        snapshot = breaker.get_metrics()
        snapshot.failure_count = 99

        assert breaker.get_metrics().failure_count == 0

    def test_force_open_and_close(self, breaker):
        events = []
        breaker.subscribe(events.append)

        breaker.force_open()
        assert breaker.is_open()
        assert breaker.get_metrics().next_attempt_at is not None

        breaker.force_close()
        assert breaker.is_closed()
        assert [event.new_state for event in events] == [CircuitState.OPEN, CircuitState.CLOSED]

    @pytest.mark.asyncio
    async def test_force_open_rejects_until_recovery(self, breaker, clock):
        breaker.force_open()
        with pytest.raises(CircuitOpenError):
            await breaker.execute(succeed)

        clock.advance(60.0)
        assert await breaker.execute(succeed) == "ok"
        assert breaker.is_closed()

    @pytest.mark.asyncio
    async def test_force_close_resets_counters(self, breaker):
        await run(breaker, fail)
        breaker.force_close()

        metrics = breaker.get_metrics()
        assert metrics.failure_count == 0
        assert metrics.total_requests == 0

    @pytest.mark.asyncio
    async def test_reset_zeroes_counters_without_state_change(self, tripped):
        await self._trip(tripped)
        tripped.reset()

        assert tripped.is_open()
        assert tripped.get_metrics().total_requests == 0

    @pytest.mark.asyncio
    async def test_monitor_tick_resets_above_high_water_mark(self, clock):
        breaker = CircuitBreaker(name="tick", reset_high_water_mark=3, clock=clock)
        events = []
        breaker.subscribe(events.append)

        for _ in range(4):
            await breaker.execute(succeed)
        events.clear()

        breaker.monitor_tick()

        assert breaker.get_metrics().total_requests == 0
        assert [event.kind for event in events] == [CircuitEventType.METRICS]
        assert events[0].metrics.total_requests == 4

    @pytest.mark.asyncio
    async def test_monitor_tick_keeps_counters_at_or_below_mark(self, clock):
        breaker = CircuitBreaker(name="tick", reset_high_water_mark=3, clock=clock)
        for _ in range(3):
            await breaker.execute(succeed)

        breaker.monitor_tick()
        assert breaker.get_metrics().total_requests == 3

    @pytest.mark.asyncio
    async def test_monitor_tick_does_not_reset_while_open(self, clock):
        breaker = CircuitBreaker(
            name="tick",
            failure_threshold=1,
            minimum_throughput=1,
            reset_high_water_mark=0,
            clock=clock
        )
        await run(breaker, fail)

        breaker.monitor_tick()
        assert breaker.get_metrics().total_requests == 1

    @pytest.mark.asyncio
    async def test_background_monitoring_emits_metrics(self):
        breaker = CircuitBreaker(name="bg", monitoring_period=0.01)
        events = []
        breaker.subscribe(events.append)

        breaker.start_monitoring()
        await asyncio.sleep(0.05)
        await breaker.close()

        assert any(event.kind == CircuitEventType.METRICS for event in events)

    @pytest.mark.asyncio
    async def test_disabled_breaker_passes_through(self, clock):
        breaker = CircuitBreaker(
            name="off",
            failure_threshold=1,
            minimum_throughput=1,
            enabled=False,
            clock=clock
        )
        for _ in range(3):
            await run(breaker, fail)

        assert breaker.is_closed()
        assert await breaker.execute(succeed) == "ok"

    @pytest.mark.asyncio
    async def test_state_always_known(self, tripped, clock):
        seen = {tripped.get_state()}
        await run(tripped, fail)
        seen.add(tripped.get_state())
        clock.advance(60.0)
        await run(tripped, fail)
        seen.add(tripped.get_state())

        assert seen <= set(CircuitState)
