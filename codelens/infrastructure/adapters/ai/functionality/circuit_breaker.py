# codelens/infrastructure/adapters/ai/functionality/circuit_breaker.py

"""Circuit Breaker Pattern - Production Implementation"""

import asyncio
import inspect
import threading
import time
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union
import structlog

from codelens.core.exceptions import CircuitOpenError
from ..models import CircuitState, CircuitMetrics, CircuitEvent, CircuitEventType

logger = structlog.get_logger()

CircuitListener = Callable[[CircuitEvent], None]
Operation = Callable[[], Union[Awaitable[Any], Any]]


class CircuitBreaker:
    """
    Production-grade circuit breaker implementation.

    States:
    - CLOSED: Normal operation, all requests pass. Trips on a failure once
      failure_threshold, minimum_throughput and expected_error_rate are all met.
    - OPEN: Failing, reject all requests until recovery_timeout has passed
    - HALF_OPEN: Testing recovery. Concurrent probes are admitted unless
      half_open_max_calls is set; any probe failure reopens the circuit.

    Counter mutation is guarded by a lock so each call is recorded exactly
    once. Listeners are notified outside the lock.
    """

    def __init__(
            self,
            name: str,
            failure_threshold: int = 5,
            recovery_timeout: float = 60.0,
            monitoring_period: float = 10.0,
            expected_error_rate: float = 0.5,
            minimum_throughput: int = 10,
            reset_high_water_mark: int = 1000,
            half_open_max_calls: Optional[int] = None,
            enabled: bool = True,
            clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            name: Circuit name (usually the endpoint it guards)
            failure_threshold: Failures before opening circuit
            recovery_timeout: Seconds in OPEN before attempting recovery
            monitoring_period: Seconds between monitoring ticks
            expected_error_rate: Error rate (0-1) that must also be reached to trip
            minimum_throughput: Requests needed before the circuit may trip
            reset_high_water_mark: Counters reset above this while CLOSED
            half_open_max_calls: Max in-flight probes in HALF_OPEN (None = unlimited)
            enabled: Enable/disable circuit breaker
            clock: Monotonic time source in seconds
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.monitoring_period = monitoring_period
        self.expected_error_rate = expected_error_rate
        self.minimum_throughput = minimum_throughput
        self.reset_high_water_mark = reset_high_water_mark
        self.half_open_max_calls = half_open_max_calls
        self.enabled = enabled

        self.metrics = CircuitMetrics(state=CircuitState.CLOSED)

        self._clock = clock
        self._lock = threading.Lock()
        self._next_attempt: Optional[float] = None
        self._half_open_in_flight = 0
        self._half_open_window = 0
        self._listeners: List[CircuitListener] = []
        self._monitor_task: Optional[asyncio.Task] = None

        logger.info(
            "circuit_breaker_initialized",
            name=name,
            failure_threshold=failure_threshold,
            minimum_throughput=minimum_throughput,
            expected_error_rate=expected_error_rate,
            recovery_timeout=recovery_timeout,
            enabled=enabled
        )

    # ========================================
    # Execution
    # ========================================

    async def execute(self, operation: Operation) -> Any:
        """
        Run operation through the breaker.

        The operation may be a coroutine function or a plain callable; a
        synchronous raise counts as a failure just like an awaited one.

        Raises:
            CircuitOpenError: If the circuit rejects the call
        """
        if not self.enabled:
            return await self._invoke(operation)

        events: List[CircuitEvent] = []
        with self._lock:
            window, rejection = self._admit(events)
        self._emit_all(events)

        if rejection is not None:
            logger.debug(
                "circuit_rejected",
                name=self.name,
                state=self.metrics.state.value,
                next_attempt_in=rejection.next_attempt_in
            )
            raise rejection

        try:
            result = await self._invoke(operation)
        except BaseException as e:
            self._on_failure(window, e)
            raise

        self._on_success(window)
        return result

    @staticmethod
    async def _invoke(operation: Operation) -> Any:
        result = operation()
        if inspect.isawaitable(result):
            result = await result
        return result

    def _admit(self, events: List[CircuitEvent]) -> Tuple[Optional[int], Optional[CircuitOpenError]]:
        """
        Decide admission. Caller holds the lock.

        Returns (half-open window, rejection); the window is None for calls
        admitted while CLOSED.
        """
        if self.metrics.state == CircuitState.OPEN:
            if self._should_attempt_reset():
                logger.info("circuit_attempting_recovery", name=self.name)
                self._half_open_window += 1
                self._half_open_in_flight = 0
                self._set_state(CircuitState.HALF_OPEN, events)
            else:
                return None, CircuitOpenError(next_attempt_in=self._next_attempt_in())

        if self.metrics.state == CircuitState.HALF_OPEN:
            if (self.half_open_max_calls is not None
                    and self._half_open_in_flight >= self.half_open_max_calls):
                return None, CircuitOpenError(
                    "Circuit breaker is HALF_OPEN - probe already in flight",
                    next_attempt_in=0.0
                )
            self._half_open_in_flight += 1
            return self._half_open_window, None

        return None, None

    def _on_success(self, window: Optional[int]) -> None:
        """Record successful call"""
        events: List[CircuitEvent] = []
        with self._lock:
            stale = self._release_slot(window)
            self.metrics.success_count += 1
            self.metrics.total_requests += 1
            self.metrics.last_success_time = datetime.now()

            if self.metrics.state == CircuitState.HALF_OPEN and not stale:
                logger.info("circuit_closing", name=self.name, reason="probe_succeeded")
                self._set_state(CircuitState.CLOSED, events)
                self._reset_counters()

            events.append(self._event(CircuitEventType.SUCCESS))
        self._emit_all(events)

    def _on_failure(self, window: Optional[int], error: BaseException) -> None:
        """Record failed call"""
        events: List[CircuitEvent] = []
        with self._lock:
            stale = self._release_slot(window)
            self.metrics.failure_count += 1
            self.metrics.total_requests += 1
            self.metrics.last_failure_time = datetime.now()

            if self.metrics.state == CircuitState.HALF_OPEN and not stale:
                logger.warning(
                    "circuit_reopening",
                    name=self.name,
                    reason="failure_during_recovery",
                    error_type=type(error).__name__
                )
                self._trip(events)
            elif self.metrics.state == CircuitState.CLOSED and self._should_trip():
                logger.warning(
                    "circuit_opening",
                    name=self.name,
                    failure_count=self.metrics.failure_count,
                    total_requests=self.metrics.total_requests,
                    error_rate=round(self.metrics.error_rate, 3),
                    threshold=self.failure_threshold
                )
                self._trip(events)

            events.append(self._event(CircuitEventType.FAILURE))
        self._emit_all(events)

    def _release_slot(self, window: Optional[int]) -> bool:
        """
        Free a half-open slot. Returns True for a call admitted in an
        earlier HALF_OPEN window: it holds no slot and decides nothing.
        """
        if window is None:
            return False
        if window != self._half_open_window:
            return True
        if self._half_open_in_flight > 0:
            self._half_open_in_flight -= 1
        return False

    # ========================================
    # Transitions
    # ========================================

    def _should_trip(self) -> bool:
        """All three thresholds must hold"""
        return (
            self.metrics.failure_count >= self.failure_threshold
            and self.metrics.total_requests >= self.minimum_throughput
            and self.metrics.error_rate >= self.expected_error_rate
        )

    def _should_attempt_reset(self) -> bool:
        return self._next_attempt is not None and self._clock() >= self._next_attempt

    def _next_attempt_in(self) -> Optional[float]:
        if self._next_attempt is None:
            return None
        return max(0.0, self._next_attempt - self._clock())

    def _trip(self, events: List[CircuitEvent]) -> None:
        self._set_state(CircuitState.OPEN, events)
        self.metrics.total_trips += 1
        self._schedule_next_attempt()

    def _schedule_next_attempt(self) -> None:
        self._next_attempt = self._clock() + self.recovery_timeout
        self.metrics.opened_at = datetime.now()
        self.metrics.next_attempt_at = self.metrics.opened_at + timedelta(seconds=self.recovery_timeout)

    def _set_state(self, new_state: CircuitState, events: List[CircuitEvent]) -> None:
        previous_state = self.metrics.state
        self.metrics.state = new_state
        self.metrics.state_changed_at = datetime.now()

        if new_state == CircuitState.CLOSED:
            self._next_attempt = None
            self.metrics.opened_at = None
            self.metrics.next_attempt_at = None

        logger.info(
            "circuit_state_changed",
            name=self.name,
            from_state=previous_state.value,
            to_state=new_state.value,
            failure_count=self.metrics.failure_count,
            total_requests=self.metrics.total_requests
        )

        events.append(self._event(
            CircuitEventType.STATE_CHANGE,
            previous_state=previous_state,
            new_state=new_state
        ))

    def _reset_counters(self) -> None:
        self.metrics.failure_count = 0
        self.metrics.success_count = 0
        self.metrics.total_requests = 0

    # ========================================
    # Manual control
    # ========================================

    def force_open(self) -> None:
        """Open the circuit regardless of counters"""
        events: List[CircuitEvent] = []
        with self._lock:
            logger.warning("circuit_forced_open", name=self.name)
            self._set_state(CircuitState.OPEN, events)
            self._schedule_next_attempt()
        self._emit_all(events)

    def force_close(self) -> None:
        """Close the circuit and zero counters"""
        events: List[CircuitEvent] = []
        with self._lock:
            logger.info("circuit_forced_closed", name=self.name)
            self._set_state(CircuitState.CLOSED, events)
            self._reset_counters()
        self._emit_all(events)

    def reset(self) -> None:
        """Zero failure/success/total counters without changing state"""
        with self._lock:
            self._reset_counters()

    # ========================================
    # Monitoring
    # ========================================

    def monitor_tick(self) -> None:
        """
        Publish a metrics snapshot; reset counters above the high-water mark
        while CLOSED. A hard reset, not a sliding window.
        """
        with self._lock:
            snapshot_event = self._event(CircuitEventType.METRICS)
            if (self.metrics.state == CircuitState.CLOSED
                    and self.metrics.total_requests > self.reset_high_water_mark):
                logger.info(
                    "circuit_counters_reset",
                    name=self.name,
                    total_requests=self.metrics.total_requests
                )
                self._reset_counters()
        self._emit_all([snapshot_event])

    def start_monitoring(self) -> None:
        """Run monitor_tick every monitoring_period on the running event loop"""
        if self._monitor_task is not None and not self._monitor_task.done():
            return
        self._monitor_task = asyncio.get_running_loop().create_task(self._monitor_loop())
        logger.debug("circuit_monitoring_started", name=self.name, period=self.monitoring_period)

    async def _monitor_loop(self) -> None:
        while True:
            await asyncio.sleep(self.monitoring_period)
            self.monitor_tick()

    def stop_monitoring(self) -> None:
        """Cancel the monitoring task"""
        if self._monitor_task is not None:
            self._monitor_task.cancel()
            self._monitor_task = None

    async def close(self) -> None:
        """Stop monitoring and drop all listeners"""
        task = self._monitor_task
        self.stop_monitoring()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._listeners.clear()

    # ========================================
    # Observers
    # ========================================

    def subscribe(self, listener: CircuitListener) -> None:
        """Register a callback for breaker events"""
        self._listeners.append(listener)

    def unsubscribe(self, listener: CircuitListener) -> None:
        """Remove a previously registered callback"""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _event(self, kind: CircuitEventType,
               previous_state: Optional[CircuitState] = None,
               new_state: Optional[CircuitState] = None) -> CircuitEvent:
        return CircuitEvent(
            kind=kind,
            breaker=self.name,
            metrics=replace(self.metrics),
            previous_state=previous_state,
            new_state=new_state
        )

    def _emit_all(self, events: List[CircuitEvent]) -> None:
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception as e:
                    logger.warning(
                        "circuit_listener_failed",
                        name=self.name,
                        event_kind=event.kind.value,
                        error=str(e)
                    )

    # ========================================
    # Inspection
    # ========================================

    def get_state(self) -> CircuitState:
        """Get current state"""
        return self.metrics.state

    def is_open(self) -> bool:
        """Check if circuit is open"""
        return self.metrics.state == CircuitState.OPEN

    def is_closed(self) -> bool:
        """Check if circuit is closed"""
        return self.metrics.state == CircuitState.CLOSED

    def is_half_open(self) -> bool:
        """Check if circuit is probing"""
        return self.metrics.state == CircuitState.HALF_OPEN

    def get_metrics(self) -> CircuitMetrics:
        """Get a snapshot of circuit metrics"""
        with self._lock:
            return replace(self.metrics)
