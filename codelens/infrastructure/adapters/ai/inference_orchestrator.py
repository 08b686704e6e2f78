# codelens/infrastructure/adapters/ai/inference_orchestrator.py

"""
Inference Orchestrator - Production Grade Implementation

Features:
- Token-bucket admission control
- Circuit breaker around every remote call
- Per-call timeout
- Strict response parsing + confidence scoring
- Batch fan-out with partial-failure tolerance
- Synthetic health probe
- Full observability
"""

import asyncio
import threading
import time
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional, Union
import structlog

from codelens.application.services.prompt_builder import PromptBuilder
from codelens.core.exceptions import (
    CircuitOpenError,
    FormatError,
    RateLimitExceeded,
    UpstreamError,
    UpstreamTimeoutError
)
from codelens.core.ports.i_inference_client import IInferenceClient

from .models import (
    AIRequestMetrics,
    AIStatistics,
    AnalysisRequest,
    AnalysisResult,
    BatchJob,
    BatchPriority,
    CircuitEvent,
    CircuitEventType,
    CircuitState,
    HealthState,
    HealthStatus,
    InferenceConfig
)
from .functionality import (
    CircuitBreaker,
    LatencyTracker,
    RateLimiter,
    ResponseParser,
    with_timeout
)

logger = structlog.get_logger()


class InferenceOrchestrator:
    """
    Single entry point for code analysis against the inference backend.

    Flow (analyze_code):
    1. Rate limiter admission (fails fast)
    2. Circuit breaker guarded call
       a. Build prompts
       b. Remote completion with timeout
       c. Parse + score
    3. Stamp processing time, record metrics
    4. Return result or re-raise (no local retry)

    batch_analyze downgrades per-item failures to dropped results.
    """

    def __init__(
            self,
            client: IInferenceClient,
            config: Optional[InferenceConfig] = None,
            circuit_breaker: Optional[CircuitBreaker] = None,
            rate_limiter: Optional[RateLimiter] = None,
            prompt_builder: Optional[PromptBuilder] = None,
            response_parser: Optional[ResponseParser] = None
    ):
        """
        Initialize orchestrator.

        Args:
            client: Remote inference client
            config: Optional configuration
            circuit_breaker: Breaker for this endpoint (built from config if omitted)
            rate_limiter: Limiter for this endpoint (built from config if omitted)
            prompt_builder: Prompt builder
            response_parser: Response parser
        """
        self.client = client
        self.config = config or InferenceConfig()
        endpoint = self.config.base_url or self.config.provider

        # ========================================
        # Initialize Components
        # ========================================

        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name=f"inference:{endpoint}",
            failure_threshold=self.config.failure_threshold,
            recovery_timeout=self.config.recovery_timeout,
            monitoring_period=self.config.monitoring_period,
            expected_error_rate=self.config.expected_error_rate,
            minimum_throughput=self.config.minimum_throughput,
            reset_high_water_mark=self.config.reset_high_water_mark,
            half_open_max_calls=self.config.half_open_max_calls,
            enabled=self.config.circuit_breaker_enabled
        )

        self.rate_limiter = rate_limiter or RateLimiter(
            name=f"inference:{endpoint}",
            tokens_per_interval=self.config.tokens_per_interval,
            interval=self.config.rate_limit_interval,
            enabled=self.config.rate_limit_enabled
        )

        self.prompt_builder = prompt_builder or PromptBuilder()
        self.response_parser = response_parser or ResponseParser()

        # Latency tracker
        self.latency = LatencyTracker(window_size=self.config.latency_window)

        # Statistics
        self.stats = AIStatistics()
        self.recent_requests: deque = deque(maxlen=self.config.latency_window)
        self._stats_lock = threading.Lock()

        self.circuit_breaker.subscribe(self._on_circuit_event)

        logger.info(
            "inference_orchestrator_initialized",
            endpoint=endpoint,
            model=self.config.model,
            batch_size=self.config.batch_size,
            request_timeout=self.config.request_timeout
        )

    # ========================================
    # Lifecycle
    # ========================================

    def start(self) -> None:
        """Start background circuit monitoring (needs a running loop)"""
        self.circuit_breaker.start_monitoring()

    async def close(self) -> None:
        """Stop monitoring and release the client"""
        self.circuit_breaker.unsubscribe(self._on_circuit_event)
        await self.circuit_breaker.close()
        await self.client.close()
        logger.info("inference_orchestrator_closed")

    async def __aenter__(self) -> "InferenceOrchestrator":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ========================================
    # Single request
    # ========================================

    async def analyze_code(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Analyze one file.

        Raises:
            RateLimitExceeded: Token bucket empty
            CircuitOpenError: Circuit rejects the call
            UpstreamError: Remote call failed or timed out
            EmptyResponse / InvalidResponseFormat: Unusable model output
        """
        start = time.perf_counter()
        metrics = AIRequestMetrics(
            file_name=request.file_name,
            success=False,
            analysis_type=request.analysis_type.value,
            started_at=datetime.now()
        )

        try:
            # Admission strictly precedes the guarded call
            self.rate_limiter.consume()

            result = await self.circuit_breaker.execute(
                lambda: self._perform_analysis(request)
            )

        except Exception as e:
            metrics.latency_ms = (time.perf_counter() - start) * 1000
            metrics.finished_at = datetime.now()
            metrics.error = str(e)
            metrics.error_type = type(e).__name__
            self._update_statistics(metrics, e)
            self._log_failure(request, e, metrics.latency_ms)
            raise

        latency_ms = (time.perf_counter() - start) * 1000
        result = replace(result, processing_time_ms=latency_ms)

        metrics.success = True
        metrics.latency_ms = latency_ms
        metrics.finished_at = datetime.now()
        metrics.model = result.model
        self._update_statistics(metrics)

        logger.info(
            "analysis_completed",
            file_name=request.file_name,
            analysis_type=request.analysis_type.value,
            issues=len(result.issues),
            confidence=result.confidence,
            latency_ms=round(latency_ms, 2)
        )

        return result

    async def _perform_analysis(self, request: AnalysisRequest) -> AnalysisResult:
        """Remote call + parse; runs inside the circuit breaker"""
        system_prompt, user_prompt = self.prompt_builder.build(request)

        completion = await with_timeout(
            self.client.complete(
                system_prompt,
                user_prompt,
                model=self.config.model,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                json_response=True
            ),
            timeout=self.config.request_timeout,
            name=f"analysis:{request.file_name}"
        )

        result = self.response_parser.parse(completion.content, request)
        return replace(result, model=completion.model)

    def _log_failure(self, request: AnalysisRequest, error: Exception, latency_ms: float) -> None:
        """Admission rejections are expected under load; everything else is an error"""
        context = dict(
            **request.to_log_dict(),
            error=str(error),
            error_type=type(error).__name__,
            latency_ms=round(latency_ms, 2)
        )

        if isinstance(error, RateLimitExceeded):
            logger.info("analysis_rejected", reason="rate_limited",
                        retry_after=round(error.retry_after, 3), **context)
        elif isinstance(error, CircuitOpenError):
            logger.info("analysis_rejected", reason="circuit_open", **context)
        elif isinstance(error, FormatError):
            logger.error("analysis_format_error", **context)
        elif isinstance(error, UpstreamError):
            logger.error("analysis_upstream_error", **context)
        else:
            logger.error("analysis_failed", exc_info=True, **context)

    # ========================================
    # Batch
    # ========================================

    async def batch_analyze(self, requests: Iterable[AnalysisRequest]) -> List[AnalysisResult]:
        """
        Analyze many files; failed items are dropped.

        Returns:
            Successful results in the relative order of their requests
        """
        job = await self.run_batch(requests)
        return list(job.results)

    async def run_batch(
            self,
            requests: Iterable[AnalysisRequest],
            priority: Union[BatchPriority, str] = BatchPriority.MEDIUM
    ) -> BatchJob:
        """
        Run requests in chunks of batch_size, all items of a chunk
        concurrently, with batch_delay between chunks.

        Raises:
            TypeError: If an item is not an AnalysisRequest
        """
        requests = tuple(requests)
        for index, item in enumerate(requests):
            if not isinstance(item, AnalysisRequest):
                raise TypeError(
                    f"requests[{index}] must be AnalysisRequest, got {type(item).__name__}"
                )

        batch_size = self.config.batch_size
        job = BatchJob(requests=requests, priority=BatchPriority(priority))
        job.start()

        logger.info(
            "batch_started",
            batch_id=job.id,
            total_requests=job.total_requests,
            batch_size=batch_size,
            priority=job.priority.value
        )

        # Sub-request log lines carry the batch id (tasks copy the context)
        with structlog.contextvars.bound_contextvars(batch_id=job.id):
            for offset in range(0, len(requests), batch_size):
                chunk = requests[offset:offset + batch_size]

                outcomes = await asyncio.gather(
                    *(self.analyze_code(request) for request in chunk),
                    return_exceptions=True
                )

                for request, outcome in zip(chunk, outcomes):
                    if isinstance(outcome, BaseException):
                        logger.warning(
                            "batch_item_dropped",
                            file_name=request.file_name,
                            error_type=type(outcome).__name__,
                            error=str(outcome)
                        )
                        job.record_failure(request, outcome)
                    else:
                        job.record_success(outcome)

                # Smooth load between chunks
                if offset + batch_size < len(requests) and self.config.batch_delay > 0:
                    await asyncio.sleep(self.config.batch_delay)

        job.seal()

        with self._stats_lock:
            self.stats.batches_run += 1
            self.stats.batch_items_dropped += job.failed_requests

        logger.info(
            "batch_completed",
            batch_id=job.id,
            status=job.status.value,
            completed=job.completed_requests,
            failed=job.failed_requests
        )

        return job

    # ========================================
    # Health
    # ========================================

    async def get_health(self) -> HealthStatus:
        """Synthetic probe through the breaker-guarded path; never raises"""
        start = time.perf_counter()

        try:
            completion = await self.circuit_breaker.execute(
                lambda: with_timeout(
                    self.client.complete(
                        "",
                        self.prompt_builder.build_health_prompt(),
                        model=self.config.health_check_model,
                        temperature=0.0,
                        max_tokens=10,
                        json_response=False
                    ),
                    timeout=self.config.request_timeout,
                    name="health_check"
                )
            )
        except Exception as e:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.warning("health_check_failed", error=str(e), error_type=type(e).__name__)
            return HealthStatus(
                status=HealthState.UNHEALTHY,
                latency_ms=latency_ms,
                model_id="unknown",
                error=str(e)
            )

        latency_ms = (time.perf_counter() - start) * 1000
        logger.debug("health_check_ok", model=completion.model, latency_ms=round(latency_ms, 2))
        return HealthStatus(
            status=HealthState.HEALTHY,
            latency_ms=latency_ms,
            model_id=completion.model
        )

    # ========================================
    # Observability
    # ========================================

    def _on_circuit_event(self, event: CircuitEvent) -> None:
        """Surface endpoint degradation / recovery"""
        if event.kind != CircuitEventType.STATE_CHANGE:
            return

        if event.new_state == CircuitState.OPEN:
            logger.warning(
                "inference_endpoint_degraded",
                breaker=event.breaker,
                failure_count=event.metrics.failure_count,
                error_rate=round(event.metrics.error_rate, 3)
            )
        elif event.new_state == CircuitState.CLOSED and event.previous_state != CircuitState.CLOSED:
            logger.info("inference_endpoint_recovered", breaker=event.breaker)

    def _update_statistics(self, metrics: AIRequestMetrics, error: Optional[Exception] = None) -> None:
        """Update aggregate statistics"""
        with self._stats_lock:
            self.stats.total_requests += 1
            self.recent_requests.append(metrics)

            if metrics.success:
                self.stats.successes += 1
                self.latency.record(metrics.latency_ms, label=metrics.analysis_type)
                return

            self.stats.failures += 1
            if isinstance(error, RateLimitExceeded):
                self.stats.rate_limited += 1
            elif isinstance(error, CircuitOpenError):
                self.stats.circuit_rejected += 1
            elif isinstance(error, UpstreamTimeoutError):
                self.stats.timeouts += 1
            elif isinstance(error, UpstreamError):
                self.stats.upstream_errors += 1
            elif isinstance(error, FormatError):
                self.stats.format_errors += 1

    def get_statistics(self) -> dict:
        """Get comprehensive statistics"""
        with self._stats_lock:
            stats = self.stats.to_dict()

        return {
            **stats,
            'latency': self.latency.get_stats(),
            'latency_by_type': self.latency.get_stats_by_label(),
            'circuit': self.circuit_breaker.get_metrics().to_dict(),
            'rate_limiter': self.rate_limiter.to_dict()
        }

    def get_recent_requests(self, limit: Optional[int] = None) -> List[dict]:
        """Most recent per-call metrics, oldest first"""
        with self._stats_lock:
            recent = list(self.recent_requests)
        if limit is not None:
            recent = recent[-limit:] if limit > 0 else []
        return [metrics.to_dict() for metrics in recent]

    def reset_statistics(self) -> None:
        """Reset all statistics"""
        with self._stats_lock:
            self.stats = AIStatistics()
            self.recent_requests.clear()
        self.latency.reset()
        logger.info("statistics_reset")
