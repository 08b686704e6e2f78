# codelens/infrastructure/adapters/ai/models/ai_metrics.py

"""Inference Request Metrics"""

from dataclasses import dataclass
from typing import Optional
from datetime import datetime


@dataclass
class AIRequestMetrics:
    """Single request metrics"""
    file_name: str
    success: bool
    analysis_type: Optional[str] = None
    latency_ms: float = 0.0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    model: Optional[str] = None

    def to_dict(self) -> dict:
        """Export as dict"""
        return {
            'file_name': self.file_name,
            'success': self.success,
            'analysis_type': self.analysis_type,
            'latency_ms': round(self.latency_ms, 2),
            'model': self.model,
            'error_type': self.error_type,
            'error': self.error
        }


@dataclass
class AIStatistics:
    """Aggregate inference statistics"""

    total_requests: int = 0
    successes: int = 0
    failures: int = 0

    # Failure breakdown
    rate_limited: int = 0
    circuit_rejected: int = 0
    upstream_errors: int = 0
    timeouts: int = 0
    format_errors: int = 0

    # Batches
    batches_run: int = 0
    batch_items_dropped: int = 0

    def to_dict(self) -> dict:
        """Export as dict"""
        total = max(self.total_requests, 1)

        return {
            'total_requests': self.total_requests,
            'successes': self.successes,
            'failures': self.failures,
            'failure_rate': round(self.failures / total * 100, 1),
            'rate_limited': self.rate_limited,
            'circuit_rejected': self.circuit_rejected,
            'upstream_errors': self.upstream_errors,
            'timeouts': self.timeouts,
            'format_errors': self.format_errors,
            'batches_run': self.batches_run,
            'batch_items_dropped': self.batch_items_dropped
        }
