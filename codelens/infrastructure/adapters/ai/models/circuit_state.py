# codelens/infrastructure/adapters/ai/models/circuit_state.py

"""Circuit Breaker State Model"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


class CircuitState(Enum):
    """Circuit breaker states"""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if recovered


class CircuitEventType(Enum):
    """Kinds of notifications emitted by the breaker"""
    SUCCESS = "success"
    FAILURE = "failure"
    STATE_CHANGE = "state_change"
    METRICS = "metrics"


@dataclass
class CircuitMetrics:
    """Circuit breaker metrics"""
    state: CircuitState
    failure_count: int = 0
    success_count: int = 0
    total_requests: int = 0
    last_failure_time: Optional[datetime] = None
    last_success_time: Optional[datetime] = None
    state_changed_at: datetime = field(default_factory=datetime.now)
    opened_at: Optional[datetime] = None
    next_attempt_at: Optional[datetime] = None
    total_trips: int = 0

    @property
    def error_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.failure_count / self.total_requests

    def to_dict(self) -> dict:
        """Export as dict"""
        return {
            'state': self.state.value,
            'failure_count': self.failure_count,
            'success_count': self.success_count,
            'total_requests': self.total_requests,
            'error_rate': round(self.error_rate, 4),
            'total_trips': self.total_trips,
            'last_failure_time': self.last_failure_time.isoformat() if self.last_failure_time else None,
            'last_success_time': self.last_success_time.isoformat() if self.last_success_time else None,
            'state_changed_at': self.state_changed_at.isoformat(),
            'opened_at': self.opened_at.isoformat() if self.opened_at else None,
            'next_attempt_at': self.next_attempt_at.isoformat() if self.next_attempt_at else None
        }


@dataclass(frozen=True)
class CircuitEvent:
    """Notification delivered to breaker subscribers"""
    kind: CircuitEventType
    breaker: str
    metrics: CircuitMetrics
    previous_state: Optional[CircuitState] = None
    new_state: Optional[CircuitState] = None
