# codelens/infrastructure/adapters/ai/models/completion.py

"""Remote Completion / Health Models"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class CompletionResult:
    """Raw output of one chat-completion call"""
    content: Optional[str]
    model: str


class HealthState(Enum):
    """Health probe outcome"""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class HealthStatus:
    """Result of a synthetic health probe"""
    status: HealthState
    latency_ms: float
    model_id: str
    error: Optional[str] = None

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthState.HEALTHY

    def to_dict(self) -> dict:
        """Export as dict"""
        return {
            'status': self.status.value,
            'latency_ms': round(self.latency_ms, 2),
            'model_id': self.model_id,
            'error': self.error
        }
