# codelens/infrastructure/adapters/ai/functionality/__init__.py

"""Inference Resilience Modules"""

from .circuit_breaker import CircuitBreaker
from .rate_limiter import RateLimiter
from .confidence_scorer import ConfidenceScorer
from .response_parser import ResponseParser
from .latency_tracker import LatencyTracker
from .timeout_wrapper import with_timeout

__all__ = [
    'CircuitBreaker',
    'RateLimiter',
    'ConfidenceScorer',
    'ResponseParser',
    'LatencyTracker',
    'with_timeout'
]
