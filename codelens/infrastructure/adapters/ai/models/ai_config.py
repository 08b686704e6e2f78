# codelens/infrastructure/adapters/ai/models/ai_config.py

"""Inference Layer Configuration"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class InferenceConfig:
    """Settings for the inference orchestrator and its guards."""

    # ========================================
    # Model Settings
    # ========================================
    provider: str = "openai"
    model: str = "gpt-4-turbo-preview"
    health_check_model: str = "gpt-3.5-turbo"
    temperature: float = 0.1
    max_tokens: int = 2000
    base_url: Optional[str] = None  # Self-hosted OpenAI-compatible endpoint

    # ========================================
    # Timeout Settings
    # ========================================
    request_timeout: float = 30.0  # Per remote call (seconds)

    # ========================================
    # Circuit Breaker
    # ========================================
    circuit_breaker_enabled: bool = True
    failure_threshold: int = 5
    minimum_throughput: int = 10
    expected_error_rate: float = 0.5
    recovery_timeout: float = 60.0  # Seconds in OPEN before probing
    monitoring_period: float = 10.0  # Seconds between monitoring ticks
    reset_high_water_mark: int = 1000  # Counter reset threshold while CLOSED
    half_open_max_calls: Optional[int] = None  # None = concurrent probes allowed

    # ========================================
    # Rate Limiter
    # ========================================
    rate_limit_enabled: bool = True
    tokens_per_interval: int = 100
    rate_limit_interval: float = 60.0  # Seconds

    # ========================================
    # Batch
    # ========================================
    batch_size: int = 5
    batch_delay: float = 1.0  # Seconds between chunks

    # ========================================
    # Monitoring
    # ========================================
    latency_window: int = 100  # Track last N requests

    def __post_init__(self):
        """Validate ranges"""
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.tokens_per_interval < 1:
            raise ValueError(f"tokens_per_interval must be >= 1, got {self.tokens_per_interval}")
        if not 0.0 <= self.expected_error_rate <= 1.0:
            raise ValueError(
                f"expected_error_rate must be between 0.0-1.0, got {self.expected_error_rate}"
            )
        if self.half_open_max_calls is not None and self.half_open_max_calls < 1:
            raise ValueError(
                f"half_open_max_calls must be >= 1 or None, got {self.half_open_max_calls}"
            )

    def to_dict(self) -> dict:
        """Export as dict"""
        return {
            'provider': self.provider,
            'model': self.model,
            'health_check_model': self.health_check_model,
            'request_timeout': self.request_timeout,
            'circuit_breaker_enabled': self.circuit_breaker_enabled,
            'failure_threshold': self.failure_threshold,
            'minimum_throughput': self.minimum_throughput,
            'expected_error_rate': self.expected_error_rate,
            'recovery_timeout': self.recovery_timeout,
            'rate_limit_enabled': self.rate_limit_enabled,
            'tokens_per_interval': self.tokens_per_interval,
            'rate_limit_interval': self.rate_limit_interval,
            'batch_size': self.batch_size,
            'batch_delay': self.batch_delay
        }
