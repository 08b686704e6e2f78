"""
Custom exceptions for the code analysis inference layer
"""

from typing import Optional


class CodeLensError(Exception):
    """Base exception for code analysis errors"""
    pass


class ConfigurationError(CodeLensError):
    """Raised when configuration is invalid or missing"""
    pass


class ContainerInitializationError(CodeLensError):
    """Raised when dependency injection container fails to initialize"""
    pass


class AnalysisError(CodeLensError):
    """Raised when a code analysis request cannot be completed"""
    pass


# ========================================
# Admission (rejected before remote work)
# ========================================

class AdmissionError(AnalysisError):
    """Request rejected before any remote work was attempted"""
    pass


class RateLimitExceeded(AdmissionError):
    """Raised when the token bucket is empty"""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after


class CircuitOpenError(AdmissionError):
    """Raised when the circuit breaker rejects a call"""

    def __init__(self, message: str = "Circuit breaker is OPEN - operation rejected",
                 next_attempt_in: Optional[float] = None):
        super().__init__(message)
        self.next_attempt_in = next_attempt_in


# ========================================
# Upstream (remote call failed)
# ========================================

class UpstreamError(AnalysisError):
    """Raised when the remote inference call fails (network, 5xx, SDK error)"""
    pass


class UpstreamTimeoutError(UpstreamError):
    """Raised when the remote inference call exceeds its deadline"""
    pass


# ========================================
# Format (remote call succeeded, content unusable)
# ========================================

class FormatError(AnalysisError):
    """Remote call succeeded but returned unusable content"""
    pass


class EmptyResponse(FormatError):
    """Raised when the model returned no content"""

    def __init__(self, message: str = "Empty response from LLM"):
        super().__init__(message)


class InvalidResponseFormat(FormatError):
    """Raised when the model content is not the expected JSON object"""

    def __init__(self, message: str = "Invalid LLM response format",
                 raw_response: Optional[str] = None):
        super().__init__(message)
        self.raw_response = raw_response


class BatchJobSealedError(RuntimeError):
    """Raised when a sealed batch job is mutated"""
    pass
