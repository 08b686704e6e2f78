# codelens/infrastructure/adapters/ai/models/__init__.py

"""Inference Models"""

from .ai_config import InferenceConfig
from .circuit_state import CircuitState, CircuitMetrics, CircuitEvent, CircuitEventType
from .ai_metrics import AIRequestMetrics, AIStatistics
from .analysis import (
    AnalysisType,
    Severity,
    IssueType,
    SuggestionType,
    AnalysisRequest,
    Issue,
    Suggestion,
    CodeMetrics,
    AnalysisResult
)
from .batch_job import BatchJob, BatchPriority, BatchStatus, BatchFailure
from .completion import CompletionResult, HealthState, HealthStatus

__all__ = [
    'InferenceConfig',
    'CircuitState',
    'CircuitMetrics',
    'CircuitEvent',
    'CircuitEventType',
    'AIRequestMetrics',
    'AIStatistics',
    'AnalysisType',
    'Severity',
    'IssueType',
    'SuggestionType',
    'AnalysisRequest',
    'Issue',
    'Suggestion',
    'CodeMetrics',
    'AnalysisResult',
    'BatchJob',
    'BatchPriority',
    'BatchStatus',
    'BatchFailure',
    'CompletionResult',
    'HealthState',
    'HealthStatus'
]
