# codelens/infrastructure/adapters/ai/models/analysis.py

"""Code Analysis Request / Result Models"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple


class AnalysisType(Enum):
    """Kind of review requested from the model"""
    SECURITY = "security"
    PERFORMANCE = "performance"
    QUALITY = "quality"
    ARCHITECTURE = "architecture"
    TESTING = "testing"
    COMPREHENSIVE = "comprehensive"


class Severity(Enum):
    """Issue severity"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class IssueType(Enum):
    """Issue category"""
    SECURITY = "security"
    PERFORMANCE = "performance"
    QUALITY = "quality"
    ARCHITECTURE = "architecture"
    TESTING = "testing"
    STYLE = "style"


class SuggestionType(Enum):
    """Suggestion category"""
    IMPROVEMENT = "improvement"
    REFACTOR = "refactor"
    OPTIMIZATION = "optimization"
    MODERNIZATION = "modernization"


@dataclass(frozen=True)
class AnalysisRequest:
    """
    Single file submitted for analysis.

    A string analysis_type is normalised to AnalysisType; unknown values
    raise ValueError.
    """
    file_name: str
    language: str
    code: str
    analysis_type: AnalysisType = AnalysisType.COMPREHENSIVE
    context: Optional[str] = None
    diff_context: Optional[str] = None
    specific_concerns: Optional[str] = None
    user_id: Optional[str] = None
    repository_id: Optional[str] = None
    pull_request_id: Optional[str] = None
    request_id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.analysis_type, AnalysisType):
            object.__setattr__(self, 'analysis_type', AnalysisType(self.analysis_type))
        if not self.file_name:
            raise ValueError("file_name must not be empty")

    def to_log_dict(self) -> dict:
        """Identifying fields only (never the code itself)"""
        return {
            'file_name': self.file_name,
            'language': self.language,
            'analysis_type': self.analysis_type.value,
            'request_id': self.request_id,
            'repository_id': self.repository_id,
            'pull_request_id': self.pull_request_id
        }


@dataclass(frozen=True)
class Issue:
    """Problem reported by the model"""
    severity: Severity
    type: IssueType
    message: str
    suggestion: str = ""
    line: Optional[int] = None
    column: Optional[int] = None
    code_snippet: Optional[str] = None
    rule_id: Optional[str] = None


@dataclass(frozen=True)
class Suggestion:
    """Improvement proposed by the model"""
    type: SuggestionType
    description: str
    impact: Optional[str] = None
    effort: Optional[str] = None
    code_example: Optional[str] = None


@dataclass(frozen=True)
class CodeMetrics:
    """Numeric scores reported by the model (unset keys stay None)"""
    complexity: Optional[float] = None
    maintainability: Optional[float] = None
    testability: Optional[float] = None
    security: Optional[float] = None
    performance: Optional[float] = None
    lines_of_code: Optional[float] = None
    technical_debt: Optional[float] = None

    def to_dict(self) -> dict:
        """Export set keys only"""
        return {
            key: value
            for key, value in self.__dict__.items()
            if value is not None
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Validated analysis for one request"""
    id: str
    file_name: str
    language: str
    analysis_type: AnalysisType
    timestamp: str
    summary: str
    issues: Tuple[Issue, ...] = ()
    suggestions: Tuple[Suggestion, ...] = ()
    metrics: CodeMetrics = field(default_factory=CodeMetrics)
    confidence: float = 0.5
    processing_time_ms: float = 0.0
    model: Optional[str] = None

    def to_dict(self) -> dict:
        """Export as dict"""
        return {
            'id': self.id,
            'file_name': self.file_name,
            'language': self.language,
            'analysis_type': self.analysis_type.value,
            'timestamp': self.timestamp,
            'summary': self.summary,
            'issues': [
                {
                    'severity': issue.severity.value,
                    'type': issue.type.value,
                    'line': issue.line,
                    'column': issue.column,
                    'message': issue.message,
                    'suggestion': issue.suggestion,
                    'code_snippet': issue.code_snippet
                }
                for issue in self.issues
            ],
            'suggestions': [
                {
                    'type': suggestion.type.value,
                    'description': suggestion.description,
                    'impact': suggestion.impact,
                    'effort': suggestion.effort
                }
                for suggestion in self.suggestions
            ],
            'metrics': self.metrics.to_dict(),
            'confidence': self.confidence,
            'processing_time_ms': round(self.processing_time_ms, 2),
            'model': self.model
        }
