# codelens/infrastructure/adapters/ai/functionality/response_parser.py

"""Response Parser - model text to validated AnalysisResult"""

import json
import math
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Mapping, Optional, Type, TypeVar
import structlog

from codelens.core.exceptions import EmptyResponse, InvalidResponseFormat
from ..models import (
    AnalysisRequest,
    AnalysisResult,
    CodeMetrics,
    Issue,
    IssueType,
    Severity,
    Suggestion,
    SuggestionType
)
from .confidence_scorer import ConfidenceScorer

logger = structlog.get_logger()

E = TypeVar('E', bound=Enum)

# Accepted aliases for metric keys (camelCase as emitted by the schema directive)
METRIC_KEYS = {
    'complexity': 'complexity',
    'maintainability': 'maintainability',
    'testability': 'testability',
    'security': 'security',
    'performance': 'performance',
    'linesOfCode': 'lines_of_code',
    'lines_of_code': 'lines_of_code',
    'technicalDebt': 'technical_debt',
    'technical_debt': 'technical_debt',
}

RAW_LOG_LIMIT = 2000


class ResponseParser:
    """
    Turns raw model text into an AnalysisResult.

    Fails loudly: EmptyResponse for missing content, InvalidResponseFormat
    for anything that is not the expected JSON object shape.
    """

    def __init__(self, scorer: Optional[ConfidenceScorer] = None):
        self.scorer = scorer or ConfidenceScorer()

    def parse(self, raw_text: Optional[str], request: AnalysisRequest) -> AnalysisResult:
        """
        Args:
            raw_text: Model message content
            request: Request the content answers

        Returns:
            Validated AnalysisResult (processing time left at 0)

        Raises:
            EmptyResponse: No content
            InvalidResponseFormat: Content is not a valid analysis object
        """
        if raw_text is None or not raw_text.strip():
            logger.error("llm_empty_response", file_name=request.file_name)
            raise EmptyResponse()

        try:
            payload = json.loads(raw_text)
        except (json.JSONDecodeError, TypeError) as e:
            self._log_invalid(raw_text, request, f"not JSON: {e}")
            raise InvalidResponseFormat(raw_response=raw_text) from e

        if not isinstance(payload, dict):
            self._log_invalid(raw_text, request, f"expected object, got {type(payload).__name__}")
            raise InvalidResponseFormat(raw_response=raw_text)

        try:
            summary = self._parse_summary(payload.get('summary'))
            issues = self._parse_issues(payload.get('issues'))
            suggestions = self._parse_suggestions(payload.get('suggestions'))
            metrics = self._parse_metrics(payload.get('metrics'))
        except ValueError as e:
            self._log_invalid(raw_text, request, str(e))
            raise InvalidResponseFormat(
                f"Invalid LLM response format: {e}",
                raw_response=raw_text
            ) from e

        return AnalysisResult(
            id=self._generate_id(),
            file_name=request.file_name,
            language=request.language,
            analysis_type=request.analysis_type,
            timestamp=datetime.now(timezone.utc).isoformat(),
            summary=summary,
            issues=tuple(issues),
            suggestions=tuple(suggestions),
            metrics=metrics,
            confidence=self.scorer.score(payload)
        )

    @staticmethod
    def _generate_id() -> str:
        return f"analysis_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"

    @staticmethod
    def _log_invalid(raw_text: str, request: AnalysisRequest, reason: str) -> None:
        logger.error(
            "llm_invalid_response",
            file_name=request.file_name,
            reason=reason,
            raw_response=raw_text[:RAW_LOG_LIMIT]
        )

    # ========================================
    # Field parsers (raise ValueError)
    # ========================================

    @staticmethod
    def _parse_summary(value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError(f"summary must be a string, got {type(value).__name__}")
        return value

    def _parse_issues(self, value: Any) -> List[Issue]:
        items = self._require_list('issues', value)
        issues = []
        for index, item in enumerate(items):
            if not isinstance(item, Mapping):
                raise ValueError(f"issues[{index}] must be an object")
            issues.append(Issue(
                severity=self._enum(Severity, item.get('severity'), f"issues[{index}].severity"),
                type=self._enum(IssueType, item.get('type'), f"issues[{index}].type"),
                message=self._required_str(item.get('message'), f"issues[{index}].message"),
                suggestion=self._optional_str(item.get('suggestion'), f"issues[{index}].suggestion") or "",
                line=self._optional_int(item.get('line'), f"issues[{index}].line"),
                column=self._optional_int(item.get('column'), f"issues[{index}].column"),
                code_snippet=self._optional_str(
                    item.get('codeSnippet', item.get('code_snippet')), f"issues[{index}].codeSnippet"
                ),
                rule_id=self._optional_str(item.get('ruleId', item.get('rule_id')), f"issues[{index}].ruleId")
            ))
        return issues

    def _parse_suggestions(self, value: Any) -> List[Suggestion]:
        items = self._require_list('suggestions', value)
        suggestions = []
        for index, item in enumerate(items):
            if not isinstance(item, Mapping):
                raise ValueError(f"suggestions[{index}] must be an object")
            suggestions.append(Suggestion(
                type=self._enum(SuggestionType, item.get('type'), f"suggestions[{index}].type"),
                description=self._required_str(item.get('description'), f"suggestions[{index}].description"),
                impact=self._optional_str(item.get('impact'), f"suggestions[{index}].impact"),
                effort=self._optional_str(item.get('effort'), f"suggestions[{index}].effort"),
                code_example=self._optional_str(
                    item.get('codeExample', item.get('code_example')), f"suggestions[{index}].codeExample"
                )
            ))
        return suggestions

    @staticmethod
    def _parse_metrics(value: Any) -> CodeMetrics:
        if value is None:
            return CodeMetrics()
        if not isinstance(value, Mapping):
            raise ValueError(f"metrics must be an object, got {type(value).__name__}")

        fields = {}
        for key, score in value.items():
            field_name = METRIC_KEYS.get(key)
            if field_name is None:
                logger.debug("llm_unknown_metric_ignored", metric=key)
                continue
            if score is None:
                continue
            if isinstance(score, bool) or not isinstance(score, (int, float)):
                raise ValueError(f"metrics.{key} must be a number, got {type(score).__name__}")
            try:
                number = float(score)
            except OverflowError:
                raise ValueError(f"metrics.{key} is out of range")
            if not math.isfinite(number):
                raise ValueError(f"metrics.{key} must be finite, got {number}")
            fields[field_name] = number
        return CodeMetrics(**fields)

    @staticmethod
    def _require_list(name: str, value: Any) -> list:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError(f"{name} must be a list, got {type(value).__name__}")
        return value

    @staticmethod
    def _enum(enum_type: Type[E], value: Any, path: str) -> E:
        if not isinstance(value, str):
            raise ValueError(f"{path} is required")
        try:
            return enum_type(value.lower())
        except ValueError:
            allowed = "|".join(member.value for member in enum_type)
            raise ValueError(f"{path} must be one of {allowed}, got '{value}'")

    @staticmethod
    def _required_str(value: Any, path: str) -> str:
        if not isinstance(value, str) or not value:
            raise ValueError(f"{path} must be a non-empty string")
        return value

    @staticmethod
    def _optional_str(value: Any, path: str) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError(f"{path} must be a string, got {type(value).__name__}")
        return value

    @staticmethod
    def _optional_int(value: Any, path: str) -> Optional[int]:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{path} must be a number, got {type(value).__name__}")
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"{path} must be finite, got {value}")
        return int(value)
